"""Preview-then-commit flow over the plan pipeline.

preview: prompt -> intent -> plan -> validation (breaks only warned about)
commit:  confirmed plan -> re-validation -> draft rows, once per request id
"""

from dataclasses import dataclass

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timesheet_ai.config.settings import settings
from timesheet_ai.core.logger import request_context
from timesheet_ai.db.models import AiAction, Technician, User
from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.clock import Clock
from timesheet_ai.timesheets.errors import TimesheetAiError
from timesheet_ai.timesheets.intent_parser import TimesheetIntentParser
from timesheet_ai.timesheets.intent_service import IntentService
from timesheet_ai.timesheets.intervals import extract_builder_project, looks_like_builder_prompt
from timesheet_ai.timesheets.issues import IssueKind, PlanIssue
from timesheet_ai.timesheets.plan_applier import PlanApplier
from timesheet_ai.timesheets.plan_builder import TimesheetPlanBuilder
from timesheet_ai.timesheets.plan_validator import PlanValidator, ValidationPolicy
from timesheet_ai.timesheets.repository import PeopleDirectory
from timesheet_ai.timesheets.text import normalize_free_text_prompt
from timesheet_ai.timesheets.types import IntentParseResult, NormalizedPlan, Plan, PlanRequest, Totals

COMMIT_ACTION = "timesheets_ai_commit"

MISSING_FIELD_KINDS = {
    IssueKind.DATE_RANGE_REQUIRED: "date_range",
    IssueKind.INVALID_DATE_RANGE: "date_range",
    IssueKind.MISSING_PROJECT: "project",
    IssueKind.PROJECT_REQUIRED: "project",
    IssueKind.PROJECT_NOT_FOUND: "project",
    IssueKind.PROJECT_AMBIGUOUS: "project",
    IssueKind.NO_INTERVALS: "schedule",
    IssueKind.SCHEDULE_REQUIRED: "schedule",
}


class PreviewResult(BaseModel):
    ok: bool
    message: str | None = None
    plan: NormalizedPlan | None = None
    totals: Totals | None = None
    warnings: list[PlanIssue] = []
    errors: list[PlanIssue] = []
    missing_fields: list[str] = []


class CommitResult(BaseModel):
    ok: bool
    message: str | None = None
    created_ids: list[int] = []
    created_count: int = 0
    totals: Totals | None = None
    errors: list[PlanIssue] = []
    replayed: bool = False


@dataclass
class Target:
    """Who the timesheets are for. Either both records or an issue."""

    technician: Technician | None = None
    user: User | None = None
    issue: PlanIssue | None = None


def merge_missing_fields(intent_missing: list[str], errors: list[PlanIssue]) -> list[str]:
    """Intent missing fields plus the ones implied by plan build errors."""
    missing = list(dict.fromkeys(intent_missing))
    for issue in errors:
        field = MISSING_FIELD_KINDS.get(issue.kind)
        if field and field not in missing:
            missing.append(field)
    return missing


def build_error_message(errors: list[PlanIssue], missing_fields: list[str]) -> str:
    if missing_fields:
        return f"Missing required fields: {', '.join(missing_fields)}."
    if errors:
        return errors[0].message
    return "Unable to parse timesheet intent."


def _dedupe(found: list[PlanIssue]) -> list[PlanIssue]:
    unique: list[PlanIssue] = []
    for issue in found:
        if issue not in unique:
            unique.append(issue)
    return unique


class TimesheetAssistant:
    """Runs the pipeline for one acting user inside the caller's session."""

    def __init__(
        self,
        session: Session,
        intent_service: IntentService,
        clock: Clock | None = None,
        policy: ValidationPolicy | None = None,
    ):
        self.session = session
        self.people = PeopleDirectory(session)
        self.intent_parser = TimesheetIntentParser(intent_service, session)
        self.builder = TimesheetPlanBuilder(session, clock)
        self.validator = PlanValidator(session, policy)
        self.applier = PlanApplier(session)

    def resolve_target(self, actor: User, technician_id: int | None = None) -> Target:
        """Technician and user the timesheets are booked for.

        Only Owner and Admin may name a technician explicitly; everyone else
        books against their own technician profile.
        """
        if technician_id is not None:
            if not (actor.has_role("Owner") or actor.has_role("Admin")):
                return Target(issue=issues.target_forbidden())
            technician = self.people.get_technician(technician_id)
            if technician is None:
                return Target(issue=issues.technician_not_found())
        else:
            technician = self.people.technician_for_user(actor)
            if technician is None:
                return Target(issue=issues.technician_profile_not_found())

        if technician.user is None:
            return Target(technician=technician, issue=issues.technician_without_user())
        return Target(technician=technician, user=technician.user)

    def preview(
        self,
        actor: User,
        prompt: str,
        technician_id: int | None = None,
        timezone: str | None = None,
        week_start: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> PreviewResult:
        """Build and validate a plan without writing anything.

        Args:
            actor: Acting user
            prompt: Free-text or form-style request
            technician_id: Book for another technician (Owner/Admin only)
            timezone: Tenant timezone; defaults to settings.app_timezone
            week_start: Tenant first day of the week
            start_date: Explicit first date, if the client sent one
            end_date: Explicit last date, if the client sent one

        Returns:
            PreviewResult with the normalized plan and totals, or a message,
            the errors and the fields to ask the user for
        """
        with request_context("preview"):
            return self._preview(actor, prompt, technician_id, timezone, week_start, start_date, end_date)

    def _preview(
        self,
        actor: User,
        prompt: str,
        technician_id: int | None,
        timezone: str | None,
        week_start: str | None,
        start_date: str | None,
        end_date: str | None,
    ) -> PreviewResult:
        target = self.resolve_target(actor, technician_id)
        if target.issue is not None:
            return PreviewResult(ok=False, message=target.issue.message, errors=[target.issue])

        timezone = timezone or settings.app_timezone
        builder_shaped = looks_like_builder_prompt(prompt)
        text = prompt if builder_shaped else normalize_free_text_prompt(prompt)

        intent_result: IntentParseResult | None = None
        try:
            intent_result = self.intent_parser.parse(text, timezone, week_start, start_date, end_date)
        except TimesheetAiError as e:
            logger.warning(f"Intent parser raised, falling back to prompt parsing: {e}")

        intent_ok = intent_result is not None and intent_result.ok
        if not intent_ok:
            logger.warning(
                "Intent parser failed, falling back to prompt parsing",
                missing_fields=intent_result.missing_fields if intent_result else None,
                errors=issues.messages(intent_result.errors) if intent_result else None,
            )

        request = PlanRequest(
            prompt=text,
            timezone=timezone,
            week_start=week_start,
            start_date=start_date,
            end_date=end_date,
            intent=intent_result.intent if intent_ok else None,
        )
        intent_missing = intent_result.missing_fields if intent_result else []

        build = self.builder.build(request, target.user.id, target.technician.id)
        if build.errors:
            missing = merge_missing_fields(intent_missing, build.errors)

            project_name = extract_builder_project(prompt) if builder_shaped else ""
            if "project" in missing and project_name:
                logger.info("Retrying plan build with extracted project", project=project_name)
                patched = request.model_copy(update={"prompt": f'{prompt.rstrip()}\n\nproject "{project_name}"'})
                build = self.builder.build(patched, target.user.id, target.technician.id)
                missing = merge_missing_fields(intent_missing, build.errors)

            if build.errors:
                return PreviewResult(
                    ok=False,
                    message=build_error_message(build.errors, missing),
                    errors=build.errors,
                    warnings=build.warnings,
                    missing_fields=missing,
                )

        validation = self.validator.validate(
            build.plan,
            actor,
            target.technician,
            target.user,
            enforce_breaks=False,
        )
        warnings = _dedupe(build.warnings + validation.warnings)

        if not validation.ok:
            return PreviewResult(
                ok=False,
                message=validation.errors[0].message if validation.errors else "Plan validation failed.",
                errors=validation.errors,
                warnings=warnings,
            )

        return PreviewResult(
            ok=True,
            plan=validation.normalized_plan,
            totals=validation.totals,
            warnings=warnings,
        )

    def commit(
        self,
        actor: User,
        request_id: str,
        plan: Plan | None,
        confirmed: bool = False,
        technician_id: int | None = None,
    ) -> CommitResult:
        """Validate a confirmed plan again and write it as draft timesheets.

        A request id is committed at most once per actor; repeating it replays
        the stored response.

        Args:
            actor: Acting user
            request_id: Client-generated idempotency key
            plan: Plan returned by preview (normalized plans convert with to_plan())
            confirmed: Must be True
            technician_id: Book for another technician (Owner/Admin only)

        Returns:
            CommitResult with the created ids, or the reason nothing was written
        """
        request_id = (request_id or "").strip()
        with request_context("commit", request_id):
            return self._commit(actor, request_id, plan, confirmed, technician_id)

    def _commit(
        self,
        actor: User,
        request_id: str,
        plan: Plan | None,
        confirmed: bool,
        technician_id: int | None,
    ) -> CommitResult:
        if not request_id:
            return self._rejected(issues.request_invalid("request_id is required."))
        if not confirmed:
            return self._rejected(issues.request_invalid("confirmed must be true to commit entries."))
        if plan is None or not plan.days:
            return self._rejected(issues.request_invalid("plan is required."))

        existing = self._find_action(actor.id, request_id)
        if existing is not None:
            return self._replay(existing)

        target = self.resolve_target(actor, technician_id)
        if target.issue is not None:
            return self._rejected(target.issue)

        plan = plan.model_copy(update={"target_user_id": target.user.id, "technician_id": target.technician.id})
        validation = self.validator.validate(
            plan,
            actor,
            target.technician,
            target.user,
            enforce_breaks=settings.enforce_breaks,
        )
        if not validation.ok:
            return CommitResult(
                ok=False,
                message=validation.errors[0].message if validation.errors else "Plan validation failed.",
                errors=validation.errors,
            )

        action = AiAction(
            actor_id=actor.id,
            client_request_id=request_id,
            action=COMMIT_ACTION,
            request_json={"request_id": request_id, "confirmed": confirmed},
            response_json=None,
        )
        try:
            self.session.add(action)
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.info("Concurrent commit for request", request_id=request_id, actor_id=actor.id)
            existing = self._find_action(actor.id, request_id)
            if existing is not None:
                return self._replay(existing)
            return self._rejected(issues.request_in_progress())

        applied = self.applier.apply_validated(validation, actor)
        response = {
            "created_ids": applied.created_ids,
            "summary": {
                "created_count": applied.created_count,
                "totals": validation.totals.model_dump(mode="json"),
            },
        }
        action.response_json = response
        self.session.flush()

        logger.info(
            "Timesheet plan committed",
            request_id=request_id,
            actor_id=actor.id,
            technician_id=target.technician.id,
            created_count=applied.created_count,
        )
        return CommitResult(
            ok=True,
            created_ids=applied.created_ids,
            created_count=applied.created_count,
            totals=validation.totals,
        )

    def _find_action(self, actor_id: int, request_id: str) -> AiAction | None:
        query = select(AiAction).where(
            AiAction.actor_id == actor_id,
            AiAction.client_request_id == request_id,
            AiAction.action == COMMIT_ACTION,
        )
        return self.session.execute(query).scalars().first()

    def _replay(self, action: AiAction) -> CommitResult:
        response = action.response_json
        if not isinstance(response, dict):
            return self._rejected(issues.request_in_progress())

        summary = response.get("summary") or {}
        totals = summary.get("totals")
        logger.info("Replaying committed request", request_id=action.client_request_id)
        return CommitResult(
            ok=True,
            created_ids=list(response.get("created_ids") or []),
            created_count=int(summary.get("created_count") or 0),
            totals=Totals.model_validate(totals) if totals else None,
            replayed=True,
        )

    def _rejected(self, issue: PlanIssue) -> CommitResult:
        return CommitResult(ok=False, message=issue.message, errors=[issue])
