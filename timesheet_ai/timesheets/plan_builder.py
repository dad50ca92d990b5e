"""PlanBuilder: Intent and/or prompt -> day-by-day Plan skeleton.

Steps:
1. Resolve the date range (intent first, then the prompt rule table)
2. Drop weekends when the prompt asks for weekdays only
3. Extract work/break intervals from the intent and the prompt
4. Resolve every distinct project label against the tenant project table
5. Repeat the same entries and breaks on every date

Every independent problem is collected; any error means no plan.
"""

from loguru import logger
from sqlalchemy.orm import Session

from timesheet_ai.db.models import Project
from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.clock import Clock
from timesheet_ai.timesheets.date_rules import (
    DateRuleContext,
    filter_weekdays_if_requested,
    resolve_intent_date_range,
    resolve_prompt_date_range,
)
from timesheet_ai.timesheets.intervals import (
    apply_global_project,
    extract_builder_project,
    extract_project_name,
    intervals_from_intent,
    looks_like_builder_prompt,
    merge_intent_notes,
    merge_intervals,
    parse_intervals,
    strip_block_labels,
)
from timesheet_ai.timesheets.issues import IssueKind, PlanIssue, without_kinds
from timesheet_ai.timesheets.project_matching import find_project_by_name, resolve_project
from timesheet_ai.timesheets.repository import ProjectDirectory
from timesheet_ai.timesheets.text import normalize_dashes
from timesheet_ai.timesheets.types import (
    BreakSlot,
    Interval,
    Plan,
    PlanBuildResult,
    PlanDay,
    PlanEntry,
    PlanRequest,
)


class TimesheetPlanBuilder:
    """Builds unvalidated plans; reads the project table, never writes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.directory = ProjectDirectory(session)
        self.clock = clock or Clock()

    def build(
        self,
        request: PlanRequest,
        target_user_id: int | None = None,
        technician_id: int | None = None,
    ) -> PlanBuildResult:
        """Build a plan skeleton.

        Args:
            request: Prompt, timezone, optional week start / explicit dates / intent
            target_user_id: User the timesheets are for (copied onto the plan)
            technician_id: Technician the timesheets are booked against

        Returns:
            PlanBuildResult with a plan, or with the errors that prevented one
        """
        prompt = request.prompt or ""
        intent = request.intent.model_copy(deep=True) if request.intent else None
        errors: list[PlanIssue] = []
        warnings: list[PlanIssue] = []

        if not prompt.strip() and intent is None:
            return PlanBuildResult(errors=[issues.prompt_required()])

        today = self.clock.today(request.timezone)
        if intent is not None and intent.date_range is not None:
            dates = resolve_intent_date_range(intent.date_range, today, request.week_start, errors)
        else:
            context = DateRuleContext(
                prompt=prompt,
                today=today,
                week_start=request.week_start,
                start_date=request.start_date,
                end_date=request.end_date,
            )
            dates = resolve_prompt_date_range(context, errors)

        if dates:
            dates = filter_weekdays_if_requested(dates, prompt, errors)

        global_project = extract_project_name(strip_block_labels(normalize_dashes(prompt)))
        builder_project = self._builder_project(prompt)

        if intent is not None:
            if global_project and not (intent.project or "").strip():
                intent.project = global_project

            intent_intervals = intervals_from_intent(intent, errors)
            prompt_intervals = parse_intervals(
                prompt,
                errors,
                intent_project=intent.project or "",
                intent_notes=merge_intent_notes(intent),
                builder_project=builder_project,
            )
            intervals = merge_intervals(intent_intervals, prompt_intervals)
            if prompt_intervals:
                errors = without_kinds(errors, IssueKind.PROJECT_REQUIRED, IssueKind.SCHEDULE_REQUIRED)
        else:
            intervals = parse_intervals(prompt, errors, builder_project=builder_project)

        if global_project:
            intervals = apply_global_project(intervals, global_project)
            errors = without_kinds(errors, IssueKind.PROJECT_REQUIRED)

        # a breaks-only prompt still yields days, with no entries
        if not intervals and not errors:
            errors.append(issues.no_intervals())

        work = [interval for interval in intervals if not interval.is_break]
        projects = self._resolve_projects(work, errors)

        if errors:
            logger.info(
                "Plan build failed",
                error_count=len(errors),
                kinds=[issue.kind.value for issue in errors],
            )
            return PlanBuildResult(errors=errors, warnings=warnings)

        breaks = [
            BreakSlot(start_time=interval.start_time, end_time=interval.end_time)
            for interval in intervals
            if interval.is_break
        ]
        days = [
            PlanDay(
                date=day,
                entries=[
                    PlanEntry(
                        project_id=projects[interval.project_key].id,
                        project_name=projects[interval.project_key].name,
                        start_time=interval.start_time,
                        end_time=interval.end_time,
                        notes=interval.notes,
                    )
                    for interval in work
                ],
                breaks=list(breaks),
            )
            for day in dates
        ]
        plan = Plan(
            prompt=prompt,
            timezone=request.timezone,
            target_user_id=target_user_id,
            technician_id=technician_id,
            days=days,
        )

        logger.info(
            "Plan built",
            day_count=len(days),
            entries_per_day=len(work),
            break_count=len(breaks),
            technician_id=technician_id,
        )
        return PlanBuildResult(plan=plan, errors=[], warnings=warnings)

    def _builder_project(self, prompt: str) -> str:
        """Canonical name of the project on a `projeto: X` line, if the table has it."""
        if not looks_like_builder_prompt(prompt):
            return ""
        name = extract_builder_project(prompt)
        if not name:
            return ""
        project = find_project_by_name(self.directory, name)
        return project.name if project else ""

    def _resolve_projects(self, intervals: list[Interval], errors: list[PlanIssue]) -> dict[str, Project]:
        resolved: dict[str, Project] = {}
        attempted: set[str] = set()
        for interval in intervals:
            if interval.project_key in attempted:
                continue
            attempted.add(interval.project_key)

            match = resolve_project(self.directory, interval.project_name, interval.project_raw)
            if match.issue is not None:
                errors.append(match.issue)
                continue
            resolved[interval.project_key] = match.project
        return resolved
