"""IntentExtractor: raw prompt -> canonical Intent.

The AI collaborator structures the request; fields the user wrote as
`label: value` lines fill whatever the model left blank. The result either
carries hard errors (model unavailable, output not JSON) or the list of
fields still missing, so the caller can ask a follow-up question.
"""

import json
import re
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.intent_service import IntentService
from timesheet_ai.timesheets.intervals import extract_builder_project, looks_like_builder_prompt
from timesheet_ai.timesheets.issues import PlanIssue
from timesheet_ai.timesheets.project_matching import find_project_by_name
from timesheet_ai.timesheets.repository import ProjectDirectory
from timesheet_ai.timesheets.text import normalize_label, normalize_quotes, strip_quotes
from timesheet_ai.timesheets.types import CREATE_TIMESHEETS_INTENT, DateRange, Intent, IntentParseResult

LABEL_FIELDS = {
    "project": "project",
    "projeto": "project",
    "task": "task",
    "tarefa": "task",
    "description": "description",
    "descricao": "description",
    "notes": "notes",
    "note": "notes",
    "observacoes": "notes",
    "observacao": "notes",
}

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_LABEL_SEPARATOR = re.compile(r"[:=]")


def extract_labeled_fields(prompt: str) -> dict[str, str]:
    """`label: value` / `label = value` lines keyed by Intent field name.

    A repeated label keeps its last non-empty value.
    """
    fields: dict[str, str] = {}
    for line in prompt.splitlines():
        line = normalize_quotes(line)
        if not _LABEL_SEPARATOR.search(line):
            continue

        label, value = _LABEL_SEPARATOR.split(line, maxsplit=1)
        field = LABEL_FIELDS.get(normalize_label(label))
        value = strip_quotes(value)
        if field and value:
            fields[field] = value
    return fields


def decode_json(response: str) -> dict[str, Any] | None:
    """Decode a JSON object, retrying on the first {...} span of the text."""
    try:
        decoded = json.loads(response)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(response)
        if not match:
            return None
        try:
            decoded = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return decoded if isinstance(decoded, dict) else None


def find_missing_fields(intent: Intent) -> list[str]:
    """Required fields the intent still lacks, after any the model reported."""
    missing: list[str] = []
    for name in intent.missing_fields:
        if name and name not in missing:
            missing.append(name)

    def add(name: str) -> None:
        if name not in missing:
            missing.append(name)

    intent_name = intent.intent.strip()
    if not intent_name:
        add("intent")
        return missing
    if intent_name != CREATE_TIMESHEETS_INTENT:
        return ["intent"]

    date_range = intent.date_range
    range_type = date_range.type.strip().lower() if date_range else ""
    if date_range is None:
        add("date_range")
    elif range_type == "absolute":
        if not date_range.from_ or not date_range.to:
            add("date_range")
    elif range_type == "relative":
        value = (date_range.value or "").strip()
        if not value:
            add("date_range")
        elif value == "last_n_workdays" and (date_range.count or 0) <= 0:
            add("date_range.count")
    else:
        add("date_range")

    if not intent.schedule:
        add("schedule")
    if not (intent.project or "").strip():
        add("project")

    return missing


class TimesheetIntentParser:
    """Runs the AI collaborator and completes its answer from the prompt itself."""

    def __init__(self, service: IntentService, session: Session):
        self.service = service
        self.directory = ProjectDirectory(session)

    def parse(
        self,
        prompt: str,
        timezone: str = "UTC",
        week_start: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> IntentParseResult:
        """Extract a canonical Intent from a prompt.

        Args:
            prompt: Raw user request
            timezone: IANA timezone of the tenant
            week_start: First day of the week (defaults to monday downstream)
            start_date: Explicit first date from the request, if any
            end_date: Explicit last date from the request, if any

        Returns:
            IntentParseResult; ok is True only without errors and missing fields
        """
        extracted = extract_labeled_fields(prompt)
        result = self.service.parse(prompt, timezone, week_start)

        if not result.success:
            logger.warning(f"Intent service unavailable: {result.error}")
            return self._failed(issues.ai_unavailable(result.error))

        payload = decode_json(result.response or "")
        if payload is None:
            logger.warning(
                "Intent service returned non-JSON output",
                response_preview=(result.response or "")[:200],
            )
            return self._failed(issues.ai_invalid_json())

        intent = Intent.from_payload(payload)
        self._merge_extracted(intent, extracted)
        self._resolve_builder_project(intent, prompt)

        if intent.date_range is None and (start_date or end_date):
            intent.date_range = DateRange(
                type="absolute",
                from_=start_date or end_date,
                to=end_date or start_date,
            )
            intent.discard_missing("date_range")

        missing = find_missing_fields(intent)
        intent.missing_fields = missing

        logger.info(
            "Intent parsed",
            intent=intent.intent,
            missing_fields=missing,
            schedule_blocks=len(intent.schedule),
        )
        return IntentParseResult(ok=not missing, intent=intent, errors=[], missing_fields=missing)

    def _failed(self, issue: PlanIssue) -> IntentParseResult:
        return IntentParseResult(ok=False, intent=None, errors=[issue], missing_fields=[])

    def _merge_extracted(self, intent: Intent, extracted: dict[str, str]) -> None:
        for field, value in extracted.items():
            if (getattr(intent, field) or "").strip():
                continue
            setattr(intent, field, value)
            intent.discard_missing(field)

    def _resolve_builder_project(self, intent: Intent, prompt: str) -> None:
        if not looks_like_builder_prompt(prompt):
            return
        if (intent.project or "").strip() and "project" not in intent.missing_fields:
            return

        name = extract_builder_project(prompt)
        if not name:
            return

        project = find_project_by_name(self.directory, name)
        if project is None:
            return

        intent.project = project.name
        intent.discard_missing("project")
