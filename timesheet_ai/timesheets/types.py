"""Value types flowing through the timesheet plan pipeline.

Intent -> Plan (skeleton) -> NormalizedPlan + Totals -> created ids.

All of these are per-request values. The AI-facing types (Intent, DateRange,
TimeBlock) are built with `from_payload`, which tolerates the loosely typed
JSON a model returns instead of failing validation on it.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from timesheet_ai.timesheets.issues import PlanIssue

CREATE_TIMESHEETS_INTENT = "create_timesheets"

RelativeRangeValue = Literal["this_week", "last_week", "next_week", "last_n_workdays"]


def _text_or_none(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class DateRange(BaseModel):
    """Requested date range.

    Attributes:
        type: "absolute" or "relative"
        from_: First date (absolute ranges)
        to: Last date, inclusive (absolute ranges)
        value: Symbolic range (relative ranges): this_week, last_week, next_week, last_n_workdays
        count: Number of workdays for last_n_workdays
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    value: str | None = None
    count: int | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "DateRange":
        return cls(
            type=str(data.get("type") or ""),
            from_=_text_or_none(data.get("from")),
            to=_text_or_none(data.get("to")),
            value=_text_or_none(data.get("value")),
            count=_int_or_none(data.get("count")),
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TimeBlock(BaseModel):
    """A HH:MM-HH:MM block from the structured intent (work or break)."""

    start_time: str
    end_time: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "TimeBlock":
        start = data.get("from") or data.get("start_time")
        end = data.get("to") or data.get("end_time")
        return cls(start_time=str(start or ""), end_time=str(end or ""))

    def to_payload(self) -> dict[str, str]:
        return {"from": self.start_time, "to": self.end_time}


class Intent(BaseModel):
    """Canonical description of the timesheets a user asked for.

    Produced by merging the AI-returned object with fields extracted locally
    from the prompt; mutated in place while gaps are filled.
    """

    intent: str = ""
    date_range: DateRange | None = None
    schedule: list[TimeBlock] = []
    breaks: list[TimeBlock] = []
    project: str | None = None
    task: str | None = None
    description: str | None = None
    location: str | None = None
    notes: str | None = None
    missing_fields: list[str] = []

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Intent":
        schedule_source = data.get("schedule") or data.get("schedule_blocks") or data.get("scheduleBlocks") or []
        breaks_source = data.get("breaks") or []
        date_range = data.get("date_range")

        return cls(
            intent=str(data.get("intent") or ""),
            date_range=DateRange.from_payload(date_range) if isinstance(date_range, dict) else None,
            schedule=[TimeBlock.from_payload(item) for item in _as_list(schedule_source) if isinstance(item, dict)],
            breaks=[TimeBlock.from_payload(item) for item in _as_list(breaks_source) if isinstance(item, dict)],
            project=_text_or_none(data.get("project")),
            task=_text_or_none(data.get("task")),
            description=_text_or_none(data.get("description")),
            location=_text_or_none(data.get("location")),
            notes=_text_or_none(data.get("notes")),
            missing_fields=[str(item) for item in _as_list(data.get("missing_fields"))],
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "date_range": self.date_range.to_payload() if self.date_range else None,
            "schedule": [block.to_payload() for block in self.schedule],
            "breaks": [block.to_payload() for block in self.breaks],
            "project": self.project,
            "task": self.task,
            "description": self.description,
            "location": self.location,
            "notes": self.notes,
            "missing_fields": self.missing_fields,
        }

    def discard_missing(self, field: str) -> None:
        self.missing_fields = [name for name in self.missing_fields if name != field]


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


@dataclass(frozen=True)
class Interval:
    """A time interval extracted from the prompt or the intent.

    Never spans midnight. Break intervals carry no project.
    """

    start_time: str
    end_time: str
    project_name: str = ""
    project_key: str = ""
    project_raw: str = ""
    is_break: bool = False
    notes: str | None = None

    @property
    def dedup_key(self) -> str:
        project_key = "break" if self.is_break else self.project_key
        return f"{self.start_time}-{self.end_time}-{project_key}-{int(self.is_break)}".lower()


class PlanRequest(BaseModel):
    """Input to the plan builder.

    Either `intent` (validated upstream) or `prompt` must be present; the prompt
    is always consulted for weekday filters and free-text intervals.
    """

    prompt: str = ""
    timezone: str = "UTC"
    week_start: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    intent: Intent | None = None


class BreakSlot(BaseModel):
    start_time: str
    end_time: str


class PlanEntry(BaseModel):
    """Skeleton entry. task_id/location_id are only set when a client re-submits a plan."""

    project_id: int
    project_name: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    notes: str | None = None
    task_id: int | None = None
    location_id: int | None = None


class PlanDay(BaseModel):
    date: dt.date
    entries: list[PlanEntry] = []
    breaks: list[BreakSlot] = []


class Plan(BaseModel):
    prompt: str | None = None
    timezone: str | None = None
    target_user_id: int | None = None
    technician_id: int | None = None
    days: list[PlanDay] = []


class NormalizedEntry(BaseModel):
    project_id: int
    project_name: str
    task_id: int
    task_name: str
    location_id: int
    location_name: str
    date: dt.date
    start_time: str
    end_time: str
    minutes: int
    notes: str | None = None


class NormalizedDay(BaseModel):
    date: dt.date
    entries: list[NormalizedEntry] = []
    breaks: list[BreakSlot] = []


class NormalizedPlan(BaseModel):
    """A plan whose every entry has a real, authorized project/task/location."""

    prompt: str | None = None
    timezone: str | None = None
    target_user_id: int | None = None
    technician_id: int | None = None
    days: list[NormalizedDay] = []

    def to_plan(self) -> Plan:
        """Re-open a normalized plan as a skeleton so it can be validated again."""
        return Plan.model_validate(self.model_dump())


class DayTotal(BaseModel):
    minutes: int
    hours: float


class Totals(BaseModel):
    overall_minutes: int = 0
    overall_hours: float = 0.0
    per_day: dict[str, DayTotal] = {}


# -----------------------------
# Stage results
# -----------------------------
class IntentParseResult(BaseModel):
    """IntentExtractor outcome.

    errors are hard failures (AI unavailable, unparseable output);
    missing_fields means "ask the user for more".
    """

    ok: bool
    intent: Intent | None = None
    errors: list[PlanIssue] = []
    missing_fields: list[str] = []


class PlanBuildResult(BaseModel):
    plan: Plan | None = None
    errors: list[PlanIssue] = []
    warnings: list[PlanIssue] = []

    @property
    def ok(self) -> bool:
        return self.plan is not None and not self.errors


class PlanValidationResult(BaseModel):
    """PlanValidator outcome.

    normalized_plan and totals are only present when there are no errors;
    warnings never block them.
    """

    ok: bool
    errors: list[PlanIssue] = []
    warnings: list[PlanIssue] = []
    normalized_plan: NormalizedPlan | None = None
    totals: Totals | None = None


class PlanApplyResult(BaseModel):
    created_ids: list[int] = []
    created_count: int = 0
