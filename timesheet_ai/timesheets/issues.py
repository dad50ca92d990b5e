"""Structured pipeline issues.

Every stage reports problems as PlanIssue values instead of raising: an issue
carries a machine-readable kind plus the date / time range / project it is
about, and a ready-to-show English message. Presentation layers can either
show `message` as-is or re-render from `kind` and the context fields.
"""

import datetime as dt
from enum import StrEnum

from pydantic import BaseModel


class IssueKind(StrEnum):
    """Kinds of problems the pipeline can report."""

    # Intent / AI collaborator
    AI_UNAVAILABLE = "ai_unavailable"
    AI_INVALID_JSON = "ai_invalid_json"

    # Plan building
    PROMPT_REQUIRED = "prompt_required"
    DATE_RANGE_REQUIRED = "date_range_required"
    INVALID_DATE_RANGE = "invalid_date_range"
    END_BEFORE_START = "end_before_start"
    WORKDAYS_COUNT = "workdays_count"
    NO_WEEKDAYS = "no_weekdays"
    INVALID_TIME_RANGE = "invalid_time_range"
    MISSING_PROJECT = "missing_project"
    PROJECT_REQUIRED = "project_required"
    SCHEDULE_REQUIRED = "schedule_required"
    NO_INTERVALS = "no_intervals"
    PROJECT_NOT_FOUND = "project_not_found"
    PROJECT_AMBIGUOUS = "project_ambiguous"

    # Plan validation
    PERMISSION_DENIED = "permission_denied"
    NO_DAYS = "no_days"
    NO_ENTRIES = "no_entries"
    NOT_MEMBER = "not_member"
    MISSING_TIME = "missing_time"
    END_NOT_AFTER_START = "end_not_after_start"
    TASK_NOT_IN_PROJECT = "task_not_in_project"
    PROJECT_HAS_NO_TASKS = "project_has_no_tasks"
    LOCATION_NOT_FOUND = "location_not_found"
    NO_LOCATIONS = "no_locations"
    OVERLAP = "overlap"
    EXISTING_OVERLAP = "existing_overlap"
    DATE_LOCKED = "date_locked"
    EXISTING_MISSING_TIME = "existing_missing_time"
    EXISTING_UNPARSEABLE_TIME = "existing_unparseable_time"
    DAILY_CAP_EXCEEDED = "daily_cap_exceeded"
    BREAK_REQUIRED = "break_required"

    # Target resolution / commit
    TARGET_FORBIDDEN = "target_forbidden"
    TARGET_NOT_FOUND = "target_not_found"
    TARGET_WITHOUT_USER = "target_without_user"
    REQUEST_INVALID = "request_invalid"
    REQUEST_IN_PROGRESS = "request_in_progress"


class PlanIssue(BaseModel):
    """A single error or warning produced by a pipeline stage."""

    kind: IssueKind
    message: str
    date: dt.date | None = None
    time_range: str | None = None
    project: str | None = None
    candidates: list[str] = []

    def __str__(self) -> str:
        return self.message


def messages(issues: list[PlanIssue]) -> list[str]:
    return [issue.message for issue in issues]


def without_kinds(issues: list[PlanIssue], *kinds: IssueKind) -> list[PlanIssue]:
    return [issue for issue in issues if issue.kind not in kinds]


def _span(start: str, end: str) -> str:
    return f"{start}-{end}"


# -----------------------------
# Intent
# -----------------------------
def ai_unavailable(error: str | None = None) -> PlanIssue:
    return PlanIssue(kind=IssueKind.AI_UNAVAILABLE, message=error or "AI intent parsing is unavailable.")


def ai_invalid_json() -> PlanIssue:
    return PlanIssue(kind=IssueKind.AI_INVALID_JSON, message="AI intent response is not valid JSON.")


# -----------------------------
# Plan building
# -----------------------------
def prompt_required() -> PlanIssue:
    return PlanIssue(kind=IssueKind.PROMPT_REQUIRED, message="Prompt is required.")


def date_range_required() -> PlanIssue:
    return PlanIssue(kind=IssueKind.DATE_RANGE_REQUIRED, message="Date range is required.")


def date_range_not_found() -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.DATE_RANGE_REQUIRED,
        message='Provide a date range or "last N workdays" in the prompt.',
    )


def invalid_date_range() -> PlanIssue:
    return PlanIssue(kind=IssueKind.INVALID_DATE_RANGE, message="Invalid date range.")


def end_before_start() -> PlanIssue:
    return PlanIssue(kind=IssueKind.END_BEFORE_START, message="End date must be after start date.")


def workdays_count() -> PlanIssue:
    return PlanIssue(kind=IssueKind.WORKDAYS_COUNT, message="Workdays count must be greater than zero.")


def no_weekdays() -> PlanIssue:
    return PlanIssue(kind=IssueKind.NO_WEEKDAYS, message="No weekdays found in the requested range.")


def invalid_time_range(start: str, end: str) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.INVALID_TIME_RANGE,
        message=f'Invalid time range "{start}-{end}".',
        time_range=_span(start, end),
    )


def missing_project(start: str, end: str) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.MISSING_PROJECT,
        message=f"Missing project name for {start}-{end}.",
        time_range=_span(start, end),
    )


def project_required() -> PlanIssue:
    return PlanIssue(kind=IssueKind.PROJECT_REQUIRED, message="Project is required.")


def schedule_required() -> PlanIssue:
    return PlanIssue(kind=IssueKind.SCHEDULE_REQUIRED, message="Schedule is required.")


def no_intervals() -> PlanIssue:
    return PlanIssue(kind=IssueKind.NO_INTERVALS, message="No time intervals found. Use HH:mm-HH:mm format.")


def project_not_found(name: str) -> PlanIssue:
    return PlanIssue(kind=IssueKind.PROJECT_NOT_FOUND, message=f'Project "{name}" not found.', project=name)


def project_ambiguous(name: str, candidates: list[str]) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.PROJECT_AMBIGUOUS,
        message=f'Project name "{name}" is ambiguous: {", ".join(candidates)}.',
        project=name,
        candidates=candidates,
    )


# -----------------------------
# Plan validation
# -----------------------------
def permission_denied() -> PlanIssue:
    return PlanIssue(kind=IssueKind.PERMISSION_DENIED, message="You do not have permission to create timesheets.")


def no_days() -> PlanIssue:
    return PlanIssue(kind=IssueKind.NO_DAYS, message="No days were generated for this plan.")


def no_entries(day: dt.date) -> PlanIssue:
    return PlanIssue(kind=IssueKind.NO_ENTRIES, message=f"No entries found for {day}.", date=day)


def plan_project_not_found(name: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.PROJECT_NOT_FOUND,
        message=f"Project {name} not found for {day}.",
        date=day,
        project=name,
    )


def not_member(project: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.NOT_MEMBER,
        message=f'User is not assigned to project "{project}" ({day}).',
        date=day,
        project=project,
    )


def missing_time(day: dt.date) -> PlanIssue:
    return PlanIssue(kind=IssueKind.MISSING_TIME, message=f"Missing time range for {day}.", date=day)


def unparseable_entry_time(start: str, end: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.INVALID_TIME_RANGE,
        message=f"Invalid time range {start}-{end} on {day}.",
        date=day,
        time_range=_span(start, end),
    )


def end_not_after_start(start: str, end: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.END_NOT_AFTER_START,
        message=f"End time must be after start time for {day} ({start}-{end}).",
        date=day,
        time_range=_span(start, end),
    )


def task_not_in_project(task_id: int, project: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.TASK_NOT_IN_PROJECT,
        message=f'Task {task_id} is not part of project "{project}" ({day}).',
        date=day,
        project=project,
    )


def project_has_no_tasks(project: str, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.PROJECT_HAS_NO_TASKS,
        message=f'Project "{project}" has no tasks ({day}).',
        date=day,
        project=project,
    )


def location_not_found(location_id: int, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.LOCATION_NOT_FOUND,
        message=f"Location {location_id} not found ({day}).",
        date=day,
    )


def no_locations(day: dt.date) -> PlanIssue:
    return PlanIssue(kind=IssueKind.NO_LOCATIONS, message=f"No locations available for {day}.", date=day)


def overlap(day: dt.date) -> PlanIssue:
    return PlanIssue(kind=IssueKind.OVERLAP, message=f"Overlapping time ranges detected on {day}.", date=day)


def existing_overlap(day: dt.date) -> PlanIssue:
    return PlanIssue(kind=IssueKind.EXISTING_OVERLAP, message=f"Overlaps with existing entry on {day}.", date=day)


def date_locked(day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.DATE_LOCKED,
        message=f"Date {day} is locked by approved/closed entries.",
        date=day,
    )


def existing_missing_time(day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.EXISTING_MISSING_TIME,
        message=f"Cannot validate overlaps on {day} due to existing entries without time.",
        date=day,
    )


def existing_unparseable_time(day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.EXISTING_UNPARSEABLE_TIME,
        message=f"Cannot validate overlaps on {day} due to unsupported existing entry data (invalid time format).",
        date=day,
    )


def daily_cap_exceeded(cap_hours: float, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.DAILY_CAP_EXCEEDED,
        message=f"Daily total exceeds {cap_hours:.0f} hours on {day}.",
        date=day,
    )


def break_required(threshold_hours: float, day: dt.date) -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.BREAK_REQUIRED,
        message=f"Break required for continuous work over {threshold_hours:.1f} hours on {day}.",
        date=day,
    )


# -----------------------------
# Target resolution / commit
# -----------------------------
def target_forbidden() -> PlanIssue:
    return PlanIssue(
        kind=IssueKind.TARGET_FORBIDDEN,
        message="Only Owner or Admin can create timesheets for another technician.",
    )


def technician_not_found() -> PlanIssue:
    return PlanIssue(kind=IssueKind.TARGET_NOT_FOUND, message="Technician not found.")


def technician_profile_not_found() -> PlanIssue:
    return PlanIssue(kind=IssueKind.TARGET_NOT_FOUND, message="Technician profile not found.")


def technician_without_user() -> PlanIssue:
    return PlanIssue(kind=IssueKind.TARGET_WITHOUT_USER, message="Technician does not have a linked user.")


def request_invalid(message: str) -> PlanIssue:
    return PlanIssue(kind=IssueKind.REQUEST_INVALID, message=message)


def request_in_progress() -> PlanIssue:
    return PlanIssue(kind=IssueKind.REQUEST_IN_PROGRESS, message="Request is already being processed.")
