"""PlanValidator: Plan skeleton -> NormalizedPlan + Totals.

Checks, per day:
- every entry's project exists and the target user is a member
- times parse and end after start
- a task and a location can be resolved (explicit id or default)
- entries do not overlap each other
- entries do not overlap stored entries, and the date is not locked
- stored + planned hours stay under the daily cap
- continuous work blocks respect the break policy

All checks run so the caller sees every problem at once. Stored entries with
missing or unreadable times are errors: an overlap check that cannot read
the data never passes.
"""

import datetime as dt
from dataclasses import dataclass
from datetime import datetime

from dateutil import parser as date_parser
from loguru import logger
from sqlalchemy.orm import Session

from timesheet_ai.config.settings import settings
from timesheet_ai.db.models import CREATE_TIMESHEETS_PERMISSION, LOCKED_STATUSES, Technician, Timesheet, User
from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.issues import PlanIssue
from timesheet_ai.timesheets.repository import ProjectDirectory, TimesheetStore
from timesheet_ai.timesheets.types import (
    DayTotal,
    NormalizedDay,
    NormalizedEntry,
    NormalizedPlan,
    Plan,
    PlanEntry,
    PlanValidationResult,
    Totals,
)

TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class ValidationPolicy:
    """Tenant timesheet policy thresholds."""

    daily_hour_cap: float = 12.0
    break_required_after_hours: float = 6.0
    break_min_minutes: int = 30
    debug: bool = False

    @classmethod
    def from_settings(cls) -> "ValidationPolicy":
        return cls(
            daily_hour_cap=settings.daily_hour_cap,
            break_required_after_hours=settings.break_required_after_hours,
            break_min_minutes=settings.break_min_minutes,
            debug=settings.ai_timesheet_debug,
        )


def to_minutes(value: str | None) -> int | None:
    """Minute of day for a stored or planned time, None when unreadable.

    Accepts HH:MM, HH:MM:SS and full datetimes; anything else goes through
    dateutil before giving up.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None

    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.hour * 60 + parsed.minute

    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    return parsed.hour * 60 + parsed.minute


def overlap_debug_reason(row: Timesheet) -> str:
    """Why a stored row would block overlap validation ("ok" when it would not)."""
    if not (row.start_time or "").strip():
        return "start_time_missing"
    if not (row.end_time or "").strip():
        return "end_time_missing"
    if to_minutes(row.start_time) is None:
        return "start_time_unparseable"
    if to_minutes(row.end_time) is None:
        return "end_time_unparseable"
    return "ok"


def continuous_blocks(ranges: list[tuple[int, int]], break_min_minutes: int) -> list[int]:
    """Durations (minutes) of continuous work blocks.

    A gap of at least `break_min_minutes` between entries starts a new block.
    """
    if not ranges:
        return []

    ordered = sorted(ranges)
    block_start, block_end = ordered[0]
    durations: list[int] = []

    for start, end in ordered[1:]:
        if start - block_end >= break_min_minutes:
            durations.append(block_end - block_start)
            block_start, block_end = start, end
        else:
            block_end = max(block_end, end)

    durations.append(block_end - block_start)
    return durations


def has_overlap(ranges: list[tuple[int, int]]) -> bool:
    """True when any two half-open [start, end) ranges intersect."""
    latest_end: int | None = None
    for start, end in sorted(ranges):
        if latest_end is not None and start < latest_end:
            return True
        latest_end = end if latest_end is None else max(latest_end, end)
    return False


def build_totals(days: list[NormalizedDay]) -> Totals:
    per_day: dict[str, DayTotal] = {}
    overall = 0
    for day in days:
        minutes = sum(entry.minutes for entry in day.entries)
        per_day[day.date.isoformat()] = DayTotal(minutes=minutes, hours=round(minutes / 60, 2))
        overall += minutes
    return Totals(overall_minutes=overall, overall_hours=round(overall / 60, 2), per_day=per_day)


class PlanValidator:
    """Validates plans against the tenant tables and the timesheet policy."""

    def __init__(self, session: Session, policy: ValidationPolicy | None = None):
        self.directory = ProjectDirectory(session)
        self.store = TimesheetStore(session)
        self.policy = policy or ValidationPolicy.from_settings()

    def validate(
        self,
        plan: Plan,
        actor: User,
        technician: Technician,
        target_user: User,
        enforce_breaks: bool = False,
    ) -> PlanValidationResult:
        """Validate a plan skeleton.

        Args:
            plan: Plan skeleton from the builder (or re-submitted by a client)
            actor: User asking for the timesheets
            technician: Technician the entries are booked against
            target_user: User behind the technician; project membership is checked for them
            enforce_breaks: Break policy violations are errors instead of warnings

        Returns:
            PlanValidationResult; normalized_plan and totals are set only when ok
        """
        errors: list[PlanIssue] = []
        warnings: list[PlanIssue] = []

        if not actor.has_permission(CREATE_TIMESHEETS_PERMISSION):
            errors.append(issues.permission_denied())

        if not plan.days:
            errors.append(issues.no_days())
            return PlanValidationResult(ok=False, errors=errors, warnings=warnings)

        normalized_days: list[NormalizedDay] = []
        for day in plan.days:
            if not day.entries:
                warnings.append(issues.no_entries(day.date))
                normalized_days.append(NormalizedDay(date=day.date, entries=[], breaks=day.breaks))
                continue

            entries: list[NormalizedEntry] = []
            ranges: list[tuple[int, int]] = []
            for entry in day.entries:
                normalized = self._normalize_entry(entry, day.date, target_user, errors)
                if normalized is None:
                    continue
                entries.append(normalized)
                ranges.append((to_minutes(normalized.start_time), to_minutes(normalized.end_time)))

            if has_overlap(ranges):
                errors.append(issues.overlap(day.date))

            self._check_existing(technician.id, day.date, ranges, errors)
            self._check_breaks(day.date, ranges, enforce_breaks, errors, warnings)

            normalized_days.append(NormalizedDay(date=day.date, entries=entries, breaks=day.breaks))

        logger.info(
            "Plan validated",
            technician_id=technician.id,
            day_count=len(plan.days),
            error_count=len(errors),
            warning_count=len(warnings),
        )

        if errors:
            return PlanValidationResult(ok=False, errors=errors, warnings=warnings)

        normalized_plan = NormalizedPlan(
            prompt=plan.prompt,
            timezone=plan.timezone,
            target_user_id=plan.target_user_id if plan.target_user_id is not None else target_user.id,
            technician_id=plan.technician_id if plan.technician_id is not None else technician.id,
            days=normalized_days,
        )
        return PlanValidationResult(
            ok=True,
            errors=[],
            warnings=warnings,
            normalized_plan=normalized_plan,
            totals=build_totals(normalized_days),
        )

    def _normalize_entry(
        self,
        entry: PlanEntry,
        day: dt.date,
        target_user: User,
        errors: list[PlanIssue],
    ) -> NormalizedEntry | None:
        project = self.directory.get_project(entry.project_id)
        if project is None:
            errors.append(issues.plan_project_not_found(entry.project_name or str(entry.project_id), day))
            return None

        if not self.directory.is_member(project.id, target_user.id):
            errors.append(issues.not_member(project.name, day))
            return None

        if not entry.start_time or not entry.end_time:
            errors.append(issues.missing_time(day))
            return None

        start = to_minutes(entry.start_time)
        end = to_minutes(entry.end_time)
        if start is None or end is None:
            errors.append(issues.unparseable_entry_time(entry.start_time, entry.end_time, day))
            return None
        if end <= start:
            errors.append(issues.end_not_after_start(entry.start_time, entry.end_time, day))
            return None

        if entry.task_id is not None:
            task = self.directory.task_in_project(entry.task_id, project.id)
            if task is None:
                errors.append(issues.task_not_in_project(entry.task_id, project.name, day))
                return None
        else:
            task = self.directory.default_task(project.id)
            if task is None:
                errors.append(issues.project_has_no_tasks(project.name, day))
                return None

        if entry.location_id is not None:
            location = self.directory.get_location(entry.location_id)
            if location is None:
                errors.append(issues.location_not_found(entry.location_id, day))
                return None
        else:
            location = self.directory.first_location_for_task(task) or self.directory.any_location()
            if location is None:
                errors.append(issues.no_locations(day))
                return None

        return NormalizedEntry(
            project_id=project.id,
            project_name=project.name,
            task_id=task.id,
            task_name=task.name,
            location_id=location.id,
            location_name=location.name,
            date=day,
            start_time=entry.start_time,
            end_time=entry.end_time,
            minutes=end - start,
            notes=entry.notes,
        )

    def _check_existing(
        self,
        technician_id: int,
        day: dt.date,
        ranges: list[tuple[int, int]],
        errors: list[PlanIssue],
    ) -> None:
        existing = self.store.entries_for_day(technician_id, day)

        if any((row.status or "").lower() in LOCKED_STATUSES for row in existing):
            errors.append(issues.date_locked(day))
            return

        missing = [row for row in existing if not (row.start_time or "").strip() or not (row.end_time or "").strip()]
        if missing:
            errors.append(issues.existing_missing_time(day))
            self._debug_rows("Existing entries without time", day, missing)
            return

        for start, end in ranges:
            for row in existing:
                row_start = to_minutes(row.start_time)
                row_end = to_minutes(row.end_time)
                if row_start is None or row_end is None:
                    errors.append(issues.existing_unparseable_time(day))
                    self._debug_rows("Existing entry with unparseable time", day, [row])
                    return
                if start < row_end and row_start < end:
                    errors.append(issues.existing_overlap(day))
                    return

        existing_minutes = round(sum(row.hours_worked or 0.0 for row in existing) * 60)
        planned_minutes = sum(end - start for start, end in ranges)
        if existing_minutes + planned_minutes > round(self.policy.daily_hour_cap * 60):
            errors.append(issues.daily_cap_exceeded(self.policy.daily_hour_cap, day))

    def _check_breaks(
        self,
        day: dt.date,
        ranges: list[tuple[int, int]],
        enforce_breaks: bool,
        errors: list[PlanIssue],
        warnings: list[PlanIssue],
    ) -> None:
        blocks = continuous_blocks(ranges, self.policy.break_min_minutes)
        if not blocks:
            return

        threshold = round(self.policy.break_required_after_hours * 60)
        if max(blocks) <= threshold:
            return

        issue = issues.break_required(self.policy.break_required_after_hours, day)
        if enforce_breaks:
            errors.append(issue)
        else:
            warnings.append(issue)

    def _debug_rows(self, message: str, day: dt.date, rows: list[Timesheet]) -> None:
        if not self.policy.debug:
            return
        logger.debug(
            message,
            date=day.isoformat(),
            rows=[
                {
                    "id": row.id,
                    "start_time": row.start_time,
                    "end_time": row.end_time,
                    "status": row.status,
                    "reason": overlap_debug_reason(row),
                }
                for row in rows
            ],
        )
