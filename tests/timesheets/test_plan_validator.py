"""Tests for PlanValidator."""

from datetime import date

import pytest

from timesheet_ai.db.models import Timesheet
from timesheet_ai.timesheets.issues import IssueKind
from timesheet_ai.timesheets.plan_validator import (
    PlanValidator,
    ValidationPolicy,
    continuous_blocks,
    has_overlap,
    overlap_debug_reason,
    to_minutes,
)
from timesheet_ai.timesheets.types import Plan, PlanDay, PlanEntry

DAY = date(2026, 2, 10)


def _entry(project, start: str | None, end: str | None, **kwargs) -> PlanEntry:
    return PlanEntry(project_id=project.id, project_name=project.name, start_time=start, end_time=end, **kwargs)


def _plan(*entries: PlanEntry, day: date = DAY) -> Plan:
    return Plan(prompt="test", timezone="UTC", days=[PlanDay(date=day, entries=list(entries))])


def _validate(db_session, tenant, plan: Plan, policy: ValidationPolicy | None = None, enforce_breaks: bool = False):
    validator = PlanValidator(db_session, policy=policy or ValidationPolicy())
    return validator.validate(
        plan,
        actor=tenant.actor,
        technician=tenant.actor_technician,
        target_user=tenant.actor,
        enforce_breaks=enforce_breaks,
    )


def _store(db_session, tenant, start: str | None, end: str | None, hours: float = 1.0, status: str = "draft") -> None:
    db_session.add(
        Timesheet(
            technician_id=tenant.actor_technician.id,
            project_id=tenant.alpha.id,
            date=DAY,
            start_time=start,
            end_time=end,
            hours_worked=hours,
            status=status,
        )
    )
    db_session.flush()


def _kinds(found) -> list[IssueKind]:
    return [issue.kind for issue in found]


def test_valid_plan_is_normalized_with_defaults(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "13:00"), _entry(tenant.alpha, "14:00", "18:00", notes="sprint"))

    result = _validate(db_session, tenant, plan)

    assert result.ok
    assert result.errors == []
    assert result.warnings == []
    normalized = result.normalized_plan
    assert normalized.technician_id == tenant.actor_technician.id
    assert normalized.target_user_id == tenant.actor.id
    entries = normalized.days[0].entries
    assert [(e.task_name, e.location_name, e.minutes) for e in entries] == [
        ("Development", "Office", 240),
        ("Development", "Office", 240),
    ]
    assert entries[1].notes == "sprint"
    assert result.totals.overall_minutes == 480
    assert result.totals.overall_hours == 8.0
    assert result.totals.per_day["2026-02-10"].minutes == 480


def test_actor_without_permission(db_session, tenant) -> None:
    validator = PlanValidator(db_session, policy=ValidationPolicy())

    result = validator.validate(
        _plan(_entry(tenant.alpha, "09:00", "12:00")),
        actor=tenant.outsider,
        technician=tenant.outsider_technician,
        target_user=tenant.outsider,
    )

    assert not result.ok
    assert _kinds(result.errors) == [IssueKind.PERMISSION_DENIED]
    assert result.normalized_plan is None
    assert result.totals is None


def test_plan_without_days(db_session, tenant) -> None:
    result = _validate(db_session, tenant, Plan(days=[]))

    assert not result.ok
    assert _kinds(result.errors) == [IssueKind.NO_DAYS]


def test_day_without_entries_is_a_warning(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan())

    assert result.ok
    assert _kinds(result.warnings) == [IssueKind.NO_ENTRIES]
    assert result.warnings[0].message == "No entries found for 2026-02-10."
    assert result.totals.overall_minutes == 0


def test_target_user_must_be_a_project_member(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan(_entry(tenant.gamma, "09:00", "12:00")))

    assert _kinds(result.errors) == [IssueKind.NOT_MEMBER]
    assert result.errors[0].message == 'User is not assigned to project "Gamma" (2026-02-10).'


def test_unknown_project_id(db_session, tenant) -> None:
    plan = _plan(PlanEntry(project_id=9999, project_name="Ghost", start_time="09:00", end_time="12:00"))

    result = _validate(db_session, tenant, plan)

    assert _kinds(result.errors) == [IssueKind.PROJECT_NOT_FOUND]
    assert result.errors[0].message == "Project Ghost not found for 2026-02-10."


def test_project_without_tasks(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan(_entry(tenant.beta, "09:00", "12:00")))

    assert _kinds(result.errors) == [IssueKind.PROJECT_HAS_NO_TASKS]


def test_explicit_task_must_belong_to_project(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00", task_id=tenant.delta_task.id))

    result = _validate(db_session, tenant, plan)

    assert _kinds(result.errors) == [IssueKind.TASK_NOT_IN_PROJECT]


def test_explicit_task_and_location_are_kept(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00", task_id=tenant.archive.id, location_id=tenant.remote.id))

    result = _validate(db_session, tenant, plan)

    assert result.ok
    entry = result.normalized_plan.days[0].entries[0]
    assert (entry.task_name, entry.location_name) == ("Archive", "Remote")


def test_unknown_location(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00", location_id=9999))

    result = _validate(db_session, tenant, plan)

    assert _kinds(result.errors) == [IssueKind.LOCATION_NOT_FOUND]


def test_task_without_locations_falls_back_to_an_active_location(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan(_entry(tenant.delta, "09:00", "12:00")))

    assert result.ok
    entry = result.normalized_plan.days[0].entries[0]
    assert (entry.task_name, entry.location_name) == ("Support", "Office")


@pytest.mark.parametrize(
    ("first", "second"),
    [
        (("09:00", "12:00"), ("11:00", "13:00")),
        (("11:00", "13:00"), ("09:00", "12:00")),
        (("09:00", "17:00"), ("10:00", "11:00")),
    ],
)
def test_planned_entries_must_not_overlap(db_session, tenant, first, second) -> None:
    plan = _plan(_entry(tenant.alpha, *first), _entry(tenant.alpha, *second))

    result = _validate(db_session, tenant, plan)

    assert not result.ok
    assert IssueKind.OVERLAP in _kinds(result.errors)
    assert "Overlapping time ranges detected on 2026-02-10." in [issue.message for issue in result.errors]


def test_overlap_is_reported_once_per_day(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00"), _entry(tenant.alpha, "11:00", "14:00"))

    result = _validate(db_session, tenant, plan)

    assert [issue.message for issue in result.errors] == ["Overlapping time ranges detected on 2026-02-10."]
    assert result.normalized_plan is None


def test_adjacent_entries_do_not_overlap(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00"), _entry(tenant.alpha, "12:00", "13:00"))

    assert _validate(db_session, tenant, plan).ok


def test_end_must_be_after_start(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "12:00", "09:00")))

    assert _kinds(result.errors) == [IssueKind.END_NOT_AFTER_START]


def test_entry_without_time(db_session, tenant) -> None:
    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, None, "09:00")))

    assert _kinds(result.errors) == [IssueKind.MISSING_TIME]


def test_locked_date_reports_a_single_error(db_session, tenant) -> None:
    _store(db_session, tenant, "06:00", "08:00", status="approved")

    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "09:00", "12:00")))

    assert _kinds(result.errors) == [IssueKind.DATE_LOCKED]
    assert result.errors[0].message == "Date 2026-02-10 is locked by approved/closed entries."
    assert result.normalized_plan is None


def test_overlap_with_stored_entry(db_session, tenant) -> None:
    _store(db_session, tenant, "08:00", "10:00")

    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "09:00", "12:00")))

    assert _kinds(result.errors) == [IssueKind.EXISTING_OVERLAP]
    assert result.errors[0].message == "Overlaps with existing entry on 2026-02-10."


def test_stored_entry_without_time_blocks_validation(db_session, tenant) -> None:
    _store(db_session, tenant, None, "10:00")

    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "14:00", "16:00")))

    assert _kinds(result.errors) == [IssueKind.EXISTING_MISSING_TIME]


def test_stored_entry_with_unreadable_time_blocks_validation(db_session, tenant) -> None:
    _store(db_session, tenant, "soon", "10:00")

    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "14:00", "16:00")))

    assert _kinds(result.errors) == [IssueKind.EXISTING_UNPARSEABLE_TIME]


def test_stored_full_datetimes_are_read(db_session, tenant) -> None:
    _store(db_session, tenant, "2026-02-10 06:00:00", "2026-02-10 08:00:00", hours=2.0)

    result = _validate(db_session, tenant, _plan(_entry(tenant.alpha, "09:00", "12:00")))

    assert result.ok


def test_daily_cap_counts_stored_hours(db_session, tenant) -> None:
    _store(db_session, tenant, "00:00", "05:00", hours=5.0)
    plan = _plan(_entry(tenant.alpha, "09:00", "13:00"), _entry(tenant.alpha, "14:00", "18:00"))

    result = _validate(db_session, tenant, plan)

    assert _kinds(result.errors) == [IssueKind.DAILY_CAP_EXCEEDED]
    assert result.errors[0].message == "Daily total exceeds 12 hours on 2026-02-10."


def test_custom_policy_cap(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "13:00"), _entry(tenant.alpha, "14:00", "18:00"))

    result = _validate(db_session, tenant, plan, policy=ValidationPolicy(daily_hour_cap=4))

    assert _kinds(result.errors) == [IssueKind.DAILY_CAP_EXCEEDED]
    assert result.errors[0].message == "Daily total exceeds 4 hours on 2026-02-10."


def test_long_block_is_a_warning_unless_enforced(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "16:00"))

    warned = _validate(db_session, tenant, plan)
    enforced = _validate(db_session, tenant, plan, enforce_breaks=True)

    assert warned.ok
    assert _kinds(warned.warnings) == [IssueKind.BREAK_REQUIRED]
    assert warned.warnings[0].message == "Break required for continuous work over 6.0 hours on 2026-02-10."
    assert not enforced.ok
    assert _kinds(enforced.errors) == [IssueKind.BREAK_REQUIRED]


def test_short_gap_does_not_count_as_a_break(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00"), _entry(tenant.alpha, "12:15", "16:00"))

    result = _validate(db_session, tenant, plan)

    assert _kinds(result.warnings) == [IssueKind.BREAK_REQUIRED]


def test_long_enough_gap_splits_the_block(db_session, tenant) -> None:
    plan = _plan(_entry(tenant.alpha, "09:00", "12:00"), _entry(tenant.alpha, "12:30", "16:30"))

    result = _validate(db_session, tenant, plan)

    assert result.ok
    assert result.warnings == []


# -----------------------------
# Helpers
# -----------------------------
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("09:30", 570),
        ("9:05", 545),
        ("09:30:15", 570),
        ("2026-02-10 18:45", 1125),
        ("2026-02-10 18:45:00", 1125),
        ("2026-02-10T07:05:00", 425),
        ("", None),
        (None, None),
        ("soon", None),
    ],
)
def test_to_minutes(value, expected) -> None:
    assert to_minutes(value) == expected


def test_continuous_blocks() -> None:
    assert continuous_blocks([], 30) == []
    assert continuous_blocks([(540, 720), (780, 1080)], 30) == [180, 300]
    assert continuous_blocks([(780, 1080), (540, 720)], 30) == [180, 300]
    assert continuous_blocks([(540, 720), (735, 960)], 30) == [420]


def test_has_overlap() -> None:
    assert not has_overlap([])
    assert not has_overlap([(540, 720), (720, 780)])
    assert has_overlap([(540, 1020), (600, 660), (700, 710)])


@pytest.mark.parametrize(
    ("start", "end", "reason"),
    [
        (None, "10:00", "start_time_missing"),
        ("09:00", " ", "end_time_missing"),
        ("soon", "10:00", "start_time_unparseable"),
        ("09:00", "later", "end_time_unparseable"),
        ("09:00", "10:00:00", "ok"),
    ],
)
def test_overlap_debug_reason(start, end, reason) -> None:
    assert overlap_debug_reason(Timesheet(start_time=start, end_time=end)) == reason
