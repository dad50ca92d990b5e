"""Tests for date range resolution.

Each prompt rule is exercised with literal example strings; today is
Wednesday 2026-02-11 throughout.
"""

from datetime import date, timedelta

import pytest

from timesheet_ai.timesheets.date_rules import (
    DateRuleContext,
    expand_date_range,
    filter_weekdays_if_requested,
    last_workdays,
    parse_day,
    resolve_intent_date_range,
    resolve_prompt_date_range,
    week_window,
)
from timesheet_ai.timesheets.issues import IssueKind
from timesheet_ai.timesheets.types import DateRange

TODAY = date(2026, 2, 11)


def _resolve(prompt: str, **kwargs):
    errors = []
    dates = resolve_prompt_date_range(DateRuleContext(prompt=prompt, today=TODAY, **kwargs), errors)
    return dates, errors


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (date(2026, 2, 10), date(2026, 2, 10)),
        (date(2026, 2, 10), date(2026, 2, 14)),
        (date(2026, 2, 25), date(2026, 3, 3)),
        (date(2024, 12, 30), date(2025, 1, 2)),
    ],
)
def test_expand_date_range_is_inclusive_and_consecutive(start: date, end: date) -> None:
    """Test that an absolute range expands to (end - start) + 1 consecutive days."""
    dates = expand_date_range(start, end)

    assert len(dates) == (end - start).days + 1
    assert dates[0] == start
    assert dates[-1] == end
    assert all(later - earlier == timedelta(days=1) for earlier, later in zip(dates, dates[1:]))


def test_expand_date_range_empty_when_reversed() -> None:
    assert expand_date_range(date(2026, 2, 12), date(2026, 2, 10)) == []


@pytest.mark.parametrize("count", [1, 2, 5, 7, 12])
def test_last_workdays_has_exact_count_and_no_weekends(count: int) -> None:
    """Test that last N workdays returns N dates, none on a weekend."""
    dates = last_workdays(count, TODAY)

    assert len(dates) == count
    assert all(day.weekday() < 5 for day in dates)
    assert dates == sorted(dates)
    assert dates[-1] == TODAY


def test_last_workdays_skips_the_weekend() -> None:
    assert last_workdays(5, TODAY) == [
        date(2026, 2, 5),
        date(2026, 2, 6),
        date(2026, 2, 9),
        date(2026, 2, 10),
        date(2026, 2, 11),
    ]


def test_last_workdays_from_a_sunday_starts_on_friday() -> None:
    assert last_workdays(3, date(2026, 2, 15)) == [date(2026, 2, 11), date(2026, 2, 12), date(2026, 2, 13)]


def test_week_window_anchors_on_week_start() -> None:
    """Test week windows for monday (default) and sunday starts."""
    assert week_window(TODAY, None, 0)[0] == date(2026, 2, 9)
    assert week_window(TODAY, None, 0)[-1] == date(2026, 2, 15)
    assert week_window(TODAY, "monday", -1)[0] == date(2026, 2, 2)
    assert week_window(TODAY, "monday", 1)[0] == date(2026, 2, 16)
    assert week_window(TODAY, "Sunday", 0)[0] == date(2026, 2, 8)
    assert len(week_window(TODAY, "sunday", 0)) == 7


def test_parse_day_accepts_iso_and_free_formats() -> None:
    assert parse_day("2026-02-10") == date(2026, 2, 10)
    assert parse_day("Feb 10 2026") == date(2026, 2, 10)
    with pytest.raises(ValueError, match="Invalid date"):
        parse_day("someday")


# -----------------------------
# Prompt rules
# -----------------------------
def test_date_range_token() -> None:
    dates, errors = _resolve("DATE_RANGE=2026-02-10..2026-02-11\nprojeto: Alpha")

    assert errors == []
    assert dates == [date(2026, 2, 10), date(2026, 2, 11)]


def test_date_range_token_wins_over_later_rules() -> None:
    dates, errors = _resolve("DATE_RANGE = 2026-02-02 .. 2026-02-03 last 5 workdays", start_date="2026-01-01")

    assert errors == []
    assert dates == [date(2026, 2, 2), date(2026, 2, 3)]


def test_reversed_token_is_an_error_and_stops_the_chain() -> None:
    """Test that a rule that matches an invalid range does not fall through."""
    dates, errors = _resolve("DATE_RANGE=2026-02-12..2026-02-10 last 5 workdays")

    assert dates == []
    assert [issue.kind for issue in errors] == [IssueKind.END_BEFORE_START]
    assert errors[0].message == "End date must be after start date."


def test_request_dates_default_missing_bound() -> None:
    dates, errors = _resolve("09:00-12:00 Alpha", start_date="2026-02-10")

    assert errors == []
    assert dates == [date(2026, 2, 10)]

    dates, errors = _resolve("09:00-12:00 Alpha", end_date="2026-02-12")
    assert dates == [date(2026, 2, 12)]


def test_request_dates_invalid_value() -> None:
    dates, errors = _resolve("09:00-12:00 Alpha", start_date="2026-13-45", end_date="2026-02-12")

    assert dates == []
    assert errors[0].kind == IssueKind.INVALID_DATE_RANGE


@pytest.mark.parametrize(
    "prompt",
    [
        "log 09:00-17:00 on Alpha for the last 3 workdays",
        "Últimos 3 dias úteis 09:00-17:00 Alpha",
        "ultimo 3 dias uteis",
    ],
)
def test_last_workdays_phrases(prompt: str) -> None:
    dates, errors = _resolve(prompt)

    assert errors == []
    assert dates == [date(2026, 2, 9), date(2026, 2, 10), date(2026, 2, 11)]


def test_last_zero_workdays_is_an_error() -> None:
    dates, errors = _resolve("last 0 workdays")

    assert dates == []
    assert errors[0].kind == IssueKind.WORKDAYS_COUNT


@pytest.mark.parametrize(
    ("prompt", "first_day"),
    [
        ("esta semana 09:00-17:00 Alpha", date(2026, 2, 9)),
        ("semana passada 09:00-17:00 Alpha", date(2026, 2, 2)),
        ("última semana", date(2026, 2, 2)),
        ("Próxima semana", date(2026, 2, 16)),
    ],
)
def test_portuguese_relative_weeks(prompt: str, first_day: date) -> None:
    dates, errors = _resolve(prompt)

    assert errors == []
    assert dates[0] == first_day
    assert len(dates) == 7


@pytest.mark.parametrize(
    "prompt",
    [
        "from 2026-02-10 to 2026-02-12",
        "de 2026-02-10 a 2026-02-12",
        "de 2026-02-10 até 2026-02-12",
        "2026-02-10 to 2026-02-12",
        "2026-02-10 - 2026-02-12",
        "between 2026-02-10 and 2026-02-12",
        "entre 2026-02-10 e 2026-02-12",
    ],
)
def test_absolute_range_phrasings(prompt: str) -> None:
    dates, errors = _resolve(f"{prompt} 09:00-17:00 Alpha")

    assert errors == []
    assert dates == [date(2026, 2, 10), date(2026, 2, 11), date(2026, 2, 12)]


def test_no_date_range_found() -> None:
    dates, errors = _resolve("09:00-17:00 Alpha")

    assert dates == []
    assert len(errors) == 1
    assert errors[0].kind == IssueKind.DATE_RANGE_REQUIRED
    assert errors[0].message == 'Provide a date range or "last N workdays" in the prompt.'


# -----------------------------
# Weekday filter
# -----------------------------
@pytest.mark.parametrize("phrase", ["seg-sex", "seg a sexta", "Mon-Fri", "monday to friday"])
def test_weekday_filter_drops_weekends(phrase: str) -> None:
    errors = []
    dates = expand_date_range(date(2026, 2, 13), date(2026, 2, 16))

    filtered = filter_weekdays_if_requested(dates, f"09:00-17:00 Alpha {phrase}", errors)

    assert errors == []
    assert filtered == [date(2026, 2, 13), date(2026, 2, 16)]


def test_weekday_filter_leaving_nothing_is_an_error() -> None:
    errors = []
    dates = [date(2026, 2, 14), date(2026, 2, 15)]

    assert filter_weekdays_if_requested(dates, "seg-sex", errors) == []
    assert errors[0].kind == IssueKind.NO_WEEKDAYS


def test_weekday_filter_not_requested_keeps_dates() -> None:
    errors = []
    dates = [date(2026, 2, 14), date(2026, 2, 15)]

    assert filter_weekdays_if_requested(dates, "09:00-17:00 Alpha", errors) == dates
    assert errors == []


# -----------------------------
# Intent date ranges
# -----------------------------
def test_intent_absolute_range() -> None:
    errors = []
    date_range = DateRange.model_validate({"type": "absolute", "from": "2026-02-10", "to": "2026-02-11"})

    assert resolve_intent_date_range(date_range, TODAY, None, errors) == [date(2026, 2, 10), date(2026, 2, 11)]
    assert errors == []


def test_intent_absolute_range_requires_both_bounds() -> None:
    errors = []
    date_range = DateRange(type="absolute", from_="2026-02-10")

    assert resolve_intent_date_range(date_range, TODAY, None, errors) == []
    assert errors[0].kind == IssueKind.DATE_RANGE_REQUIRED


def test_intent_relative_ranges() -> None:
    errors = []

    workdays = resolve_intent_date_range(DateRange(type="relative", value="last_n_workdays", count=2), TODAY, None, errors)
    this_week = resolve_intent_date_range(DateRange(type="relative", value="this_week"), TODAY, "monday", errors)
    last_week = resolve_intent_date_range(DateRange(type="relative", value="last_week"), TODAY, "monday", errors)

    assert errors == []
    assert workdays == [date(2026, 2, 10), date(2026, 2, 11)]
    assert this_week[0] == date(2026, 2, 9)
    assert last_week[-1] == date(2026, 2, 8)


def test_intent_unknown_range_type() -> None:
    errors = []

    assert resolve_intent_date_range(DateRange(type="fuzzy"), TODAY, None, errors) == []
    assert errors[0].kind == IssueKind.INVALID_DATE_RANGE
