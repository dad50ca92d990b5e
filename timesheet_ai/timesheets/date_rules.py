"""Date range resolution for timesheet plans.

The prompt side is an ordered rule table: each rule either does not apply
(returns None) or claims the request and returns the expanded dates. A rule
that applies but finds an invalid range records an issue and returns an empty
list, which stops the chain.

Precedence:
1. DATE_RANGE=YYYY-MM-DD..YYYY-MM-DD token
2. start_date / end_date request fields
3. "last N workdays" / "últimos N dias úteis"
4. Portuguese relative weeks (esta semana, semana passada, próxima semana)
5. Labelled absolute ranges (from X to Y, de X a Y, X - Y, between X and Y, ...)
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta

from dateutil import parser as date_parser
from loguru import logger

from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.issues import PlanIssue
from timesheet_ai.timesheets.text import normalize_prompt
from timesheet_ai.timesheets.types import DateRange

WEEK_STARTS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

RELATIVE_WEEK_OFFSETS = {
    "last_week": -1,
    "this_week": 0,
    "next_week": 1,
}

_ISO = r"(\d{4}-\d{2}-\d{2})"

DATE_RANGE_TOKEN = re.compile(rf"DATE_RANGE\s*=\s*{_ISO}\s*\.\.\s*{_ISO}", re.IGNORECASE)

LAST_WORKDAYS_PATTERNS = (
    re.compile(r"last\s+(\d+)\s+workdays", re.IGNORECASE),
    re.compile(r"ultimos?\s+(\d+)\s+dias\s+uteis", re.IGNORECASE),
)

# Tried in this order; the first match wins.
ABSOLUTE_RANGE_PATTERNS = (
    ("from_to", re.compile(rf"\bfrom\s+{_ISO}[.,]?\s+to\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("de_a", re.compile(rf"\bde\s+{_ISO}[.,]?\s+a\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("de_ate", re.compile(rf"\bde\s+{_ISO}[.,]?\s+at(?:e|é)\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("x_to_y", re.compile(rf"\b{_ISO}[.,]?\s+to\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("x_dash_y", re.compile(rf"\b{_ISO}[.,]?\s*-\s*{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("between_and", re.compile(rf"\bbetween\s+{_ISO}[.,]?\s+and\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
    ("entre_e", re.compile(rf"\bentre\s+{_ISO}[.,]?\s+e\s+{_ISO}[.,]?\b", re.IGNORECASE | re.DOTALL)),
)

WEEKDAYS_ONLY_PATTERNS = (
    re.compile(r"\b(mon|monday)\s*(?:-|to)\s*(fri|friday)\b"),
    re.compile(r"\bseg\s*(?:-|a)\s*sex\b"),
    re.compile(r"\bseg\s*(?:-|a)\s*sexta\b"),
)


@dataclass(frozen=True)
class DateRuleContext:
    """Everything a prompt rule may look at."""

    prompt: str
    today: date
    week_start: str | None = None
    start_date: str | None = None
    end_date: str | None = None

    @property
    def normalized_prompt(self) -> str:
        return normalize_prompt(self.prompt)


DateRule = Callable[[DateRuleContext, list[PlanIssue]], list[date] | None]


# -----------------------------
# Calendar helpers
# -----------------------------
def parse_day(value: str) -> date:
    """Parse a calendar date, ISO first, then any format dateutil understands.

    Raises:
        ValueError: If the value is not a date
    """
    value = value.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date: {value!r}") from e


def expand_date_range(start: date, end: date) -> list[date]:
    """Inclusive list of consecutive dates from start to end (empty if end < start)."""
    days = (end - start).days
    return [start + timedelta(days=offset) for offset in range(days + 1)]


def last_workdays(count: int, today: date) -> list[date]:
    """The last `count` Monday-Friday dates up to and including today, oldest first."""
    workdays: list[date] = []
    cursor = today
    while len(workdays) < count:
        if cursor.weekday() < 5:
            workdays.append(cursor)
        cursor -= timedelta(days=1)
    return list(reversed(workdays))


def resolve_week_start_index(week_start: str | None) -> int:
    key = (week_start or "").strip().lower() or "monday"
    return WEEK_STARTS.get(key, 0)


def week_window(today: date, week_start: str | None, offset: int) -> list[date]:
    """Seven days of the week containing today, shifted by `offset` weeks."""
    start_index = resolve_week_start_index(week_start)
    start = today - timedelta(days=(today.weekday() - start_index) % 7) + timedelta(weeks=offset)
    return expand_date_range(start, start + timedelta(days=6))


def _bounded_range(start_value: str, end_value: str, errors: list[PlanIssue]) -> list[date]:
    try:
        start = parse_day(start_value)
        end = parse_day(end_value)
    except ValueError:
        errors.append(issues.invalid_date_range())
        return []

    if end < start:
        errors.append(issues.end_before_start())
        return []

    return expand_date_range(start, end)


def _workdays_from_count(raw_count: str | int | None, today: date, errors: list[PlanIssue]) -> list[date]:
    count = int(raw_count or 0)
    if count <= 0:
        errors.append(issues.workdays_count())
        return []
    return last_workdays(count, today)


# -----------------------------
# Intent date range
# -----------------------------
def resolve_intent_date_range(
    date_range: DateRange,
    today: date,
    week_start: str | None,
    errors: list[PlanIssue],
) -> list[date]:
    """Expand a structured DateRange. Records an issue and returns [] when invalid."""
    range_type = date_range.type.strip().lower()

    if range_type == "absolute":
        if not date_range.from_ or not date_range.to:
            errors.append(issues.date_range_required())
            return []
        return _bounded_range(date_range.from_, date_range.to, errors)

    if range_type == "relative":
        value = (date_range.value or "").strip().lower()
        if value == "last_n_workdays":
            return _workdays_from_count(date_range.count, today, errors)
        if value in RELATIVE_WEEK_OFFSETS:
            return week_window(today, week_start, RELATIVE_WEEK_OFFSETS[value])

    errors.append(issues.invalid_date_range())
    return []


# -----------------------------
# Prompt rules
# -----------------------------
def match_date_range_token(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date] | None:
    match = DATE_RANGE_TOKEN.search(ctx.prompt)
    if not match:
        return None
    return _bounded_range(match.group(1), match.group(2), errors)


def match_request_dates(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date] | None:
    if not ctx.start_date and not ctx.end_date:
        return None
    start = ctx.start_date or ctx.end_date or ""
    end = ctx.end_date or ctx.start_date or ""
    return _bounded_range(start, end, errors)


def match_last_workdays(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date] | None:
    folded = ctx.normalized_prompt
    for pattern in LAST_WORKDAYS_PATTERNS:
        match = pattern.search(folded)
        if match:
            return _workdays_from_count(match.group(1), ctx.today, errors)
    return None


def match_portuguese_relative_week(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date] | None:
    folded = ctx.normalized_prompt

    if re.search(r"\bproxima\s+semana\b", folded):
        offset = 1
    elif re.search(r"\besta\s+semana\b", folded):
        offset = 0
    elif re.search(r"\bsemana\s+passada\b", folded) or re.search(r"\bultima\s+semana\b", folded):
        offset = -1
    else:
        return None

    return week_window(ctx.today, ctx.week_start, offset)


def match_absolute_range(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date] | None:
    for name, pattern in ABSOLUTE_RANGE_PATTERNS:
        match = pattern.search(ctx.prompt)
        if not match:
            continue
        logger.debug(f"Absolute date range matched by pattern '{name}'", pattern=name)
        return _bounded_range(match.group(1), match.group(2), errors)
    return None


PROMPT_DATE_RULES: tuple[tuple[str, DateRule], ...] = (
    ("date_range_token", match_date_range_token),
    ("request_dates", match_request_dates),
    ("last_workdays", match_last_workdays),
    ("relative_week_pt", match_portuguese_relative_week),
    ("absolute_range", match_absolute_range),
)


def resolve_prompt_date_range(ctx: DateRuleContext, errors: list[PlanIssue]) -> list[date]:
    """Run the prompt rule table; records an issue and returns [] when nothing resolves."""
    for name, rule in PROMPT_DATE_RULES:
        dates = rule(ctx, errors)
        if dates is None:
            continue
        logger.debug(f"Date range resolved by rule '{name}'", rule=name, day_count=len(dates))
        return dates

    errors.append(issues.date_range_not_found())
    return []


def wants_weekdays_only(prompt: str) -> bool:
    folded = normalize_prompt(prompt)
    return any(pattern.search(folded) for pattern in WEEKDAYS_ONLY_PATTERNS)


def filter_weekdays_if_requested(dates: list[date], prompt: str, errors: list[PlanIssue]) -> list[date]:
    """Drop Saturdays and Sundays when the prompt says Mon-Fri / seg-sex."""
    if not wants_weekdays_only(prompt):
        return dates

    weekdays = [day for day in dates if day.weekday() < 5]
    if not weekdays:
        errors.append(issues.no_weekdays())
    return weekdays
