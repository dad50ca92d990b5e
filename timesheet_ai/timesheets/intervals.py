"""Interval extraction from free text and from structured intents.

A prompt such as

    Projeto Alpha: 09:00-12:00, break 12:00-13:00, 13:00-18:00 Beta

yields three intervals: 09:00-12:00 on Alpha (prompt-level label), a break,
and 13:00-18:00 on Beta (inline label). Project labels are resolved in order:
intent-level project > inline label > prompt-level label > builder
`projeto: X` line.
"""

import dataclasses
import re
from datetime import datetime

from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.issues import PlanIssue
from timesheet_ai.timesheets.text import (
    normalize_dashes,
    normalize_project_label,
    normalize_prompt,
    normalize_quotes,
    strip_outer_quotes,
)
from timesheet_ai.timesheets.types import Intent, Interval

_TIME_RANGE = r"\d{1,2}:\d{2}\s*-\s*\d{1,2}:\d{2}"

# (break|lunch)? HH:MM - HH:MM <label up to the next range or the end>
INTERVAL_PATTERN = re.compile(
    rf"(?:(break|lunch)\s*)?(\d{{1,2}}:\d{{2}})\s*-\s*(\d{{1,2}}:\d{{2}})(.*?)(?=(?:(?:break|lunch)\s*)?{_TIME_RANGE}|$)",
    re.IGNORECASE | re.DOTALL,
)

BREAK_KEYWORDS = ("break", "lunch")

BUILDER_TOKEN = re.compile(r"\bDATE_RANGE\s*=\s*\d{4}-\d{2}-\d{2}\s*\.\.\s*\d{4}-\d{2}-\d{2}\b", re.IGNORECASE)
BUILDER_LABEL_LINE = re.compile(
    r"^\s*(projeto|project|tarefa|task|descri[cç]ao|description|notes?|notas|observa(?:coes|ções)|bloco|block)\s*[:=]",
    re.IGNORECASE | re.MULTILINE,
)
BUILDER_PROJECT_LINE = re.compile(
    r"""^\s*(projeto|project)\s*[:=]\s*["']?(.+?)["']?\s*$""",
    re.IGNORECASE | re.MULTILINE,
)

_BLOCK_LABEL = re.compile(r"\b(?:bloco|block)\s*\d+\s*:\s*", re.IGNORECASE)
_QUOTED_PROJECT_LINE = BUILDER_PROJECT_LINE
_PROJECT_ASSIGNMENT = re.compile(r"\b(?:project|projeto)\s*[:=]\s*(.+)", re.IGNORECASE)
_PROJECT_WORD = re.compile(r"\b(?:project|projeto)\s+(.+)", re.IGNORECASE)
_LEADING_PROJECT_WORD = re.compile(r"^\s*(?:project|projeto)\s+", re.IGNORECASE)
_LEADING_CONNECTOR = re.compile(r"^\s*(?:,|and\b|e\b)\s*", re.IGNORECASE)

_TIME_TOKEN = re.compile(r"\b\d{1,2}:\d{2}\b")
_BOUNDARY_WORDS = re.compile(r"\b(?:from|to|de|a|ate|até|until)\b", re.IGNORECASE)
_DATE_RANGE_MARK = re.compile(r"DATE_RANGE\s*=")
_PUNCTUATION = re.compile(r"[;,.]")
_CONNECTOR_WORD = re.compile(r"\b(and|e)\b", re.IGNORECASE)
_FIELD_WORDS = re.compile(
    r"\b(task|tarefa|descricao|description|nota|notas|notes|pausa|break|lunch)\b",
    re.IGNORECASE,
)
_CONNECTOR_LABEL = re.compile(r"^(bloco|block)\s*\d+(?:\s*/\s*\d+)?$")


def is_valid_time(value: str) -> bool:
    try:
        datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        return False
    return True


def looks_like_builder_prompt(prompt: str) -> bool:
    """True for form-style prompts (DATE_RANGE token or `project:` style lines)."""
    return bool(BUILDER_TOKEN.search(prompt) or BUILDER_LABEL_LINE.search(prompt))


def extract_builder_project(prompt: str) -> str:
    """Project named on a `projeto: X` / `project = "X"` line, or ""."""
    match = BUILDER_PROJECT_LINE.search(normalize_quotes(prompt))
    if not match:
        return ""
    return strip_outer_quotes(match.group(2).strip()).strip()


def strip_block_labels(prompt: str) -> str:
    return _BLOCK_LABEL.sub("", prompt)


def trim_project_at_boundary(raw: str) -> str:
    """Cut a label at the first token that cannot be part of a project name."""
    raw = raw.strip()
    if not raw:
        return ""

    offsets: list[int] = []

    for pattern in (_TIME_TOKEN, _BOUNDARY_WORDS, _DATE_RANGE_MARK, _PUNCTUATION, _FIELD_WORDS):
        match = pattern.search(raw)
        if match:
            offsets.append(match.start())

    connector = _CONNECTOR_WORD.search(raw)
    if connector and _TIME_TOKEN.search(raw[connector.start():]):
        offsets.append(connector.start())

    paren = raw.find("(")
    if paren >= 0:
        offsets.append(paren)

    if not offsets:
        return raw.rstrip(":,;").strip()

    cut = min(offsets)
    if cut <= 0:
        # A label that opens with a time or the range token names no project
        if _TIME_TOKEN.match(raw) or _DATE_RANGE_MARK.match(raw):
            return ""
        return raw

    return raw[:cut].strip().rstrip(":,;").strip()


def extract_project_name(label: str) -> str:
    """Project name mentioned in a label or prompt, or ""."""
    clean = normalize_project_label(label)
    if not clean:
        return ""

    quoted = _QUOTED_PROJECT_LINE.search(clean)
    if quoted:
        return quoted.group(2).strip()

    raw = _LEADING_CONNECTOR.sub("", clean, count=1)
    matched_prefix = False
    assignment = _PROJECT_ASSIGNMENT.search(raw)
    if assignment:
        raw = assignment.group(1)
        matched_prefix = True
    else:
        word = _PROJECT_WORD.search(raw)
        if word:
            raw = word.group(1)
            matched_prefix = True

    raw = normalize_project_label(trim_project_at_boundary(raw))
    if not matched_prefix:
        raw = _LEADING_PROJECT_WORD.sub("", raw, count=1)

    return strip_outer_quotes(raw).strip()


def is_connector_label(label: str) -> bool:
    normalized = normalize_prompt(label).strip()
    if normalized in ("", ",", "e", "and"):
        return True
    return bool(_CONNECTOR_LABEL.match(normalized))


def merge_intent_notes(intent: Intent) -> str | None:
    """Intent description and notes joined as "<description> - <notes>"."""
    description = (intent.description or "").strip()
    notes = (intent.notes or "").strip()

    if description and notes:
        return f"{description} - {notes}"
    return notes or description or None


@dataclasses.dataclass
class _RangeMatch:
    start: str
    end: str
    label: str
    keyword: str


def _scan_ranges(text: str) -> list[_RangeMatch]:
    """Time ranges with their trailing label and any `break`/`lunch` word before them.

    A keyword between an unlabelled range and a labelled one closes the
    earlier range: in "12:00-13:00 lunch 13:00-17:00 Alpha" the lunch is
    12:00-13:00 and Alpha keeps the afternoon.
    """
    found = [
        _RangeMatch(
            start=match.group(2),
            end=match.group(3),
            label=(match.group(4) or "").strip(" \t\n\r\0\x0b."),
            keyword=(match.group(1) or "").lower(),
        )
        for match in INTERVAL_PATTERN.finditer(text)
    ]

    for previous, current in zip(found, found[1:]):
        if not current.keyword or previous.keyword or previous.label:
            continue
        if is_connector_label(extract_project_name(current.label)):
            continue
        previous.label, current.keyword = current.keyword, ""

    return found


def parse_intervals(
    prompt: str,
    errors: list[PlanIssue],
    *,
    intent_project: str = "",
    intent_notes: str | None = None,
    builder_project: str = "",
) -> list[Interval]:
    """Scan a prompt for HH:MM-HH:MM ranges and attach a project to each.

    Args:
        prompt: Raw prompt text
        errors: Issue list to append to
        intent_project: Project from the structured intent; overrides inline labels
        intent_notes: Notes attached to every interval
        builder_project: Canonical name from a `projeto:` line already matched in the project table

    Returns:
        Intervals in prompt order; invalid ones are reported and skipped
    """
    text = strip_block_labels(normalize_dashes(prompt))
    fallback_project = extract_project_name(text)
    intent_project = normalize_project_label(intent_project)

    intervals: list[Interval] = []
    for found in _scan_ranges(text):
        start, end, label = found.start, found.end, found.label

        label_lower = label.lower()
        is_break = bool(found.keyword) or any(keyword in label_lower for keyword in BREAK_KEYWORDS)

        if not is_valid_time(start) or not is_valid_time(end):
            errors.append(issues.invalid_time_range(start, end))
            continue

        if is_break:
            intervals.append(Interval(start_time=start, end_time=end, is_break=True, notes=intent_notes))
            continue

        project_raw = normalize_project_label(label)
        project_label = extract_project_name(label)
        if is_connector_label(project_label):
            project_label = ""
            project_raw = ""

        if intent_project:
            project_label = project_raw = intent_project
        elif not project_label and fallback_project:
            project_label = project_raw = fallback_project
        elif not project_label and builder_project:
            project_label = project_raw = builder_project

        if not project_label:
            errors.append(issues.missing_project(start, end))
            continue

        intervals.append(
            Interval(
                start_time=start,
                end_time=end,
                project_name=project_label,
                project_key=project_label.lower(),
                project_raw=project_raw,
                notes=intent_notes,
            )
        )

    return intervals


def intervals_from_intent(intent: Intent, errors: list[PlanIssue]) -> list[Interval]:
    """Synthesize intervals from Intent.schedule (work) and Intent.breaks."""
    project = normalize_project_label(intent.project or "")
    if not project:
        errors.append(issues.project_required())
        return []

    if not intent.schedule:
        errors.append(issues.schedule_required())
        return []

    notes = merge_intent_notes(intent)
    intervals: list[Interval] = []

    for block in intent.schedule:
        if not is_valid_time(block.start_time) or not is_valid_time(block.end_time):
            errors.append(issues.invalid_time_range(block.start_time, block.end_time))
            continue
        intervals.append(
            Interval(
                start_time=block.start_time,
                end_time=block.end_time,
                project_name=project,
                project_key=project.lower(),
                project_raw=project,
                notes=notes,
            )
        )

    for block in intent.breaks:
        if not is_valid_time(block.start_time) or not is_valid_time(block.end_time):
            errors.append(issues.invalid_time_range(block.start_time, block.end_time))
            continue
        intervals.append(Interval(start_time=block.start_time, end_time=block.end_time, is_break=True))

    return intervals


def merge_intervals(primary: list[Interval], secondary: list[Interval]) -> list[Interval]:
    """primary followed by the secondary intervals it does not already contain."""
    merged = list(primary)
    seen = {interval.dedup_key for interval in primary}

    for interval in secondary:
        if interval.dedup_key in seen:
            continue
        merged.append(interval)
        seen.add(interval.dedup_key)

    return merged


def apply_global_project(intervals: list[Interval], project: str) -> list[Interval]:
    """Give every unlabelled work interval the prompt-level project."""
    project = normalize_project_label(project)
    if not project:
        return intervals

    return [
        interval
        if interval.is_break or interval.project_name.strip()
        else dataclasses.replace(interval, project_name=project, project_key=project.lower(), project_raw=project)
        for interval in intervals
    ]
