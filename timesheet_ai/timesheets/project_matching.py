"""Resolve free-text project labels to rows in the tenant project table.

Matchers run in order: exact lowercase name, raw label, quote-normalized
label, label without a leading "project"/"projeto" word, then an ASCII-folded
scan of every project. The first matcher that finds exactly one project wins;
a matcher that finds several stops the chain with an ambiguity issue.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from timesheet_ai.db.models import Project
from timesheet_ai.timesheets import issues
from timesheet_ai.timesheets.issues import PlanIssue
from timesheet_ai.timesheets.repository import ProjectDirectory
from timesheet_ai.timesheets.text import ascii_fold, normalize_quotes

_LEADING_PROJECT_WORD = re.compile(r"^\s*(?:project|projeto)\s+", re.IGNORECASE)

Matcher = Callable[[ProjectDirectory, str, str], list[Project]]


@dataclass(frozen=True)
class ProjectMatch:
    """Outcome of resolving one label: a project or an issue, never both."""

    label: str
    project: Project | None = None
    issue: PlanIssue | None = None


def _distinct(*candidates: str) -> list[str]:
    seen: list[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen


def _lookup_first_hit(directory: ProjectDirectory, candidates: list[str]) -> list[Project]:
    for candidate in candidates:
        found = directory.find_by_lower_name(candidate)
        if found:
            return found
    return []


def match_exact(directory: ProjectDirectory, name: str, raw: str) -> list[Project]:
    return directory.find_by_lower_name(name)


def match_raw(directory: ProjectDirectory, name: str, raw: str) -> list[Project]:
    if raw.strip() == name.strip():
        return []
    return directory.find_by_lower_name(raw)


def match_quote_normalized(directory: ProjectDirectory, name: str, raw: str) -> list[Project]:
    candidates = [value for value in _distinct(normalize_quotes(name), normalize_quotes(raw)) if value not in (name, raw)]
    return _lookup_first_hit(directory, candidates)


def match_without_prefix(directory: ProjectDirectory, name: str, raw: str) -> list[Project]:
    stripped = _LEADING_PROJECT_WORD.sub("", raw, count=1).strip()
    if not stripped or stripped == raw.strip():
        return []
    return directory.find_by_lower_name(stripped)


def match_folded_scan(directory: ProjectDirectory, name: str, raw: str) -> list[Project]:
    projects = directory.all_projects()
    for candidate in _distinct(name, raw):
        folded = ascii_fold(candidate.lower()).strip()
        found = [project for project in projects if ascii_fold(project.name.lower()).strip() == folded]
        if found:
            return found
    return []


MATCHERS: tuple[tuple[str, Matcher], ...] = (
    ("exact", match_exact),
    ("raw", match_raw),
    ("quote_normalized", match_quote_normalized),
    ("without_prefix", match_without_prefix),
    ("folded_scan", match_folded_scan),
)


def resolve_project(directory: ProjectDirectory, name: str, raw: str | None = None) -> ProjectMatch:
    """Resolve one project label.

    Args:
        directory: Project lookups for the tenant
        name: Cleaned project label
        raw: Label as it appeared in the prompt (defaults to name)

    Returns:
        ProjectMatch with the project, or with a not-found / ambiguous issue
    """
    raw = raw if raw is not None else name

    for matcher_name, matcher in MATCHERS:
        found = matcher(directory, name, raw)
        if not found:
            continue
        if len(found) > 1:
            candidates = [project.name for project in found]
            logger.info(f"Ambiguous project label '{name}'", matcher=matcher_name, candidates=candidates)
            return ProjectMatch(label=name, issue=issues.project_ambiguous(name, candidates))
        logger.debug(f"Project label '{name}' resolved by {matcher_name}", project_id=found[0].id)
        return ProjectMatch(label=name, project=found[0])

    return ProjectMatch(label=name, issue=issues.project_not_found(name))


def find_project_by_name(directory: ProjectDirectory, name: str) -> Project | None:
    """Exact case-insensitive lookup; the lowest id wins when several share a name."""
    found = directory.find_by_lower_name(name)
    return found[0] if found else None
