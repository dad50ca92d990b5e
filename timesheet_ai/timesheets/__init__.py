"""Timesheets module - natural-language timesheet plan pipeline.

This module provides:
- IntentExtractor: prompt -> canonical Intent (AI + local label extraction)
- PlanBuilder: Intent/prompt -> day-by-day plan skeleton
- PlanValidator: skeleton -> normalized plan + totals, with overlap/cap/break checks
- PlanApplier: normalized plan -> draft timesheet rows
- TimesheetAssistant: preview-then-commit flow over the four stages
"""

from timesheet_ai.timesheets.clock import Clock, FixedClock
from timesheet_ai.timesheets.errors import IntentServiceError, PlanNotValidatedError, TimesheetAiError
from timesheet_ai.timesheets.intent_parser import TimesheetIntentParser
from timesheet_ai.timesheets.intent_service import IntentService, IntentServiceResult, TimesheetIntentService
from timesheet_ai.timesheets.issues import IssueKind, PlanIssue
from timesheet_ai.timesheets.plan_applier import PlanApplier
from timesheet_ai.timesheets.plan_builder import TimesheetPlanBuilder
from timesheet_ai.timesheets.plan_validator import PlanValidator, ValidationPolicy
from timesheet_ai.timesheets.service import CommitResult, PreviewResult, TimesheetAssistant
from timesheet_ai.timesheets.types import (
    DateRange,
    Intent,
    IntentParseResult,
    NormalizedPlan,
    Plan,
    PlanApplyResult,
    PlanBuildResult,
    PlanRequest,
    PlanValidationResult,
    TimeBlock,
    Totals,
)

__all__ = [
    "Clock",
    "CommitResult",
    "DateRange",
    "FixedClock",
    "Intent",
    "IntentParseResult",
    "IntentService",
    "IntentServiceError",
    "IntentServiceResult",
    "IssueKind",
    "NormalizedPlan",
    "Plan",
    "PlanApplier",
    "PlanApplyResult",
    "PlanBuildResult",
    "PlanIssue",
    "PlanNotValidatedError",
    "PlanRequest",
    "PlanValidationResult",
    "PlanValidator",
    "PreviewResult",
    "TimeBlock",
    "TimesheetAiError",
    "TimesheetAssistant",
    "TimesheetIntentParser",
    "TimesheetIntentService",
    "TimesheetPlanBuilder",
    "Totals",
    "ValidationPolicy",
]
