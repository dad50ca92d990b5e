"""Exception types for the timesheet pipeline.

User-facing problems are reported as PlanIssue values, not raised. These
exceptions cover misuse of the pipeline and collaborator failures.
"""


class TimesheetAiError(RuntimeError):
    """Base class for timesheet pipeline exceptions."""


class PlanNotValidatedError(TimesheetAiError):
    """Raised when a plan is applied without a successful validation result.

    Attributes:
        errors: Messages of the validation errors that were ignored
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Plan has not passed validation: {errors}")


class IntentServiceError(TimesheetAiError):
    """Raised inside the AI intent service when the model call fails."""
