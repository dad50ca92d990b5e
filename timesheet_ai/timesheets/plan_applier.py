"""PlanApplier: NormalizedPlan -> draft timesheet rows.

No validation happens here. Only a result that passed PlanValidator may be
applied; the caller owns the transaction.
"""

from loguru import logger
from sqlalchemy.orm import Session

from timesheet_ai.db.models import User
from timesheet_ai.timesheets.errors import PlanNotValidatedError
from timesheet_ai.timesheets.issues import messages
from timesheet_ai.timesheets.repository import TimesheetStore
from timesheet_ai.timesheets.types import NormalizedPlan, PlanApplyResult, PlanValidationResult


class PlanApplier:
    def __init__(self, session: Session):
        self.store = TimesheetStore(session)

    def apply(self, plan: NormalizedPlan, actor: User) -> PlanApplyResult:
        """Create one draft timesheet per normalized entry.

        Args:
            plan: Normalized plan; must carry technician_id
            actor: User recorded as creator/updater

        Returns:
            PlanApplyResult with the created ids in plan order
        """
        if plan.technician_id is None:
            raise PlanNotValidatedError(["Normalized plan has no technician."])

        created_ids: list[int] = []
        for day in plan.days:
            for entry in day.entries:
                timesheet = self.store.create_draft(
                    technician_id=plan.technician_id,
                    project_id=entry.project_id,
                    task_id=entry.task_id,
                    location_id=entry.location_id,
                    day=entry.date,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    hours_worked=round(entry.minutes / 60, 2),
                    description=entry.notes,
                    actor_id=actor.id,
                )
                created_ids.append(timesheet.id)

        logger.info(
            "Plan applied",
            technician_id=plan.technician_id,
            created_count=len(created_ids),
            actor_id=actor.id,
        )
        return PlanApplyResult(created_ids=created_ids, created_count=len(created_ids))

    def apply_validated(self, result: PlanValidationResult, actor: User) -> PlanApplyResult:
        """Apply the normalized plan of a validation result.

        Raises:
            PlanNotValidatedError: If the result has errors or no normalized plan
        """
        if not result.ok or result.normalized_plan is None:
            raise PlanNotValidatedError(messages(result.errors))
        return self.apply(result.normalized_plan, actor)
