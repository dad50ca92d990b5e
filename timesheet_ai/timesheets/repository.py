"""Read/write access to the tenant tables the pipeline touches.

The builder and validator only read through ProjectDirectory and
TimesheetStore.entries_for_day; TimesheetStore.create_draft is the single
write path and is only used by the applier.
"""

import datetime as dt

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timesheet_ai.db.models import Location, Project, ProjectMember, Task, Technician, Timesheet, User


class ProjectDirectory:
    """Project / task / location lookups for one tenant session."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_lower_name(self, name: str) -> list[Project]:
        """All projects whose lowercased name equals `name` lowercased, by id."""
        name = name.strip()
        if not name:
            return []
        query = select(Project).where(func.lower(Project.name) == name.lower()).order_by(Project.id)
        return list(self.session.execute(query).scalars().all())

    def all_projects(self) -> list[Project]:
        return list(self.session.execute(select(Project).order_by(Project.id)).scalars().all())

    def get_project(self, project_id: int) -> Project | None:
        return self.session.get(Project, project_id)

    def is_member(self, project_id: int, user_id: int) -> bool:
        query = select(ProjectMember.id).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        return self.session.execute(query).first() is not None

    def task_in_project(self, task_id: int, project_id: int) -> Task | None:
        query = select(Task).where(Task.id == task_id, Task.project_id == project_id)
        return self.session.execute(query).scalars().first()

    def default_task(self, project_id: int) -> Task | None:
        """Active tasks first, then the lowest id."""
        query = select(Task).where(Task.project_id == project_id).order_by(Task.is_active.desc(), Task.id)
        return self.session.execute(query).scalars().first()

    def get_location(self, location_id: int) -> Location | None:
        return self.session.get(Location, location_id)

    def first_location_for_task(self, task: Task) -> Location | None:
        return task.locations[0] if task.locations else None

    def any_location(self) -> Location | None:
        """Tenant-wide fallback location: active first, then the lowest id."""
        query = select(Location).order_by(Location.is_active.desc(), Location.id)
        return self.session.execute(query).scalars().first()


class TimesheetStore:
    """Persisted timesheet rows for a technician."""

    def __init__(self, session: Session):
        self.session = session

    def entries_for_day(self, technician_id: int, day: dt.date) -> list[Timesheet]:
        query = (
            select(Timesheet)
            .where(Timesheet.technician_id == technician_id, Timesheet.date == day)
            .order_by(Timesheet.id)
        )
        return list(self.session.execute(query).scalars().all())

    def create_draft(
        self,
        *,
        technician_id: int,
        project_id: int,
        task_id: int,
        location_id: int,
        day: dt.date,
        start_time: str,
        end_time: str,
        hours_worked: float,
        description: str | None,
        actor_id: int,
    ) -> Timesheet:
        timesheet = Timesheet(
            technician_id=technician_id,
            project_id=project_id,
            task_id=task_id,
            location_id=location_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            hours_worked=hours_worked,
            description=description,
            status="draft",
            created_by=actor_id,
            updated_by=actor_id,
        )
        self.session.add(timesheet)
        self.session.flush()
        logger.debug(
            f"Created draft timesheet {timesheet.id}",
            technician_id=technician_id,
            date=day.isoformat(),
        )
        return timesheet


class PeopleDirectory:
    """User and technician lookups used to resolve who a plan is for."""

    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_technician(self, technician_id: int) -> Technician | None:
        return self.session.get(Technician, technician_id)

    def technician_for_user(self, user: User) -> Technician | None:
        """The user's technician profile, by user id, then by e-mail."""
        query = select(Technician).where(Technician.user_id == user.id).order_by(Technician.id)
        technician = self.session.execute(query).scalars().first()
        if technician is not None or not user.email:
            return technician

        query = select(Technician).where(Technician.email == user.email).order_by(Technician.id)
        return self.session.execute(query).scalars().first()
