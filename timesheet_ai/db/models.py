from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

CREATE_TIMESHEETS_PERMISSION = "create-timesheets"
LOCKED_STATUSES = ("approved", "closed")


class Base(DeclarativeBase):
    """Base class for all tenant database models."""


task_locations = Table(
    "task_locations",
    Base.metadata,
    Column("task_id", ForeignKey("tasks.id"), primary_key=True),
    Column("location_id", ForeignKey("locations.id"), primary_key=True),
)


class User(Base):
    """Tenant user.

    Stores:
    - role: Tenant role name (Owner, Admin, Manager, Technician)
    - permissions: Granted capability names (e.g. "create-timesheets")
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="Technician")
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    technician: Mapped[Technician | None] = relationship(back_populates="user", uselist=False)

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    def has_role(self, role: str) -> bool:
        return (self.role or "").lower() == role.lower()


class Technician(Base):
    """Technician profile; timesheets are booked against technicians, not users."""

    __tablename__ = "technicians"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    user: Mapped[User | None] = relationship(back_populates="technician")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    members: Mapped[list[ProjectMember]] = relationship(back_populates="project")
    tasks: Mapped[list[Task]] = relationship(back_populates="project")


class ProjectMember(Base):
    """Project membership; only members may book time on a project."""

    __tablename__ = "project_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    project_role: Mapped[str] = mapped_column(String, nullable=False, default="member")

    project: Mapped[Project] = relationship(back_populates="members")

    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    project: Mapped[Project] = relationship(back_populates="tasks")
    locations: Mapped[list[Location]] = relationship(secondary=task_locations, order_by="Location.id")


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Timesheet(Base):
    """Persisted timesheet row.

    start_time/end_time are stored as text: rows imported from older clients may
    carry "HH:MM", "HH:MM:SS" or full datetimes, and validation has to be able to
    see (and refuse) whatever is there.

    Status lifecycle: draft -> submitted -> approved/rejected -> closed.
    """

    __tablename__ = "timesheets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    technician_id: Mapped[int] = mapped_column(ForeignKey("technicians.id"), nullable=False, index=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False)
    task_id: Mapped[int | None] = mapped_column(ForeignKey("tasks.id"), nullable=True)
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str | None] = mapped_column(String, nullable=True)
    end_time: Mapped[str | None] = mapped_column(String, nullable=True)
    hours_worked: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_timesheets_technician_date", "technician_id", "date"),)


class AiAction(Base):
    """Idempotency record for AI-driven writes.

    One row per (actor, client request id, action); the stored response is
    replayed when the same request is committed twice.
    """

    __tablename__ = "ai_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    client_request_id: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    request_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    response_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("actor_id", "client_request_id", "action", name="uq_ai_action_request"),
    )
