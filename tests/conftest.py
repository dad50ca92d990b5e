"""Root conftest for all tests.

Shared fixtures:
- db_session: isolated in-memory SQLite session with the schema created
- tenant: a small seeded tenant (users, technicians, projects, tasks, locations)
- clock: FixedClock on Wednesday 2026-02-11 12:00 UTC
- StubIntentService: scripted AI collaborator
"""

import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from timesheet_ai.db.models import (
    CREATE_TIMESHEETS_PERMISSION,
    Base,
    Location,
    Project,
    ProjectMember,
    Task,
    Technician,
    User,
)
from timesheet_ai.timesheets.clock import FixedClock
from timesheet_ai.timesheets.intent_service import IntentServiceResult


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints in SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
def db_session(monkeypatch):
    """
    Provides a transactional in-memory SQLite DB session for tests.

    This fixture:
    - Creates an isolated in-memory SQLite database per test
    - Patches the engine getters to use it
    - Patches get_session() (and the CLI's imported copy) to yield the test session
    - Rolls the outer transaction back at the end
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    def mock_get_engine():
        return engine

    monkeypatch.setattr("timesheet_ai.db.session._get_engine", mock_get_engine)
    monkeypatch.setattr("timesheet_ai.db.session.get_engine", mock_get_engine)

    Base.metadata.create_all(engine)

    connection = engine.connect()
    transaction = connection.begin()
    test_session_local = sessionmaker(bind=connection, autocommit=False, autoflush=False)
    session = test_session_local()

    @contextmanager
    def mock_get_session():
        yield session
        session.flush()

    import timesheet_ai.db.session as session_module

    monkeypatch.setattr(session_module, "get_session", mock_get_session)

    import cli.cli as cli_module

    monkeypatch.setattr(cli_module, "get_session", mock_get_session)
    monkeypatch.setattr(cli_module, "get_engine", mock_get_engine)

    try:
        yield session
    finally:
        session.rollback()
        if transaction.is_active:
            transaction.rollback()
        session.close()
        connection.close()
        engine.dispose()


@dataclass
class Tenant:
    """Seeded tenant records.

    - actor: technician user with the create permission, member of Alpha, Beta, Delta
    - admin: Admin user with the create permission and no technician profile
    - outsider: user without the create permission, member of Alpha
    - Alpha: task Development (location Office) + inactive task Archive
    - Beta: member project without tasks
    - Gamma: project the actor is not a member of
    - Delta: member project whose task has no locations
    """

    actor: User
    actor_technician: Technician
    admin: User
    outsider: User
    outsider_technician: Technician
    alpha: Project
    beta: Project
    gamma: Project
    delta: Project
    development: Task
    archive: Task
    delta_task: Task
    office: Location
    remote: Location


@pytest.fixture
def tenant(db_session) -> Tenant:
    actor = User(name="Ana Souza", email="ana@example.com", role="Technician", permissions=[CREATE_TIMESHEETS_PERMISSION])
    admin = User(name="Admin", email="admin@example.com", role="Admin", permissions=[CREATE_TIMESHEETS_PERMISSION])
    outsider = User(name="Bruno Lima", email="bruno@example.com", role="Technician", permissions=[])
    db_session.add_all([actor, admin, outsider])
    db_session.flush()

    actor_technician = Technician(user_id=actor.id, name=actor.name, email=actor.email)
    outsider_technician = Technician(user_id=outsider.id, name=outsider.name, email=outsider.email)

    office = Location(name="Office", is_active=True)
    remote = Location(name="Remote", is_active=False)

    alpha = Project(name="Alpha")
    beta = Project(name="Beta")
    gamma = Project(name="Gamma")
    delta = Project(name="Delta")
    db_session.add_all([actor_technician, outsider_technician, office, remote, alpha, beta, gamma, delta])
    db_session.flush()

    development = Task(project_id=alpha.id, name="Development", is_active=True)
    archive = Task(project_id=alpha.id, name="Archive", is_active=False)
    delta_task = Task(project_id=delta.id, name="Support", is_active=True)
    development.locations.append(office)
    db_session.add_all([archive, development, delta_task])

    for project in (alpha, beta, delta):
        db_session.add(ProjectMember(project_id=project.id, user_id=actor.id))
    db_session.add(ProjectMember(project_id=alpha.id, user_id=outsider.id))
    db_session.flush()

    return Tenant(
        actor=actor,
        actor_technician=actor_technician,
        admin=admin,
        outsider=outsider,
        outsider_technician=outsider_technician,
        alpha=alpha,
        beta=beta,
        gamma=gamma,
        delta=delta,
        development=development,
        archive=archive,
        delta_task=delta_task,
        office=office,
        remote=remote,
    )


@pytest.fixture
def clock() -> FixedClock:
    """Wednesday 2026-02-11, noon UTC."""
    return FixedClock(datetime(2026, 2, 11, 12, 0))


class StubIntentService:
    """IntentService returning a scripted payload (or failure) and recording calls."""

    def __init__(self, payload: dict[str, Any] | str | None = None, error: str | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    def parse(self, prompt: str, timezone: str, week_start: str | None = None) -> IntentServiceResult:
        self.calls.append(prompt)
        if self.error is not None or self.payload is None:
            return IntentServiceResult(success=False, error=self.error)
        response = self.payload if isinstance(self.payload, str) else json.dumps(self.payload)
        return IntentServiceResult(success=True, response=response)


@pytest.fixture
def stub_intent_service():
    return StubIntentService
