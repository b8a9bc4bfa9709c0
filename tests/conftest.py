"""
Pytest configuration and shared fixtures for SprintFlow tests.

Tests run against an in-memory SQLite database: the partial unique index on
active sprints and the ledger's (ticket, sprint) constraint are enforced
there the same way as on PostgreSQL.
"""
import os

# Must be set before sprintflow.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SPRINTFLOW_MODE", "local")

import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Optional
from uuid import uuid4, UUID
from sqlmodel import SQLModel, Session, select

from sprintflow.utils.db import build_engine
from sprintflow.schema import (
    Project, BoardColumn, Sprint, SprintStatus, Ticket, TicketSprintHistory
)
from sprintflow.services.events import RecordingNotifier
from sprintflow.services.lifecycle import SprintLifecycleController


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def fetch(test_engine):
    """Reads a row through a new session so assertions never see cached state."""
    def _fetch(model, row_id):
        with Session(test_engine) as session:
            row = session.get(model, row_id)
            if row is not None:
                session.expunge(row)
            return row
    return _fetch


@pytest.fixture
def history_for(test_engine):
    """All ledger rows for a (ticket, sprint) pair."""
    def _history_for(ticket_id: UUID, sprint_id: UUID):
        with Session(test_engine, expire_on_commit=False) as session:
            return session.exec(
                select(TicketSprintHistory).where(
                    TicketSprintHistory.ticket_id == ticket_id,
                    TicketSprintHistory.sprint_id == sprint_id,
                )
            ).all()
    return _history_for


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def controller(test_engine, notifier):
    return SprintLifecycleController(test_engine, notifier=notifier)


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def board(test_engine):
    """A project with a To Do / In Progress / Done board."""
    with Session(test_engine, expire_on_commit=False) as session:
        project = Project(key="PUNT", name="Punt")
        session.add(project)
        session.commit()

        columns = {
            name: BoardColumn(project_id=project.id, name=name, order=index)
            for index, name in enumerate(["To Do", "In Progress", "Done"])
        }
        session.add_all(columns.values())
        session.commit()

        return SimpleNamespace(
            project_id=project.id,
            todo=columns["To Do"].id,
            in_progress=columns["In Progress"].id,
            done=columns["Done"].id,
        )


@pytest.fixture
def make_sprint(test_engine, board):
    def _make_sprint(
        name: str = "Sprint 1",
        status: SprintStatus = SprintStatus.PLANNING,
        project_id: Optional[UUID] = None,
        **fields,
    ) -> Sprint:
        with Session(test_engine, expire_on_commit=False) as session:
            sprint = Sprint(project_id=project_id or board.project_id, name=name, status=status, **fields)
            session.add(sprint)
            session.commit()
            return sprint
    return _make_sprint


@pytest.fixture
def make_ticket(test_engine, board):
    def _make_ticket(
        sprint: Optional[Sprint] = None,
        column_id: Optional[UUID] = None,
        story_points: Optional[int] = None,
        title: str = "Ticket",
        **fields,
    ) -> Ticket:
        with Session(test_engine, expire_on_commit=False) as session:
            ticket = Ticket(
                project_id=board.project_id,
                column_id=column_id or board.todo,
                sprint_id=sprint.id if sprint else None,
                title=title,
                story_points=story_points,
                **fields,
            )
            session.add(ticket)
            session.commit()
            return ticket
    return _make_ticket


@pytest.fixture
def active_sprint_with_tickets(controller, make_sprint, make_ticket, board, user_id):
    """
    Sprint 1, started, with:
    - t1: Done, 5 points
    - t2: In Progress, 3 points
    - t3: In Progress, 2 points
    """
    sprint = make_sprint("Sprint 1", end_date=datetime.utcnow() + timedelta(days=7))
    t1 = make_ticket(sprint, board.done, 5, title="t1")
    t2 = make_ticket(sprint, board.in_progress, 3, title="t2")
    t3 = make_ticket(sprint, board.in_progress, 2, title="t3")
    controller.start(board.project_id, sprint.id, user_id)
    return SimpleNamespace(sprint=sprint, t1=t1, t2=t2, t3=t3)
