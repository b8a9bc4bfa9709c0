"""
Timestamps are stored as naive UTC.

The installed sqlmodel must accept naive datetimes on insert; releases from
0.0.45 on reject them, which is why pyproject.toml caps the range.
"""
from datetime import datetime
from importlib.metadata import version
from sqlmodel import Session

from sprintflow.schema import Sprint, SprintStatus, TicketSprintHistory, HistoryEntryType


def test_installed_sqlmodel_accepts_naive_timestamps():
    installed = tuple(int(part) for part in version("sqlmodel").split(".")[:3])
    assert installed < (0, 0, 45)


def test_naive_utc_round_trip(test_engine, board, make_ticket):
    start = datetime(2026, 3, 2, 9, 0)

    with Session(test_engine, expire_on_commit=False) as session:
        sprint = Sprint(project_id=board.project_id, name="Sprint 1", status=SprintStatus.ACTIVE, start_date=start)
        session.add(sprint)
        session.commit()

    ticket = make_ticket(sprint)
    with Session(test_engine) as session:
        session.add(TicketSprintHistory(ticket_id=ticket.id, sprint_id=sprint.id, entry_type=HistoryEntryType.ADDED))
        session.commit()

    with Session(test_engine) as session:
        stored = session.get(Sprint, sprint.id)
        assert stored.start_date == start
        assert stored.start_date.tzinfo is None
        assert stored.created_at.tzinfo is None
