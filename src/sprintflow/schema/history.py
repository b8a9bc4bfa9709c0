"""
Sprint History Ledger Schema
Append-only record of each ticket's membership interval in each sprint.

A row is opened when a ticket enters a sprint (sprint start or carry-over)
and closed (exit_status + removed_at) when it leaves. Closed rows are never
rewritten by the engine.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from .base import UUIDMixin, enum_column
from .enums import HistoryEntryType, ExitStatus

HISTORY_PAIR_CONSTRAINT = "uq_ticket_sprint_history_ticket_sprint"


class TicketSprintHistory(UUIDMixin, table=True):
    __tablename__ = "ticket_sprint_history"
    __table_args__ = (
        UniqueConstraint("ticket_id", "sprint_id", name=HISTORY_PAIR_CONSTRAINT),
    )

    ticket_id: UUID = Field(index=True, foreign_key="tickets.id")
    sprint_id: UUID = Field(index=True, foreign_key="sprints.id")

    entry_type: HistoryEntryType = Field(
        default=HistoryEntryType.ADDED,
        sa_column=enum_column(HistoryEntryType),
    )
    carried_from_sprint_id: Optional[UUID] = Field(default=None, foreign_key="sprints.id")

    added_at: datetime = Field(default_factory=datetime.utcnow)
    removed_at: Optional[datetime] = None
    exit_status: Optional[ExitStatus] = Field(
        default=None,
        sa_column=enum_column(ExitStatus, nullable=True),
    )

    @property
    def is_open(self) -> bool:
        return self.exit_status is None
