from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlmodel import Field

from .base import UUIDMixin, TimestampMixin


class Ticket(UUIDMixin, TimestampMixin, table=True):
    """
    A unit of work on the board.

    The sprint engine writes only sprint_id and the carry-over fields;
    everything else belongs to the ticket editor.
    """
    __tablename__ = "tickets"

    project_id: UUID = Field(index=True, foreign_key="projects.id")
    column_id: UUID = Field(index=True, foreign_key="board_columns.id")
    sprint_id: Optional[UUID] = Field(default=None, index=True, foreign_key="sprints.id")  # NULL = backlog

    title: str
    story_points: Optional[int] = None
    resolved_at: Optional[datetime] = None

    # Carry-over provenance
    is_carried_over: bool = False
    carried_from_sprint_id: Optional[UUID] = Field(default=None, foreign_key="sprints.id")
    carried_over_count: int = 0  # Never decreases
