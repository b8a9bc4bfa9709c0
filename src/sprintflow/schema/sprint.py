from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import Index, text

from .base import UUIDMixin, TimestampMixin, enum_column
from .enums import SprintStatus

ACTIVE_SPRINT_INDEX = "uq_sprints_one_active_per_project"


class Sprint(UUIDMixin, TimestampMixin, table=True):
    """
    A time-boxed planning container scoped to one project.

    At most one sprint per project may be active. The partial unique index
    below enforces that in storage, independently of transaction isolation.
    """
    __tablename__ = "sprints"
    __table_args__ = (
        Index(
            ACTIVE_SPRINT_INDEX,
            "project_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    project_id: UUID = Field(index=True, foreign_key="projects.id")

    name: str
    status: SprintStatus = Field(
        default=SprintStatus.PLANNING,
        sa_column=enum_column(SprintStatus, index=True),
    )
    goal: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[int] = None  # Capacity in story points

    # Completion snapshot: written on completion, cleared on reopen
    completed_at: Optional[datetime] = None
    completed_by_id: Optional[UUID] = None
    completed_ticket_count: Optional[int] = None
    incomplete_ticket_count: Optional[int] = None
    completed_story_points: Optional[int] = None
    incomplete_story_points: Optional[int] = None
