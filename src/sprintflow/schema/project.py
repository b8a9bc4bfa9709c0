"""
Project-side tables read by the sprint engine.

Projects, their board columns and per-project sprint settings are owned by
the rest of the tracker; the lifecycle engine only reads them.
"""
from typing import List, Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import Column, JSON

from .base import UUIDMixin, TimestampMixin


class Project(UUIDMixin, TimestampMixin, table=True):
    __tablename__ = "projects"

    key: str = Field(unique=True, index=True)  # Short code, e.g. "PUNT"
    name: str


class BoardColumn(UUIDMixin, table=True):
    """A status bucket on the project's board ("To Do", "In Progress", "Done")."""
    __tablename__ = "board_columns"

    project_id: UUID = Field(index=True, foreign_key="projects.id")
    name: str
    order: int = 0


class ProjectSprintSettings(UUIDMixin, TimestampMixin, table=True):
    """
    Per-project sprint defaults. A project without a row uses the defaults
    from sprintflow.config.
    """
    __tablename__ = "project_sprint_settings"

    project_id: UUID = Field(unique=True, index=True, foreign_key="projects.id")
    default_sprint_duration: int = 14

    # Board columns whose tickets count as finished when a sprint completes
    done_column_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
