from pydantic import BaseModel, Field, computed_field, model_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from .enums import SprintStatus, CompletionAction, HistoryEntryType, ExitStatus, BurndownUnit
from sprintflow.utils import sprints as sprint_utils

# ============================================
# REQUESTS
# ============================================

class CreateSprintRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    goal: Optional[str] = Field(default=None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[int] = Field(default=None, ge=0)

class UpdateSprintRequest(BaseModel):
    """Only fields present in the body are written; null clears goal, dates and budget."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    goal: Optional[str] = Field(default=None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _has_changes(self):
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update")
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)

class StartSprintRequest(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class CompleteSprintRequest(BaseModel):
    action: CompletionAction
    target_sprint_id: Optional[UUID] = None
    create_next_sprint: bool = False
    done_column_ids: Optional[List[UUID]] = None

class ExtendSprintRequest(BaseModel):
    days: Optional[int] = Field(default=None, ge=1, le=90)
    new_end_date: Optional[datetime] = None

class UpdateSprintSettingsRequest(BaseModel):
    default_sprint_duration: Optional[int] = Field(default=None, ge=1, le=90)
    done_column_ids: Optional[List[UUID]] = None

    @model_validator(mode="after")
    def _at_least_one_field(self):
        if self.default_sprint_duration is None and self.done_column_ids is None:
            raise ValueError("Provide default_sprint_duration or done_column_ids")
        return self

# ============================================
# RESPONSES
# ============================================

class SprintRead(BaseModel):
    """Full sprint view, including the completion snapshot."""
    model_config = {"from_attributes": True}

    id: UUID
    project_id: UUID
    name: str
    status: SprintStatus
    goal: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[int] = None
    completed_at: Optional[datetime] = None
    completed_by_id: Optional[UUID] = None
    completed_ticket_count: Optional[int] = None
    incomplete_ticket_count: Optional[int] = None
    completed_story_points: Optional[int] = None
    incomplete_story_points: Optional[int] = None

    @computed_field
    @property
    def days_remaining(self) -> Optional[int]:
        if self.status == SprintStatus.COMPLETED:
            return None
        return sprint_utils.days_remaining(self.end_date)

    @computed_field
    @property
    def is_expired(self) -> bool:
        return self.status == SprintStatus.ACTIVE and sprint_utils.is_sprint_expired(self.end_date)

    @computed_field
    @property
    def progress(self) -> Optional[int]:
        """Percent of tickets done, from the completion snapshot."""
        if self.completed_ticket_count is None:
            return None
        total = self.completed_ticket_count + (self.incomplete_ticket_count or 0)
        return sprint_utils.sprint_progress(self.completed_ticket_count, total)

class TicketDispositionRead(BaseModel):
    completed: List[UUID] = []
    moved_to_backlog: List[UUID] = []
    carried_over: List[UUID] = []

class CompleteSprintResponse(BaseModel):
    sprint: SprintRead
    ticket_disposition: TicketDispositionRead
    next_sprint: Optional[SprintRead] = None

class SprintSettingsRead(BaseModel):
    default_sprint_duration: int
    done_column_ids: List[UUID] = []

class HistoryEntryRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    ticket_id: UUID
    sprint_id: UUID
    entry_type: HistoryEntryType
    carried_from_sprint_id: Optional[UUID] = None
    added_at: datetime
    removed_at: Optional[datetime] = None
    exit_status: Optional[ExitStatus] = None

class BurndownPoint(BaseModel):
    date: str  # YYYY-MM-DD
    day: int
    ideal: float
    remaining: int
    scope: int
    completed: int

class BurndownRead(BaseModel):
    sprint: SprintRead
    unit: BurndownUnit
    data_points: List[BurndownPoint] = []
