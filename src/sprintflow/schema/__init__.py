from .base import UUIDMixin, TimestampMixin, enum_column
from .enums import (
    SprintStatus, HistoryEntryType, ExitStatus, CompletionAction, SprintEventType, BurndownUnit
)
from .project import Project, BoardColumn, ProjectSprintSettings
from .sprint import Sprint, ACTIVE_SPRINT_INDEX
from .ticket import Ticket
from .history import TicketSprintHistory, HISTORY_PAIR_CONSTRAINT
from .api import (
    CreateSprintRequest, UpdateSprintRequest, StartSprintRequest, CompleteSprintRequest, ExtendSprintRequest,
    UpdateSprintSettingsRequest, SprintRead, TicketDispositionRead, CompleteSprintResponse,
    SprintSettingsRead, HistoryEntryRead, BurndownPoint, BurndownRead
)

__all__ = [
    "UUIDMixin", "TimestampMixin", "enum_column",
    "SprintStatus", "HistoryEntryType", "ExitStatus", "CompletionAction", "SprintEventType",
    "BurndownUnit",
    "Project", "BoardColumn", "ProjectSprintSettings",
    "Sprint", "ACTIVE_SPRINT_INDEX",
    "Ticket",
    "TicketSprintHistory", "HISTORY_PAIR_CONSTRAINT",
    "CreateSprintRequest", "UpdateSprintRequest", "StartSprintRequest", "CompleteSprintRequest", "ExtendSprintRequest",
    "UpdateSprintSettingsRequest", "SprintRead", "TicketDispositionRead", "CompleteSprintResponse",
    "SprintSettingsRead", "HistoryEntryRead", "BurndownPoint", "BurndownRead",
]
