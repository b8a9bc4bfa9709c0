from enum import Enum

class SprintStatus(str, Enum):
    """Sprint lifecycle: planning -> active -> completed, with reopen back to active."""
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"

class HistoryEntryType(str, Enum):
    """How a ticket entered a sprint."""
    ADDED = "added"  # Present when the sprint started
    CARRIED_OVER = "carried_over"  # Moved in from a completed sprint

class ExitStatus(str, Enum):
    """How a ticket left a sprint. A ledger row without one is still open."""
    COMPLETED = "completed"
    CARRIED_OVER = "carried_over"
    REMOVED = "removed"

class CompletionAction(str, Enum):
    """What happens to incomplete tickets when a sprint closes."""
    CLOSE_TO_NEXT = "close_to_next"  # Carry over into a planning sprint
    CLOSE_TO_BACKLOG = "close_to_backlog"  # Unassign (sprint_id = NULL)
    CLOSE_KEEP = "close_keep"  # Leave them on the completed sprint

class SprintEventType(str, Enum):
    STARTED = "sprint.started"
    COMPLETED = "sprint.completed"
    REOPENED = "sprint.reopened"
    CREATED = "sprint.created"
    UPDATED = "sprint.updated"
    DELETED = "sprint.deleted"

class BurndownUnit(str, Enum):
    POINTS = "points"
    TICKETS = "tickets"
