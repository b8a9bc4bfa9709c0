"""Sprint lifecycle exception types.

All of these are caller or business-rule errors and are never retried.
Storage failures are not wrapped; they propagate as raised by SQLAlchemy.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID


class SprintLifecycleError(Exception):
    """Base class for errors raised by the lifecycle engine."""


class SprintNotFound(SprintLifecycleError):
    """Raised when a sprint does not exist in the given project."""

    def __init__(self, sprint_id: UUID, project_id: Optional[UUID] = None):
        self.sprint_id = sprint_id
        self.project_id = project_id
        super().__init__(f"Sprint {sprint_id} not found")


class InvalidTransition(SprintLifecycleError):
    """Raised when an operation is attempted from the wrong sprint status."""

    def __init__(self, sprint_id: UUID, from_status, operation: str):
        self.sprint_id = sprint_id
        self.from_status = from_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} sprint {sprint_id}: sprint is {from_status.value}"
        )


class ConflictingActiveSprint(SprintLifecycleError):
    """Raised when another sprint in the project is already active."""

    def __init__(self, active_sprint_id: Optional[UUID], active_sprint_name: str):
        self.active_sprint_id = active_sprint_id
        self.active_sprint_name = active_sprint_name
        super().__init__(
            f'Another sprint "{active_sprint_name}" is already active. Complete it first.'
        )


class InvalidTarget(SprintLifecycleError):
    """Raised when a carry-over target sprint is missing or not in planning."""

    def __init__(self, target_sprint_id: UUID, reason: str = "not found or not in planning status"):
        self.target_sprint_id = target_sprint_id
        self.reason = reason
        super().__init__(f"Target sprint {target_sprint_id} {reason}")


class InvalidEndDate(SprintLifecycleError):
    """Raised when an extension would not move the end date into the future."""

    def __init__(self, end_date: datetime):
        self.end_date = end_date
        super().__init__(f"New end date must be in the future (got {end_date.isoformat()})")


class CapabilityDenied(SprintLifecycleError):
    """Raised by the HTTP layer when the caller may not manage sprints."""

    def __init__(self, user_id: UUID, project_id: UUID, capability: str):
        self.user_id = user_id
        self.project_id = project_id
        self.capability = capability
        super().__init__(f"User {user_id} lacks '{capability}' on project {project_id}")
