"""Sprint state-machine transitions defined as data."""
from uuid import UUID

from sprintflow.schema.enums import SprintStatus
from .exceptions import InvalidTransition

VALID_TRANSITIONS: dict[str, tuple[SprintStatus, SprintStatus]] = {
    "start": (SprintStatus.PLANNING, SprintStatus.ACTIVE),
    "complete": (SprintStatus.ACTIVE, SprintStatus.COMPLETED),
    "reopen": (SprintStatus.COMPLETED, SprintStatus.ACTIVE),
    # Extending keeps the sprint active
    "extend": (SprintStatus.ACTIVE, SprintStatus.ACTIVE),
    # Only a sprint that never ran can be deleted
    "delete": (SprintStatus.PLANNING, SprintStatus.PLANNING),
}


def validate_transition(sprint_id: UUID, current: SprintStatus, operation: str) -> SprintStatus:
    """Return the status the operation leads to, or raise InvalidTransition."""
    required, target = VALID_TRANSITIONS[operation]
    if current != required:
        raise InvalidTransition(sprint_id, current, operation)
    return target
