"""
Sprint event notification.

Events are published after the transaction commits. Delivery is
fire-and-forget: a failing notifier is logged and never fails the
operation that produced the event.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Protocol
from uuid import UUID

from sprintflow.core.logging import get_logger
from sprintflow.schema.enums import SprintEventType

logger = get_logger(__name__)


@dataclass(frozen=True)
class SprintEvent:
    type: SprintEventType
    project_id: UUID
    sprint_id: UUID
    user_id: UUID
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "project_id": str(self.project_id),
            "sprint_id": str(self.sprint_id),
            "user_id": str(self.user_id),
            "timestamp": self.timestamp.isoformat(),
        }


class SprintEventNotifier(Protocol):
    def notify(self, event: SprintEvent) -> None: ...


class LoggingNotifier:
    """Default notifier: writes events to the structured log."""

    def notify(self, event: SprintEvent) -> None:
        logger.info("sprint_event", **event.to_dict())


class RecordingNotifier:
    """Keeps every event in memory (CLI dry runs and tests)."""

    def __init__(self):
        self.events: List[SprintEvent] = []

    def notify(self, event: SprintEvent) -> None:
        self.events.append(event)

    def types(self) -> List[SprintEventType]:
        return [event.type for event in self.events]


def publish(notifier: SprintEventNotifier, event: SprintEvent) -> None:
    try:
        notifier.notify(event)
    except Exception as e:
        logger.error("sprint_event_delivery_failed", event_type=event.type.value, error=str(e))
