"""
Sprint helpers shared by the engine, the API and the CLI.
"""
import math
import re
from datetime import datetime, timezone
from typing import Optional

from sprintflow.schema.enums import SprintStatus

_TRAILING_NUMBER = re.compile(r"^(.*?)(\d+)$")

STATUS_ORDER = {
    SprintStatus.ACTIVE: 0,
    SprintStatus.PLANNING: 1,
    SprintStatus.COMPLETED: 2,
}


def generate_next_sprint_name(current_name: str) -> str:
    """
    Increments a trailing number, or appends " 2" when there is none.

    "Sprint 1" -> "Sprint 2", "Sprint 10" -> "Sprint 11",
    "January Sprint" -> "January Sprint 2"
    """
    match = _TRAILING_NUMBER.match(current_name)
    if match:
        prefix, number = match.groups()
        return f"{prefix}{int(number) + 1}"
    return f"{current_name} 2"


def days_remaining(end_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until end_date, rounded up. Negative once the sprint is over."""
    if end_date is None:
        return None
    now = now or datetime.utcnow()
    return math.ceil((end_date - now).total_seconds() / 86400)


def is_sprint_expired(end_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if end_date is None:
        return False
    return end_date < (now or datetime.utcnow())


def sprint_progress(completed_count: int, total_count: int) -> int:
    """Percentage of tickets done, 0 for an empty sprint."""
    if total_count == 0:
        return 0
    return round(completed_count / total_count * 100)


def sprint_sort_key(sprint):
    """Active first, then planning, then completed; newest start first; then name."""
    start = sprint.start_date
    return (
        STATUS_ORDER.get(sprint.status, 3),
        start is None,
        -start.timestamp() if start else 0,
        sprint.name,
    )


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; aware inputs are converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
