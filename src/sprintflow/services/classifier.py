"""
Ticket classification for sprint completion.

Pure functions over an in-memory snapshot: the same tickets and done-column
set always give the same partition.
"""
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Set
from uuid import UUID

from sprintflow.schema import BoardColumn, Ticket

ColumnPredicate = Callable[[str], bool]

DONE_COLUMN_NAMES = frozenset({"done", "complete", "completed", "closed", "resolved", "finished"})


def is_completed_column(column_name: str) -> bool:
    """Default "done" heuristic: the trimmed, lower-cased name is a known done label."""
    return column_name.strip().lower() in DONE_COLUMN_NAMES


def resolve_done_column_ids(
    columns: Iterable[BoardColumn],
    explicit_ids: Optional[Iterable[UUID]] = None,
    predicate: ColumnPredicate = is_completed_column,
) -> Set[UUID]:
    """
    Explicit ids win, even when empty. Otherwise every column whose name the
    predicate accepts counts as done.
    """
    if explicit_ids is not None:
        return set(explicit_ids)
    return {column.id for column in columns if predicate(column.name)}


@dataclass
class Classification:
    completed: List[Ticket] = field(default_factory=list)
    incomplete: List[Ticket] = field(default_factory=list)

    @property
    def completed_ids(self) -> List[UUID]:
        return [ticket.id for ticket in self.completed]

    @property
    def incomplete_ids(self) -> List[UUID]:
        return [ticket.id for ticket in self.incomplete]

    @property
    def completed_ticket_count(self) -> int:
        return len(self.completed)

    @property
    def incomplete_ticket_count(self) -> int:
        return len(self.incomplete)

    @property
    def completed_story_points(self) -> int:
        return _sum_points(self.completed)

    @property
    def incomplete_story_points(self) -> int:
        return _sum_points(self.incomplete)


def _sum_points(tickets: Sequence[Ticket]) -> int:
    # Unestimated tickets count as 0
    return sum(ticket.story_points or 0 for ticket in tickets)


def classify_tickets(tickets: Iterable[Ticket], done_column_ids: Set[UUID]) -> Classification:
    """Partitions tickets by whether their column is a done column. Input order is kept."""
    result = Classification()
    for ticket in tickets:
        if ticket.column_id in done_column_ids:
            result.completed.append(ticket)
        else:
            result.incomplete.append(ticket)
    return result
