"""
History Ledger Service
Append-only membership intervals of tickets in sprints.

Opening is idempotent per (ticket, sprint) pair: a pair that already has a
row, open or closed, is left alone. Closing only touches the open row and
is a no-op when there is none (tickets that predate the ledger). Rows are
only ever removed together with a deleted planning sprint.
"""
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID
from sqlmodel import Session, select, col

from sprintflow.core.logging import get_logger
from sprintflow.schema import TicketSprintHistory, HistoryEntryType, ExitStatus

logger = get_logger(__name__)


class HistoryLedger:
    def __init__(self, session: Session):
        self.session = session

    def open_entry(
        self,
        ticket_id: UUID,
        sprint_id: UUID,
        entry_type: HistoryEntryType,
        carried_from: Optional[UUID] = None,
        at: Optional[datetime] = None,
    ) -> Optional[TicketSprintHistory]:
        """Opens one entry. Returns None when the pair already has a row."""
        opened = self.open_entries([ticket_id], sprint_id, entry_type, carried_from, at)
        return opened[0] if opened else None

    def open_entries(
        self,
        ticket_ids: Iterable[UUID],
        sprint_id: UUID,
        entry_type: HistoryEntryType,
        carried_from: Optional[UUID] = None,
        at: Optional[datetime] = None,
    ) -> List[TicketSprintHistory]:
        ticket_ids = list(dict.fromkeys(ticket_ids))
        if not ticket_ids:
            return []

        existing = set(self.session.exec(
            select(TicketSprintHistory.ticket_id).where(
                TicketSprintHistory.sprint_id == sprint_id,
                col(TicketSprintHistory.ticket_id).in_(ticket_ids),
            )
        ).all())

        at = at or datetime.utcnow()
        opened = []
        for ticket_id in ticket_ids:
            if ticket_id in existing:
                continue
            entry = TicketSprintHistory(
                ticket_id=ticket_id,
                sprint_id=sprint_id,
                entry_type=entry_type,
                carried_from_sprint_id=carried_from,
                added_at=at,
            )
            self.session.add(entry)
            opened.append(entry)

        # Flush so a concurrent duplicate trips the unique constraint inside this transaction
        self.session.flush()
        logger.info(
            "history_entries_opened",
            sprint_id=str(sprint_id),
            entry_type=entry_type.value,
            opened=len(opened),
            skipped=len(existing),
        )
        return opened

    def close_entry(
        self,
        ticket_id: UUID,
        sprint_id: UUID,
        exit_status: ExitStatus,
        at: Optional[datetime] = None,
    ) -> Optional[TicketSprintHistory]:
        closed = self.close_entries([ticket_id], sprint_id, exit_status, at)
        return closed[0] if closed else None

    def close_entries(
        self,
        ticket_ids: Iterable[UUID],
        sprint_id: UUID,
        exit_status: ExitStatus,
        at: Optional[datetime] = None,
    ) -> List[TicketSprintHistory]:
        """Closes the open entry of each ticket in this sprint."""
        ticket_ids = list(ticket_ids)
        if not ticket_ids:
            return []

        open_entries = self.session.exec(
            select(TicketSprintHistory).where(
                TicketSprintHistory.sprint_id == sprint_id,
                col(TicketSprintHistory.ticket_id).in_(ticket_ids),
                col(TicketSprintHistory.exit_status).is_(None),
            )
        ).all()

        at = at or datetime.utcnow()
        for entry in open_entries:
            entry.exit_status = exit_status
            entry.removed_at = at
            self.session.add(entry)

        self.session.flush()
        logger.info(
            "history_entries_closed",
            sprint_id=str(sprint_id),
            exit_status=exit_status.value,
            closed=len(open_entries),
            requested=len(ticket_ids),
        )
        return list(open_entries)

    def discard_sprint(self, sprint_id: UUID) -> int:
        """
        Drops every row of a sprint that is being deleted. Only planning
        sprints are deleted, so these rows never describe work done in them.
        """
        entries = self.session.exec(
            select(TicketSprintHistory).where(TicketSprintHistory.sprint_id == sprint_id)
        ).all()
        for entry in entries:
            self.session.delete(entry)
        self.session.flush()
        logger.info("history_entries_discarded", sprint_id=str(sprint_id), discarded=len(entries))
        return len(entries)

    def timeline(self, ticket_id: UUID) -> List[TicketSprintHistory]:
        """A ticket's sprint memberships, oldest first."""
        return list(self.session.exec(
            select(TicketSprintHistory)
            .where(TicketSprintHistory.ticket_id == ticket_id)
            .order_by(TicketSprintHistory.added_at)
        ).all())
