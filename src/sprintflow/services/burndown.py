"""
Burndown read model.

Rebuilds per-day scope and completed work from the history ledger. Tickets
assigned to the sprint without a ledger row (e.g. added before the ledger
existed) count from max(sprint start, ticket creation).
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional
from uuid import UUID
from sqlmodel import Session, select

from sprintflow.schema import Sprint, SprintStatus, Ticket, TicketSprintHistory, BurndownUnit


@dataclass
class _Membership:
    story_points: int
    resolved_at: Optional[datetime]
    added_at: datetime
    removed_at: Optional[datetime]


def _day_start(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def _day_end(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


class BurndownService:
    def __init__(self, session: Session):
        self.session = session

    def _memberships(self, sprint: Sprint) -> List[_Membership]:
        memberships: Dict[UUID, _Membership] = {}

        rows = self.session.exec(
            select(TicketSprintHistory, Ticket)
            .join(Ticket, TicketSprintHistory.ticket_id == Ticket.id)
            .where(TicketSprintHistory.sprint_id == sprint.id)
        ).all()
        for entry, ticket in rows:
            memberships[ticket.id] = _Membership(
                story_points=ticket.story_points or 0,
                resolved_at=ticket.resolved_at,
                added_at=entry.added_at,
                removed_at=entry.removed_at,
            )

        assigned = self.session.exec(
            select(Ticket).where(Ticket.sprint_id == sprint.id, Ticket.project_id == sprint.project_id)
        ).all()
        for ticket in assigned:
            if ticket.id in memberships:
                continue
            memberships[ticket.id] = _Membership(
                story_points=ticket.story_points or 0,
                resolved_at=ticket.resolved_at,
                added_at=max(ticket.created_at, sprint.start_date),
                removed_at=None,
            )
        return list(memberships.values())

    def compute(self, sprint: Sprint, unit: BurndownUnit = BurndownUnit.POINTS, now: Optional[datetime] = None) -> List[dict]:
        if sprint.start_date is None:
            return []

        now = now or datetime.utcnow()
        memberships = self._memberships(sprint)

        start = _day_start(sprint.start_date)
        today_end = _day_end(now)
        if sprint.end_date:
            end = _day_end(sprint.end_date)
            if sprint.status != SprintStatus.COMPLETED and end > today_end:
                end = today_end
        else:
            end = today_end

        planned_end = _day_end(sprint.end_date) if sprint.end_date else end
        total_days = max(1, round((planned_end - start).total_seconds() / 86400))

        def weight(member: _Membership) -> int:
            return 1 if unit == BurndownUnit.TICKETS else member.story_points

        raw = []
        current = start
        day = 1
        while current <= end:
            day_end = _day_end(current)
            scope = completed = 0
            for member in memberships:
                in_sprint = _day_start(member.added_at) <= day_end and not (
                    member.removed_at and member.removed_at <= day_end
                )
                if not in_sprint:
                    continue
                scope += weight(member)
                if member.resolved_at and member.resolved_at <= day_end:
                    completed += weight(member)
            raw.append({"date": current.date().isoformat(), "day": day, "scope": scope, "completed": completed})
            current += timedelta(days=1)
            day += 1

        # Ideal line is anchored to the day-1 commitment; sprints that start empty use peak scope
        day_one_scope = raw[0]["scope"] if raw else 0
        commitment = day_one_scope or max((point["scope"] for point in raw), default=0)

        return [
            {
                "date": point["date"],
                "day": point["day"],
                "ideal": round(max(0.0, commitment - commitment * (point["day"] - 1) / total_days), 1),
                "remaining": point["scope"] - point["completed"],
                "scope": point["scope"],
                "completed": point["completed"],
            }
            for point in raw
        ]
