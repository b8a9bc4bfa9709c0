"""
Sprint Store
The only writer of Sprint rows. Status changes go through the transition table.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
from sqlmodel import Session, select

from sprintflow.schema import Sprint, SprintStatus, Ticket
from sprintflow.utils.sprints import sprint_sort_key
from .classifier import Classification
from .exceptions import SprintNotFound, InvalidTransition
from .transitions import validate_transition

DATE_FIELDS = {"start_date", "end_date"}
EDITABLE_FIELDS = {"name", "goal", "budget"} | DATE_FIELDS


class SprintStore:
    def __init__(self, session: Session):
        self.session = session

    # ---- reads -------------------------------------------------------

    def get(self, project_id: UUID, sprint_id: UUID) -> Sprint:
        sprint = self.session.exec(
            select(Sprint).where(Sprint.id == sprint_id, Sprint.project_id == project_id)
        ).first()
        if not sprint:
            raise SprintNotFound(sprint_id, project_id)
        return sprint

    def find_active(self, project_id: UUID, exclude_id: Optional[UUID] = None) -> Optional[Sprint]:
        query = select(Sprint).where(
            Sprint.project_id == project_id,
            Sprint.status == SprintStatus.ACTIVE,
        )
        if exclude_id is not None:
            query = query.where(Sprint.id != exclude_id)
        return self.session.exec(query).first()

    def find_planning(self, project_id: UUID, sprint_id: UUID) -> Optional[Sprint]:
        return self.session.exec(
            select(Sprint).where(
                Sprint.id == sprint_id,
                Sprint.project_id == project_id,
                Sprint.status == SprintStatus.PLANNING,
            )
        ).first()

    def list_for_project(self, project_id: UUID) -> List[Sprint]:
        sprints = self.session.exec(select(Sprint).where(Sprint.project_id == project_id)).all()
        return sorted(sprints, key=sprint_sort_key)

    def tickets_in(self, sprint_id: UUID) -> List[Ticket]:
        return list(self.session.exec(
            select(Ticket).where(Ticket.sprint_id == sprint_id).order_by(Ticket.created_at)
        ).all())

    # ---- writes ------------------------------------------------------

    def create(
        self,
        project_id: UUID,
        name: str,
        goal: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        budget: Optional[int] = None,
    ) -> Sprint:
        sprint = Sprint(
            project_id=project_id,
            name=name,
            status=SprintStatus.PLANNING,
            goal=goal,
            start_date=start_date,
            end_date=end_date,
            budget=budget,
        )
        self.session.add(sprint)
        self.session.flush()
        return sprint

    def mark_active(
        self,
        sprint: Sprint,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Sprint:
        sprint.status = validate_transition(sprint.id, sprint.status, "start")
        sprint.start_date = start_date or sprint.start_date or datetime.utcnow()
        sprint.end_date = end_date or sprint.end_date
        return self._save(sprint)

    def mark_completed(
        self,
        sprint: Sprint,
        completed_by_id: UUID,
        classification: Classification,
        at: Optional[datetime] = None,
    ) -> Sprint:
        sprint.status = validate_transition(sprint.id, sprint.status, "complete")
        sprint.completed_at = at or datetime.utcnow()
        sprint.completed_by_id = completed_by_id
        sprint.completed_ticket_count = classification.completed_ticket_count
        sprint.incomplete_ticket_count = classification.incomplete_ticket_count
        sprint.completed_story_points = classification.completed_story_points
        sprint.incomplete_story_points = classification.incomplete_story_points
        return self._save(sprint)

    def mark_reopened(self, sprint: Sprint) -> Sprint:
        """Back to active; the completion snapshot is cleared, not recomputed."""
        sprint.status = validate_transition(sprint.id, sprint.status, "reopen")
        sprint.completed_at = None
        sprint.completed_by_id = None
        sprint.completed_ticket_count = None
        sprint.incomplete_ticket_count = None
        sprint.completed_story_points = None
        sprint.incomplete_story_points = None
        return self._save(sprint)

    def update_details(self, sprint: Sprint, changes: Dict[str, object]) -> Sprint:
        """
        Applies name, goal, date and budget edits. A completed sprint keeps its
        dates; only its name, goal and budget may change.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Sprint fields cannot be edited: {sorted(unknown)}")
        if sprint.status == SprintStatus.COMPLETED and DATE_FIELDS & set(changes):
            raise InvalidTransition(sprint.id, sprint.status, "change the dates of")
        for name, value in changes.items():
            setattr(sprint, name, value)
        return self._save(sprint)

    def set_end_date(self, sprint: Sprint, end_date: datetime) -> Sprint:
        validate_transition(sprint.id, sprint.status, "extend")
        sprint.end_date = end_date
        return self._save(sprint)

    def delete(self, sprint: Sprint) -> List[UUID]:
        """
        Removes a planning sprint. Its tickets go back to the backlog; returns
        their ids. Ledger rows pointing at the sprint must be gone first.
        """
        validate_transition(sprint.id, sprint.status, "delete")
        now = datetime.utcnow()
        tickets = self.tickets_in(sprint.id)
        for ticket in tickets:
            ticket.sprint_id = None
            ticket.updated_at = now
            self.session.add(ticket)
        self.session.flush()
        self.session.delete(sprint)
        self.session.flush()
        return [ticket.id for ticket in tickets]

    def _save(self, sprint: Sprint) -> Sprint:
        sprint.updated_at = datetime.utcnow()
        self.session.add(sprint)
        self.session.flush()
        return sprint
