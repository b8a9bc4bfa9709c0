"""
Disposition Engine
Routes the tickets of a completing sprint and writes the completion snapshot.

Completion runs in three steps:
1. plan_completion()  - pure: decides the carry-over target variant
2. check_target()     - read-only: validates an existing target sprint
3. apply()            - writes tickets, ledger rows and the sprint snapshot

Everything that can reject the request happens in steps 1-2, so a failure
leaves no writes behind even before the transaction rolls back.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID
from sqlmodel import Session

from sprintflow.core.logging import get_logger
from sprintflow.schema import (
    Sprint, Ticket, CompletionAction, ExitStatus, HistoryEntryType
)
from sprintflow.utils.sprints import generate_next_sprint_name
from .classifier import Classification
from .exceptions import InvalidTarget
from .history import HistoryLedger
from .sprint_store import SprintStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class NewTarget:
    """Carry over into a sprint created during completion."""
    name: str


@dataclass(frozen=True)
class ExistingTarget:
    """Carry over into an existing planning sprint of the same project."""
    sprint_id: UUID


CarryOverTarget = Union[NewTarget, ExistingTarget]


@dataclass
class CompletionPlan:
    action: CompletionAction
    classification: Classification
    target: Optional[CarryOverTarget] = None


@dataclass
class DispositionReport:
    completed: List[UUID] = field(default_factory=list)
    moved_to_backlog: List[UUID] = field(default_factory=list)
    carried_over: List[UUID] = field(default_factory=list)
    target_sprint: Optional[Sprint] = None
    created_target: bool = False


def plan_completion(
    sprint: Sprint,
    classification: Classification,
    action: CompletionAction,
    target_sprint_id: Optional[UUID] = None,
    create_next_sprint: bool = False,
) -> CompletionPlan:
    """
    Picks the carry-over target. Nothing to carry means no target, even
    when a new sprint was requested.
    """
    target = None
    if action == CompletionAction.CLOSE_TO_NEXT and classification.incomplete:
        if create_next_sprint or target_sprint_id is None:
            target = NewTarget(name=generate_next_sprint_name(sprint.name))
        else:
            target = ExistingTarget(sprint_id=target_sprint_id)
    return CompletionPlan(action=action, classification=classification, target=target)


class DispositionEngine:
    def __init__(self, session: Session, store: SprintStore = None, ledger: HistoryLedger = None):
        self.session = session
        self.store = store or SprintStore(session)
        self.ledger = ledger or HistoryLedger(session)

    def check_target(self, project_id: UUID, plan: CompletionPlan) -> Optional[Sprint]:
        """Loads an ExistingTarget; it must be a planning sprint of the same project."""
        if not isinstance(plan.target, ExistingTarget):
            return None
        target = self.store.find_planning(project_id, plan.target.sprint_id)
        if not target:
            raise InvalidTarget(plan.target.sprint_id)
        return target

    def apply(
        self,
        sprint: Sprint,
        plan: CompletionPlan,
        completed_by_id: UUID,
        existing_target: Optional[Sprint] = None,
        at: Optional[datetime] = None,
    ) -> DispositionReport:
        at = at or datetime.utcnow()
        classification = plan.classification
        report = DispositionReport(completed=classification.completed_ids)

        if plan.target is not None:
            target, created = self._materialize_target(sprint, plan.target, existing_target)
            self._carry_over(sprint, target, classification.incomplete, at)
            report.carried_over = classification.incomplete_ids
            report.target_sprint = target
            report.created_target = created
        elif plan.action == CompletionAction.CLOSE_TO_BACKLOG and classification.incomplete:
            self._move_to_backlog(sprint, classification.incomplete, at)
            report.moved_to_backlog = classification.incomplete_ids
        # CLOSE_KEEP: incomplete tickets stay on the sprint and their ledger rows stay open

        self.ledger.close_entries(classification.completed_ids, sprint.id, ExitStatus.COMPLETED, at)
        self.store.mark_completed(sprint, completed_by_id, classification, at)

        logger.info(
            "sprint_disposition_applied",
            sprint_id=str(sprint.id),
            action=plan.action.value,
            completed=len(report.completed),
            moved_to_backlog=len(report.moved_to_backlog),
            carried_over=len(report.carried_over),
            target_sprint_id=str(report.target_sprint.id) if report.target_sprint else None,
            created_target=report.created_target,
        )
        return report

    def _materialize_target(
        self,
        sprint: Sprint,
        target: CarryOverTarget,
        existing_target: Optional[Sprint],
    ) -> tuple:
        if isinstance(target, NewTarget):
            return self.store.create(sprint.project_id, target.name), True
        if existing_target is None or existing_target.id != target.sprint_id:
            raise InvalidTarget(target.sprint_id, "was not validated before completion")
        return existing_target, False

    def _carry_over(self, source: Sprint, target: Sprint, tickets: List[Ticket], at: datetime):
        for ticket in tickets:
            ticket.sprint_id = target.id
            ticket.is_carried_over = True
            ticket.carried_from_sprint_id = source.id
            ticket.carried_over_count = (ticket.carried_over_count or 0) + 1
            ticket.updated_at = at
            self.session.add(ticket)
        self.session.flush()

        ticket_ids = [ticket.id for ticket in tickets]
        self.ledger.close_entries(ticket_ids, source.id, ExitStatus.CARRIED_OVER, at)
        # A reused target may already hold rows for some of these tickets
        self.ledger.open_entries(
            ticket_ids, target.id, HistoryEntryType.CARRIED_OVER, carried_from=source.id, at=at
        )

    def _move_to_backlog(self, source: Sprint, tickets: List[Ticket], at: datetime):
        for ticket in tickets:
            ticket.sprint_id = None
            ticket.updated_at = at
            self.session.add(ticket)
        self.session.flush()
        self.ledger.close_entries([ticket.id for ticket in tickets], source.id, ExitStatus.REMOVED, at)
