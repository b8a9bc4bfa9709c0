"""
Sprint Lifecycle Controller
Public entry point for start, complete, reopen and extend, and for editing
and deleting sprints.

Each operation validates before writing and runs inside one transaction
(sprintflow.utils.db.transaction). Events are published only after commit.
The caller must already hold the "manage sprints" capability; no
authorization happens here.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sprintflow.config import settings
from sprintflow.core.logging import get_logger
from sprintflow.schema import (
    BoardColumn, Sprint, CompletionAction, HistoryEntryType, SprintEventType,
    TicketSprintHistory, BurndownUnit
)
from sprintflow.utils import db as db_utils
from sprintflow.utils.sprints import as_naive_utc
from .burndown import BurndownService
from .classifier import ColumnPredicate, is_completed_column, resolve_done_column_ids, classify_tickets
from .disposition import DispositionEngine, DispositionReport, plan_completion
from .events import SprintEvent, SprintEventNotifier, LoggingNotifier, publish
from .exceptions import ConflictingActiveSprint, InvalidEndDate
from .history import HistoryLedger
from .settings import SprintSettings, SprintSettingsService
from .sprint_store import SprintStore
from .transitions import validate_transition

logger = get_logger(__name__)


@dataclass
class CompletionResult:
    sprint: Sprint
    disposition: DispositionReport
    next_sprint: Optional[Sprint] = None


class SprintLifecycleController:
    def __init__(
        self,
        engine: Engine = None,
        notifier: SprintEventNotifier = None,
        done_column_predicate: ColumnPredicate = is_completed_column,
        timeout_seconds: Optional[int] = None,
    ):
        self.engine = engine or db_utils.engine
        self.notifier = notifier or LoggingNotifier()
        self.done_column_predicate = done_column_predicate
        self.timeout_seconds = timeout_seconds or settings.transaction_timeout_seconds

    def _transaction(self):
        return db_utils.transaction(self.engine, timeout_seconds=self.timeout_seconds)

    def _emit(self, event_type: SprintEventType, project_id: UUID, sprint_id: UUID, user_id: UUID):
        publish(self.notifier, SprintEvent(event_type, project_id, sprint_id, user_id))

    # ============================================
    # LIFECYCLE OPERATIONS
    # ============================================

    def start(
        self,
        project_id: UUID,
        sprint_id: UUID,
        user_id: UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Sprint:
        """
        planning -> active. Opens an "added" ledger row for every ticket in the
        sprint that has none yet, so a retried start never duplicates rows.
        """
        try:
            with self._transaction() as session:
                store = SprintStore(session)
                sprint = store.get(project_id, sprint_id)
                validate_transition(sprint.id, sprint.status, "start")
                self._ensure_no_active_sprint(store, project_id, sprint.id)

                ticket_ids = [ticket.id for ticket in store.tickets_in(sprint.id)]
                store.mark_active(sprint, as_naive_utc(start_date), as_naive_utc(end_date))
                HistoryLedger(session).open_entries(ticket_ids, sprint.id, HistoryEntryType.ADDED)
        except IntegrityError as e:
            self._raise_active_conflict(project_id, sprint_id, e)
            raise

        logger.info("sprint_started", project_id=str(project_id), sprint_id=str(sprint_id), tickets=len(ticket_ids))
        self._emit(SprintEventType.STARTED, project_id, sprint_id, user_id)
        return sprint

    def complete(
        self,
        project_id: UUID,
        sprint_id: UUID,
        user_id: UUID,
        action: CompletionAction,
        target_sprint_id: Optional[UUID] = None,
        create_next_sprint: bool = False,
        done_column_ids: Optional[List[UUID]] = None,
    ) -> CompletionResult:
        """
        active -> completed. Classifies the sprint's tickets from a single
        snapshot, routes the incomplete ones per action and writes the
        completion snapshot. Not idempotent: a second call fails the status check.
        """
        action = CompletionAction(action)
        with self._transaction() as session:
            store = SprintStore(session)
            sprint = store.get(project_id, sprint_id)
            validate_transition(sprint.id, sprint.status, "complete")

            tickets = store.tickets_in(sprint.id)
            columns = session.exec(select(BoardColumn).where(BoardColumn.project_id == project_id)).all()
            if done_column_ids is None:
                done_column_ids = SprintSettingsService(session).get(project_id).done_column_ids or None
            done_ids = resolve_done_column_ids(columns, done_column_ids, self.done_column_predicate)
            classification = classify_tickets(tickets, done_ids)

            plan = plan_completion(sprint, classification, action, target_sprint_id, create_next_sprint)
            disposition = DispositionEngine(session, store)
            existing_target = disposition.check_target(project_id, plan)
            report = disposition.apply(sprint, plan, user_id, existing_target)

        logger.info(
            "sprint_completed",
            project_id=str(project_id),
            sprint_id=str(sprint_id),
            action=action.value,
            completed_ticket_count=sprint.completed_ticket_count,
            incomplete_ticket_count=sprint.incomplete_ticket_count,
        )
        self._emit(SprintEventType.COMPLETED, project_id, sprint_id, user_id)
        if report.created_target:
            self._emit(SprintEventType.CREATED, project_id, report.target_sprint.id, user_id)
        return CompletionResult(sprint=sprint, disposition=report, next_sprint=report.target_sprint)

    def reopen(self, project_id: UUID, sprint_id: UUID, user_id: UUID) -> Sprint:
        """completed -> active. The completion snapshot is cleared, not recomputed."""
        try:
            with self._transaction() as session:
                store = SprintStore(session)
                sprint = store.get(project_id, sprint_id)
                validate_transition(sprint.id, sprint.status, "reopen")
                self._ensure_no_active_sprint(store, project_id, sprint.id)
                store.mark_reopened(sprint)
        except IntegrityError as e:
            self._raise_active_conflict(project_id, sprint_id, e)
            raise

        logger.info("sprint_reopened", project_id=str(project_id), sprint_id=str(sprint_id))
        self._emit(SprintEventType.REOPENED, project_id, sprint_id, user_id)
        return sprint

    def extend(
        self,
        project_id: UUID,
        sprint_id: UUID,
        user_id: UUID,
        days: Optional[int] = None,
        new_end_date: Optional[datetime] = None,
    ) -> Sprint:
        """
        Moves the end date of an active sprint: to new_end_date if given,
        else (current end or now) + days. Without either, the project's
        default sprint duration is used as days.
        """
        now = datetime.utcnow()
        with self._transaction() as session:
            store = SprintStore(session)
            sprint = store.get(project_id, sprint_id)
            validate_transition(sprint.id, sprint.status, "extend")

            if new_end_date is not None:
                end_date = as_naive_utc(new_end_date)
            else:
                if days is None:
                    days = SprintSettingsService(session).get(project_id).default_sprint_duration
                end_date = (sprint.end_date or now) + timedelta(days=days)

            if end_date <= now:
                raise InvalidEndDate(end_date)
            store.set_end_date(sprint, end_date)

        logger.info(
            "sprint_extended",
            project_id=str(project_id),
            sprint_id=str(sprint_id),
            user_id=str(user_id),
            end_date=end_date.isoformat(),
        )
        return sprint

    # ============================================
    # SPRINT MANAGEMENT
    # ============================================

    def create_sprint(
        self,
        project_id: UUID,
        user_id: UUID,
        name: str,
        goal: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        budget: Optional[int] = None,
    ) -> Sprint:
        with self._transaction() as session:
            sprint = SprintStore(session).create(
                project_id, name, goal, as_naive_utc(start_date), as_naive_utc(end_date), budget
            )

        logger.info("sprint_created", project_id=str(project_id), sprint_id=str(sprint.id), name=name)
        self._emit(SprintEventType.CREATED, project_id, sprint.id, user_id)
        return sprint

    def update_sprint(self, project_id: UUID, sprint_id: UUID, user_id: UUID, **changes) -> Sprint:
        """
        Edits name, goal, budget, start_date or end_date. Only the keys given
        are written, so passing None clears an optional field.
        """
        for field in ("start_date", "end_date"):
            if field in changes:
                changes[field] = as_naive_utc(changes[field])

        with self._transaction() as session:
            store = SprintStore(session)
            sprint = store.update_details(store.get(project_id, sprint_id), changes)

        logger.info("sprint_updated", project_id=str(project_id), sprint_id=str(sprint_id), fields=sorted(changes))
        self._emit(SprintEventType.UPDATED, project_id, sprint_id, user_id)
        return sprint

    def delete_sprint(self, project_id: UUID, sprint_id: UUID, user_id: UUID) -> List[UUID]:
        """
        Deletes a planning sprint. Its tickets return to the backlog and its
        ledger rows (carry-overs waiting in it) are discarded. Tickets keep
        their carry-over provenance, which points at the completed source
        sprint. Returns the ids of the unassigned tickets.
        """
        with self._transaction() as session:
            store = SprintStore(session)
            sprint = store.get(project_id, sprint_id)
            validate_transition(sprint.id, sprint.status, "delete")
            HistoryLedger(session).discard_sprint(sprint.id)
            unassigned = store.delete(sprint)

        logger.info(
            "sprint_deleted", project_id=str(project_id), sprint_id=str(sprint_id), unassigned=len(unassigned)
        )
        self._emit(SprintEventType.DELETED, project_id, sprint_id, user_id)
        return unassigned

    def get_sprint(self, project_id: UUID, sprint_id: UUID) -> Sprint:
        with Session(self.engine, expire_on_commit=False) as session:
            return SprintStore(session).get(project_id, sprint_id)

    def list_sprints(self, project_id: UUID) -> List[Sprint]:
        with Session(self.engine, expire_on_commit=False) as session:
            return SprintStore(session).list_for_project(project_id)

    def ticket_history(self, ticket_id: UUID) -> List[TicketSprintHistory]:
        with Session(self.engine, expire_on_commit=False) as session:
            return HistoryLedger(session).timeline(ticket_id)

    def burndown(self, project_id: UUID, sprint_id: UUID, unit: BurndownUnit = BurndownUnit.POINTS):
        with Session(self.engine, expire_on_commit=False) as session:
            sprint = SprintStore(session).get(project_id, sprint_id)
            return sprint, BurndownService(session).compute(sprint, unit)

    def get_settings(self, project_id: UUID) -> SprintSettings:
        with Session(self.engine, expire_on_commit=False) as session:
            return SprintSettingsService(session).get(project_id)

    def update_settings(
        self,
        project_id: UUID,
        default_sprint_duration: Optional[int] = None,
        done_column_ids: Optional[List[UUID]] = None,
    ) -> SprintSettings:
        with self._transaction() as session:
            return SprintSettingsService(session).update(project_id, default_sprint_duration, done_column_ids)

    # ============================================
    # ACTIVE SPRINT GUARD
    # ============================================

    def _ensure_no_active_sprint(self, store: SprintStore, project_id: UUID, sprint_id: UUID):
        active = store.find_active(project_id, exclude_id=sprint_id)
        if active:
            raise ConflictingActiveSprint(active.id, active.name)

    def _raise_active_conflict(self, project_id: UUID, sprint_id: UUID, error: IntegrityError):
        """
        A concurrent start/reopen committed first and the partial unique index
        rejected ours. Report the winner; other integrity errors re-raise.
        """
        with Session(self.engine) as session:
            active = SprintStore(session).find_active(project_id, exclude_id=sprint_id)
        if active:
            logger.warning(
                "active_sprint_race_lost",
                project_id=str(project_id),
                sprint_id=str(sprint_id),
                active_sprint_id=str(active.id),
            )
            raise ConflictingActiveSprint(active.id, active.name) from error
