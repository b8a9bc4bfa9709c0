"""
Tests for sprint completion and ticket disposition.

Fixture sprint (active_sprint_with_tickets):
- t1: Done, 5 points
- t2: In Progress, 3 points
- t3: In Progress, 2 points
"""
import pytest
from sqlmodel import Session, select

from sprintflow.schema import (
    Project, Sprint, SprintStatus, Ticket, HistoryEntryType, ExitStatus, CompletionAction, SprintEventType
)
from sprintflow.services.exceptions import InvalidTarget, InvalidTransition
from sprintflow.services.history import HistoryLedger
from sprintflow.services.lifecycle import SprintLifecycleController
from sprintflow.services.sprint_store import SprintStore


def _sprints(engine, project_id):
    with Session(engine, expire_on_commit=False) as session:
        return session.exec(select(Sprint).where(Sprint.project_id == project_id)).all()


class TestCloseToBacklog:
    def test_incomplete_tickets_go_to_backlog(self, active_sprint_with_tickets, controller, board, user_id, fetch, history_for):
        data = active_sprint_with_tickets

        result = controller.complete(board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_BACKLOG)

        sprint = fetch(Sprint, data.sprint.id)
        assert sprint.status == SprintStatus.COMPLETED
        assert sprint.completed_ticket_count == 1
        assert sprint.incomplete_ticket_count == 2
        assert sprint.completed_story_points == 5
        assert sprint.incomplete_story_points == 5
        assert sprint.completed_by_id == user_id
        assert sprint.completed_at is not None

        assert fetch(Ticket, data.t1.id).sprint_id == data.sprint.id
        assert fetch(Ticket, data.t2.id).sprint_id is None
        assert fetch(Ticket, data.t3.id).sprint_id is None

        assert history_for(data.t1.id, data.sprint.id)[0].exit_status == ExitStatus.COMPLETED
        for ticket in (data.t2, data.t3):
            row = history_for(ticket.id, data.sprint.id)[0]
            assert row.exit_status == ExitStatus.REMOVED
            assert row.removed_at is not None

        assert result.disposition.completed == [data.t1.id]
        assert set(result.disposition.moved_to_backlog) == {data.t2.id, data.t3.id}
        assert result.disposition.carried_over == []
        assert result.next_sprint is None

    def test_backlog_tickets_keep_carry_over_fields(self, active_sprint_with_tickets, controller, board, user_id, fetch):
        data = active_sprint_with_tickets
        controller.complete(board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_BACKLOG)

        ticket = fetch(Ticket, data.t2.id)
        assert ticket.is_carried_over is False
        assert ticket.carried_over_count == 0


class TestCloseToNext:
    def test_creates_next_sprint_and_carries_over(
        self, active_sprint_with_tickets, controller, board, user_id, fetch, history_for, notifier
    ):
        data = active_sprint_with_tickets

        result = controller.complete(
            board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT, create_next_sprint=True
        )

        next_sprint = fetch(Sprint, result.next_sprint.id)
        assert next_sprint.name == "Sprint 2"
        assert next_sprint.status == SprintStatus.PLANNING
        assert next_sprint.project_id == board.project_id

        for ticket_id in (data.t2.id, data.t3.id):
            ticket = fetch(Ticket, ticket_id)
            assert ticket.sprint_id == next_sprint.id
            assert ticket.is_carried_over is True
            assert ticket.carried_from_sprint_id == data.sprint.id
            assert ticket.carried_over_count == 1

            source_row = history_for(ticket_id, data.sprint.id)[0]
            assert source_row.exit_status == ExitStatus.CARRIED_OVER

            target_rows = history_for(ticket_id, next_sprint.id)
            assert len(target_rows) == 1
            assert target_rows[0].entry_type == HistoryEntryType.CARRIED_OVER
            assert target_rows[0].carried_from_sprint_id == data.sprint.id
            assert target_rows[0].is_open

        assert fetch(Ticket, data.t1.id).sprint_id == data.sprint.id
        assert history_for(data.t1.id, data.sprint.id)[0].exit_status == ExitStatus.COMPLETED
        assert set(result.disposition.carried_over) == {data.t2.id, data.t3.id}
        assert notifier.types() == [SprintEventType.STARTED, SprintEventType.COMPLETED, SprintEventType.CREATED]

    def test_no_target_given_creates_next_sprint(self, active_sprint_with_tickets, controller, board, user_id):
        result = controller.complete(
            board.project_id, active_sprint_with_tickets.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT
        )
        assert result.next_sprint is not None
        assert result.next_sprint.name == "Sprint 2"

    def test_carry_over_count_accumulates(self, active_sprint_with_tickets, controller, board, user_id, fetch):
        data = active_sprint_with_tickets
        first = controller.complete(board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT)
        controller.start(board.project_id, first.next_sprint.id, user_id)

        second = controller.complete(board.project_id, first.next_sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT)

        assert second.next_sprint.name == "Sprint 3"
        ticket = fetch(Ticket, data.t2.id)
        assert ticket.sprint_id == second.next_sprint.id
        assert ticket.carried_from_sprint_id == first.next_sprint.id
        assert ticket.carried_over_count == 2

    def test_reuses_existing_planning_sprint(
        self, test_engine, active_sprint_with_tickets, controller, make_sprint, board, user_id, fetch, history_for, notifier
    ):
        data = active_sprint_with_tickets
        target = make_sprint("Next Up")

        # t2 already has a row in the target from an earlier partial run
        with Session(test_engine) as session:
            HistoryLedger(session).open_entry(data.t2.id, target.id, HistoryEntryType.ADDED)
            session.commit()

        result = controller.complete(
            board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT, target_sprint_id=target.id
        )

        assert result.next_sprint.id == target.id
        assert len(_sprints(test_engine, board.project_id)) == 2
        assert fetch(Ticket, data.t2.id).sprint_id == target.id
        assert fetch(Ticket, data.t3.id).sprint_id == target.id
        assert len(history_for(data.t2.id, target.id)) == 1
        assert len(history_for(data.t3.id, target.id)) == 1
        assert SprintEventType.CREATED not in notifier.types()

    def test_create_flag_wins_over_target(self, active_sprint_with_tickets, controller, make_sprint, board, user_id):
        target = make_sprint("Next Up")

        result = controller.complete(
            board.project_id,
            active_sprint_with_tickets.sprint.id,
            user_id,
            CompletionAction.CLOSE_TO_NEXT,
            target_sprint_id=target.id,
            create_next_sprint=True,
        )

        assert result.next_sprint.id != target.id
        assert result.next_sprint.name == "Sprint 2"

    @pytest.mark.parametrize("target_status", [SprintStatus.COMPLETED, SprintStatus.ACTIVE])
    def test_invalid_target_changes_nothing(
        self, test_engine, active_sprint_with_tickets, controller, make_sprint, board, user_id, fetch, history_for, target_status
    ):
        data = active_sprint_with_tickets
        if target_status == SprintStatus.ACTIVE:
            target_id = data.sprint.id
        else:
            target_id = make_sprint("Old", status=target_status).id
        sprints_before = len(_sprints(test_engine, board.project_id))

        with pytest.raises(InvalidTarget) as exc_info:
            controller.complete(
                board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT, target_sprint_id=target_id
            )

        assert exc_info.value.target_sprint_id == target_id
        assert fetch(Sprint, data.sprint.id).status == SprintStatus.ACTIVE
        assert fetch(Ticket, data.t2.id).sprint_id == data.sprint.id
        assert history_for(data.t2.id, data.sprint.id)[0].is_open
        assert len(_sprints(test_engine, board.project_id)) == sprints_before

    def test_target_from_another_project_is_invalid(self, test_engine, active_sprint_with_tickets, controller, make_sprint, board, user_id):
        with Session(test_engine, expire_on_commit=False) as session:
            other = Project(key="OTHER", name="Other")
            session.add(other)
            session.commit()
        foreign = make_sprint("Foreign", project_id=other.id)

        with pytest.raises(InvalidTarget):
            controller.complete(
                board.project_id,
                active_sprint_with_tickets.sprint.id,
                user_id,
                CompletionAction.CLOSE_TO_NEXT,
                target_sprint_id=foreign.id,
            )

    def test_nothing_to_carry_creates_no_sprint(self, test_engine, controller, make_sprint, make_ticket, board, user_id):
        sprint = make_sprint()
        make_ticket(sprint, board.done, 3)
        controller.start(board.project_id, sprint.id, user_id)

        result = controller.complete(
            board.project_id, sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT, create_next_sprint=True
        )

        assert result.next_sprint is None
        assert result.disposition.carried_over == []
        assert len(_sprints(test_engine, board.project_id)) == 1


class TestCloseKeep:
    def test_incomplete_tickets_stay_with_open_rows(self, active_sprint_with_tickets, controller, board, user_id, fetch, history_for):
        data = active_sprint_with_tickets

        result = controller.complete(board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_KEEP)

        assert fetch(Sprint, data.sprint.id).status == SprintStatus.COMPLETED
        for ticket in (data.t2, data.t3):
            assert fetch(Ticket, ticket.id).sprint_id == data.sprint.id
            assert history_for(ticket.id, data.sprint.id)[0].is_open
        assert history_for(data.t1.id, data.sprint.id)[0].exit_status == ExitStatus.COMPLETED
        assert result.disposition.moved_to_backlog == []
        assert result.disposition.carried_over == []


class TestDoneColumns:
    def test_explicit_done_columns(self, active_sprint_with_tickets, controller, board, user_id, fetch):
        data = active_sprint_with_tickets

        controller.complete(
            board.project_id,
            data.sprint.id,
            user_id,
            CompletionAction.CLOSE_TO_BACKLOG,
            done_column_ids=[board.in_progress],
        )

        sprint = fetch(Sprint, data.sprint.id)
        assert sprint.completed_ticket_count == 2
        assert sprint.completed_story_points == 5
        assert fetch(Ticket, data.t1.id).sprint_id is None

    def test_project_settings_done_columns(self, active_sprint_with_tickets, controller, board, user_id, fetch):
        data = active_sprint_with_tickets
        controller.update_settings(board.project_id, done_column_ids=[board.in_progress, board.done])

        controller.complete(board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_BACKLOG)

        sprint = fetch(Sprint, data.sprint.id)
        assert sprint.completed_ticket_count == 3
        assert sprint.incomplete_ticket_count == 0

    def test_injected_predicate(self, test_engine, make_sprint, make_ticket, board, user_id, fetch):
        controller = SprintLifecycleController(test_engine, done_column_predicate=lambda name: name == "To Do")
        sprint = make_sprint()
        make_ticket(sprint, board.todo, 1)
        make_ticket(sprint, board.done, 2)
        controller.start(board.project_id, sprint.id, user_id)

        controller.complete(board.project_id, sprint.id, user_id, CompletionAction.CLOSE_KEEP)

        stored = fetch(Sprint, sprint.id)
        assert stored.completed_story_points == 1
        assert stored.incomplete_story_points == 2

    def test_unestimated_tickets(self, controller, make_sprint, make_ticket, board, user_id, fetch):
        sprint = make_sprint()
        make_ticket(sprint, board.done)
        make_ticket(sprint, board.todo)
        controller.start(board.project_id, sprint.id, user_id)

        controller.complete(board.project_id, sprint.id, user_id, CompletionAction.CLOSE_KEEP)

        stored = fetch(Sprint, sprint.id)
        assert stored.completed_ticket_count == 1
        assert stored.completed_story_points == 0
        assert stored.incomplete_story_points == 0


class TestCompletionGuards:
    def test_complete_twice_is_invalid(self, active_sprint_with_tickets, controller, board, user_id):
        sprint_id = active_sprint_with_tickets.sprint.id
        controller.complete(board.project_id, sprint_id, user_id, CompletionAction.CLOSE_TO_BACKLOG)

        with pytest.raises(InvalidTransition) as exc_info:
            controller.complete(board.project_id, sprint_id, user_id, CompletionAction.CLOSE_TO_BACKLOG)
        assert exc_info.value.from_status == SprintStatus.COMPLETED

    def test_complete_planning_sprint_is_invalid(self, controller, make_sprint, board, user_id):
        sprint = make_sprint()
        with pytest.raises(InvalidTransition):
            controller.complete(board.project_id, sprint.id, user_id, CompletionAction.CLOSE_KEEP)

    def test_failure_rolls_back_every_write(
        self, monkeypatch, test_engine, active_sprint_with_tickets, controller, board, user_id, fetch, history_for, notifier
    ):
        data = active_sprint_with_tickets

        def fail(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(SprintStore, "mark_completed", fail)

        with pytest.raises(RuntimeError):
            controller.complete(
                board.project_id, data.sprint.id, user_id, CompletionAction.CLOSE_TO_NEXT, create_next_sprint=True
            )

        assert fetch(Sprint, data.sprint.id).status == SprintStatus.ACTIVE
        for ticket in (data.t2, data.t3):
            stored = fetch(Ticket, ticket.id)
            assert stored.sprint_id == data.sprint.id
            assert stored.carried_over_count == 0
            assert history_for(ticket.id, data.sprint.id)[0].is_open
        assert len(_sprints(test_engine, board.project_id)) == 1
        assert notifier.types() == [SprintEventType.STARTED]

    def test_notifier_failure_does_not_fail_completion(self, test_engine, make_sprint, make_ticket, board, user_id, fetch):
        class BrokenNotifier:
            def notify(self, event):
                raise ConnectionError("broker down")

        controller = SprintLifecycleController(test_engine, notifier=BrokenNotifier())
        sprint = make_sprint()
        make_ticket(sprint, board.todo, 1)
        controller.start(board.project_id, sprint.id, user_id)

        controller.complete(board.project_id, sprint.id, user_id, CompletionAction.CLOSE_TO_BACKLOG)

        assert fetch(Sprint, sprint.id).status == SprintStatus.COMPLETED
