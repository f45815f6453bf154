"""Tests for TaskOrchestrator commands, queries and scans."""

import pytest
import threading
from datetime import datetime, timedelta, timezone

from taskorch.engine.orchestrator import TaskOrchestrator
from taskorch.engine.statistics import StatisticsPeriod
from taskorch.errors import (
    CyclicDependencyError,
    NotFoundError,
    PrerequisitesNotMetError,
    StateTransitionError,
    ValidationError,
)
from taskorch.models.instructions import (
    CancelNotification,
    CreateTask,
    DeleteTask,
    EventType,
    InstructionType,
    PersistTask,
    ScheduleDeadline,
    ScheduleReminder,
)
from taskorch.models.recurrence import RecurrenceFrequency, RecurringPattern
from taskorch.models.task import (
    Priority,
    TaskStatus,
    deadline_notification_id,
    reminder_notification_id,
)

DAILY = RecurringPattern(frequency=RecurrenceFrequency.DAILY)


class TestCreateTask:
    """Test task creation."""

    def test_create_emits_create_instruction(self, orchestrator):
        result = orchestrator.new_task("Write report")

        assert result.task.title == "Write report"
        assert result.task.status == TaskStatus.PENDING
        assert result.instructions == [CreateTask(task=result.task)]
        assert orchestrator.get_task(result.task.id) == result.task

    def test_create_schedules_deadline_and_reminder(self, orchestrator, future):
        result = orchestrator.new_task("Pay rent", due_date=future(days=3), reminder_date=future(days=2))
        task = result.task

        deadline = result.instructions_of(InstructionType.SCHEDULE_DEADLINE)
        reminder = result.instructions_of(InstructionType.SCHEDULE_REMINDER)
        assert deadline == [
            ScheduleDeadline(task_id=task.id, title="Deadline tomorrow: Pay rent", fire_at=future(days=2))
        ]
        assert reminder == [ScheduleReminder(task_id=task.id, title="Pay rent", fire_at=future(days=2))]
        assert deadline[0].identifier == f"task-{task.id}-deadline"
        assert reminder[0].identifier == f"task-{task.id}"

    def test_deadline_skipped_when_lead_time_passed(self, orchestrator, future):
        result = orchestrator.new_task("Soon", due_date=future(hours=12))
        assert result.instructions_of(InstructionType.SCHEDULE_DEADLINE) == []

    def test_past_reminder_not_scheduled(self, orchestrator, future):
        result = orchestrator.new_task("Late", reminder_date=future(hours=-1))
        assert result.instructions_of(InstructionType.SCHEDULE_REMINDER) == []

    def test_deadline_lead_is_configurable(self, now, future):
        orchestrator = TaskOrchestrator(deadline_lead=timedelta(hours=2), clock=lambda: now)
        result = orchestrator.new_task("Call", due_date=future(hours=5))
        assert result.instructions_of(InstructionType.SCHEDULE_DEADLINE)[0].fire_at == future(hours=3)

    def test_blank_title_rejected_without_mutation(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.new_task("   ")
        assert orchestrator.all_tasks() == []

    def test_duplicate_id_rejected(self, orchestrator, sample_task):
        orchestrator.create_task(sample_task)
        with pytest.raises(ValidationError):
            orchestrator.create_task(sample_task)

    def test_non_pending_rejected(self, orchestrator, make_task, now):
        task = make_task(status=TaskStatus.COMPLETED, completed_at=now)
        with pytest.raises(ValidationError):
            orchestrator.create_task(task)

    def test_missing_prerequisite_rejected(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.new_task("B", prerequisite_ids=["ghost"])
        assert orchestrator.all_tasks() == []

    def test_missing_parent_rejected(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.new_task("Child", parent_task_id="ghost")

    def test_recurring_flag_requires_pattern(self, orchestrator, make_task):
        with pytest.raises(ValidationError):
            orchestrator.create_task(make_task(is_recurring=True))


class TestDependencies:
    """Test the start gate through orchestrator commands."""

    def test_end_to_end_unblock(self, orchestrator):
        """Completing A opens B's gate without changing B's status."""
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task

        assert orchestrator.can_start(b.id) is False

        result = orchestrator.complete_task(a.id)

        assert orchestrator.can_start(b.id) is True
        assert orchestrator.get_task(b.id).status == TaskStatus.PENDING
        unblocked = result.events_of(EventType.TASK_UNBLOCKED)
        assert [e.task_id for e in unblocked] == [b.id]
        assert unblocked[0].details == {"unblocked_by": a.id}

    def test_start_blocked_until_prerequisites_complete(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task

        with pytest.raises(PrerequisitesNotMetError):
            orchestrator.start_task(b.id)
        assert orchestrator.get_task(b.id).status == TaskStatus.PENDING

        orchestrator.complete_task(a.id)
        assert orchestrator.start_task(b.id).task.status == TaskStatus.IN_PROGRESS

    def test_no_unblock_event_while_other_prerequisite_open(self, orchestrator):
        a = orchestrator.new_task("A").task
        c = orchestrator.new_task("C").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id, c.id]).task

        result = orchestrator.complete_task(a.id)

        assert result.events_of(EventType.TASK_UNBLOCKED) == []
        assert orchestrator.blocked_tasks(c.id) == [orchestrator.get_task(b.id)]

    def test_add_dependency_persists_edge(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B").task

        result = orchestrator.add_dependency(b.id, a.id)

        assert result.task.prerequisite_ids == {a.id}
        assert result.instructions == [PersistTask(task=result.task)]
        assert orchestrator.dependents(a.id) == [result.task]
        assert orchestrator.prerequisites(b.id) == [orchestrator.get_task(a.id)]

    def test_cycle_rejected_without_mutation(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task
        c = orchestrator.new_task("C", prerequisite_ids=[b.id]).task

        with pytest.raises(CyclicDependencyError):
            orchestrator.add_dependency(a.id, c.id)

        assert orchestrator.get_task(a.id).prerequisite_ids == set()
        assert orchestrator.dependents(c.id) == []

    def test_self_dependency_rejected(self, orchestrator):
        a = orchestrator.new_task("A").task
        with pytest.raises(CyclicDependencyError):
            orchestrator.add_dependency(a.id, a.id)

    def test_add_dependency_unknown_task(self, orchestrator):
        a = orchestrator.new_task("A").task
        with pytest.raises(NotFoundError):
            orchestrator.add_dependency(a.id, "ghost")

    def test_remove_missing_dependency_is_noop(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B").task

        result = orchestrator.remove_dependency(b.id, a.id)

        assert result.instructions == []
        assert result.task == orchestrator.get_task(b.id)

    def test_remove_dependency_unblocks(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task

        result = orchestrator.remove_dependency(b.id, a.id)

        assert orchestrator.can_start(b.id) is True
        assert [e.task_id for e in result.events_of(EventType.TASK_UNBLOCKED)] == [b.id]


class TestLifecycleCommands:
    """Test lifecycle commands and their side effects."""

    def test_complete_cancels_notifications(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task

        result = orchestrator.complete_task(task.id)

        assert result.task.status == TaskStatus.COMPLETED
        assert result.task.completed_at is not None
        cancelled = {i.identifier for i in result.instructions_of(InstructionType.CANCEL_NOTIFICATION)}
        assert cancelled == {reminder_notification_id(task.id), deadline_notification_id(task.id)}
        assert result.instructions[0] == PersistTask(task=result.task)
        changed = result.events_of(EventType.STATUS_CHANGED)
        assert changed[0].details == {"from": "pending", "to": "completed"}

    def test_completed_to_in_progress_is_illegal(self, orchestrator):
        task = orchestrator.new_task("A").task
        orchestrator.complete_task(task.id)
        with pytest.raises(StateTransitionError):
            orchestrator.start_task(task.id)

    def test_same_state_is_illegal(self, orchestrator):
        task = orchestrator.new_task("A").task
        with pytest.raises(StateTransitionError):
            orchestrator.transition(task.id, TaskStatus.PENDING)

    def test_pause_and_resume(self, orchestrator, now):
        task = orchestrator.new_task("A").task
        orchestrator.start_task(task.id)
        assert orchestrator.pause_task(task.id).task.status == TaskStatus.ON_HOLD
        resumed = orchestrator.resume_task(task.id, now=now + timedelta(hours=1)).task
        assert resumed.status == TaskStatus.IN_PROGRESS
        assert resumed.started_at == now + timedelta(hours=1)

    def test_cancel_does_not_unblock_dependents(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task

        result = orchestrator.cancel_task(a.id)

        assert result.events_of(EventType.TASK_UNBLOCKED) == []
        assert orchestrator.can_start(b.id) is False

    def test_uncomplete_rearms_notifications(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task
        orchestrator.complete_task(task.id)

        result = orchestrator.uncomplete_task(task.id)

        assert result.task.status == TaskStatus.PENDING
        assert result.task.completed_at is None
        assert len(result.instructions_of(InstructionType.SCHEDULE_DEADLINE)) == 1

    def test_uncomplete_pending_is_illegal(self, orchestrator):
        task = orchestrator.new_task("A").task
        with pytest.raises(StateTransitionError):
            orchestrator.uncomplete_task(task.id)

    def test_unknown_task(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.complete_task("ghost")

    def test_completed_iff_completed_at_across_commands(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B").task
        c = orchestrator.new_task("C").task
        orchestrator.start_task(a.id)
        orchestrator.complete_task(b.id)
        orchestrator.complete_task(c.id)
        orchestrator.uncomplete_task(c.id)

        for task in orchestrator.all_tasks():
            assert (task.status == TaskStatus.COMPLETED) == (task.completed_at is not None)


class TestRecurrence:
    """Test recurrence through complete_task and the catch-up scan."""

    def test_end_to_end_daily_successor(self, orchestrator, now):
        due = now + timedelta(hours=6)
        task = orchestrator.new_task(
            "Standup", due_date=due, priority=Priority.HIGH, category="work", recurring_pattern=DAILY
        ).task

        result = orchestrator.complete_task(task.id)

        created = result.instructions_of(InstructionType.CREATE_TASK)
        assert len(created) == 1
        successor = created[0].task
        assert created[0].generated_from == task.id
        assert successor.status == TaskStatus.PENDING
        assert successor.due_date == due + timedelta(days=1)
        assert successor.title == "Standup"
        assert successor.priority == Priority.HIGH
        assert successor.category == "work"
        assert orchestrator.get_task(successor.id) == successor
        assert len(result.events_of(EventType.RECURRENCE_MATERIALIZED)) == 1

    def test_successor_gets_notifications(self, orchestrator, future):
        task = orchestrator.new_task("Weekly review", due_date=future(days=2), recurring_pattern=DAILY).task
        result = orchestrator.complete_task(task.id)
        successor = result.instructions_of(InstructionType.CREATE_TASK)[0].task
        deadlines = result.instructions_of(InstructionType.SCHEDULE_DEADLINE)
        assert [d.task_id for d in deadlines] == [successor.id]

    def test_catch_up_scan_does_not_duplicate(self, orchestrator, now):
        task = orchestrator.new_task("Standup", due_date=now, recurring_pattern=DAILY).task
        orchestrator.complete_task(task.id)

        result = orchestrator.process_recurring_tasks()

        assert result.instructions == []
        assert len(orchestrator.all_tasks()) == 2

    def test_catch_up_scan_materializes_missing_successor(self, orchestrator, make_task, now):
        done = make_task(
            is_recurring=True, recurring_pattern=DAILY, due_date=now,
            status=TaskStatus.COMPLETED, completed_at=now,
        )
        orchestrator.load([done])

        result = orchestrator.process_recurring_tasks()

        assert len(result.instructions_of(InstructionType.CREATE_TASK)) == 1
        assert orchestrator.process_recurring_tasks().instructions == []

    def test_max_occurrences_enforced(self, orchestrator, now):
        capped = RecurringPattern(frequency=RecurrenceFrequency.DAILY, max_occurrences=2)
        first = orchestrator.new_task("Course", due_date=now, recurring_pattern=capped).task

        second = orchestrator.complete_task(first.id).instructions_of(InstructionType.CREATE_TASK)[0].task
        result = orchestrator.complete_task(second.id)

        assert second.occurrence_index == 2
        assert result.instructions_of(InstructionType.CREATE_TASK) == []

    def test_max_occurrences_not_enforced_when_disabled(self, now):
        orchestrator = TaskOrchestrator(enforce_max_occurrences=False, clock=lambda: now)
        capped = RecurringPattern(frequency=RecurrenceFrequency.DAILY, max_occurrences=1)
        first = orchestrator.new_task("Course", due_date=now, recurring_pattern=capped).task

        result = orchestrator.complete_task(first.id)

        assert len(result.instructions_of(InstructionType.CREATE_TASK)) == 1

    def test_end_date_stops_series(self, orchestrator, now):
        ending = RecurringPattern(frequency=RecurrenceFrequency.DAILY, end_date=now + timedelta(hours=1))
        task = orchestrator.new_task("Last one", due_date=now, recurring_pattern=ending).task
        result = orchestrator.complete_task(task.id)
        assert result.instructions_of(InstructionType.CREATE_TASK) == []

    def test_catch_up_scan_skips_deleted_successor(self, orchestrator, now):
        task = orchestrator.new_task("Standup", due_date=now, recurring_pattern=DAILY).task
        successor = orchestrator.complete_task(task.id).instructions_of(InstructionType.CREATE_TASK)[0].task
        orchestrator.delete_task(successor.id)

        result = orchestrator.process_recurring_tasks()

        assert result.instructions == []
        assert [t.id for t in orchestrator.all_tasks()] == [task.id]

    def test_catch_up_scan_skips_series_with_later_occurrence(self, orchestrator, make_task, now):
        first = make_task(
            is_recurring=True, recurring_pattern=DAILY, due_date=now,
            status=TaskStatus.COMPLETED, completed_at=now,
        )
        third = make_task(
            is_recurring=True, recurring_pattern=DAILY, due_date=now + timedelta(days=2),
            recurrence_series_id=first.id, occurrence_index=3,
        )
        orchestrator.load([first, third])

        assert orchestrator.process_recurring_tasks().instructions == []


class TestUpdateAndDelete:
    """Test field updates and hard deletion."""

    def test_update_rearms_notifications(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task

        result = orchestrator.update_task(task.id, due_date=future(days=5), title="A2")

        assert result.task.title == "A2"
        assert result.instructions[0] == PersistTask(task=result.task)
        assert result.instructions[1:3] == [
            CancelNotification(identifier=reminder_notification_id(task.id)),
            CancelNotification(identifier=deadline_notification_id(task.id)),
        ]
        deadline = result.instructions_of(InstructionType.SCHEDULE_DEADLINE)[0]
        assert deadline.fire_at == future(days=4)
        assert deadline.title == "Deadline tomorrow: A2"

    def test_update_rejects_non_editable_fields(self, orchestrator, now):
        task = orchestrator.new_task("A").task
        with pytest.raises(ValidationError):
            orchestrator.update_task(task.id, status=TaskStatus.COMPLETED)
        with pytest.raises(ValidationError):
            orchestrator.update_task(task.id, completed_at=now)
        assert orchestrator.get_task(task.id) == task

    def test_update_rejects_blank_title(self, orchestrator):
        task = orchestrator.new_task("A").task
        with pytest.raises(ValidationError):
            orchestrator.update_task(task.id, title="")

    def test_update_pattern_sets_recurring_flag(self, orchestrator):
        task = orchestrator.new_task("A").task
        assert orchestrator.update_task(task.id, recurring_pattern=DAILY).task.is_recurring is True
        assert orchestrator.update_task(task.id, recurring_pattern=None).task.is_recurring is False

    def test_priority_and_tags(self, orchestrator):
        task = orchestrator.new_task("A", tags=["x"]).task
        assert orchestrator.update_priority(task.id, Priority.URGENT).task.priority == Priority.URGENT
        assert orchestrator.add_tag(task.id, " y ").task.tags == ["x", "y"]
        assert orchestrator.add_tag(task.id, "x").task.tags == ["x", "y"]
        assert orchestrator.remove_tag(task.id, "x").task.tags == ["y"]

    def test_delete_cleans_edges_and_children(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B", prerequisite_ids=[a.id]).task
        child = orchestrator.new_task("Child", parent_task_id=a.id).task

        result = orchestrator.delete_task(a.id)

        assert result.instructions[-1] == DeleteTask(task_id=a.id)
        assert orchestrator.get_task(b.id).prerequisite_ids == set()
        assert orchestrator.get_task(child.id).parent_task_id is None
        assert [e.task_id for e in result.events_of(EventType.TASK_UNBLOCKED)] == [b.id]
        with pytest.raises(NotFoundError):
            orchestrator.get_task(a.id)

    def test_delete_cancels_notifications(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task
        result = orchestrator.delete_task(task.id)
        assert len(result.instructions_of(InstructionType.CANCEL_NOTIFICATION)) == 2


class TestBulk:
    """Test non-atomic bulk commands."""

    def test_bulk_create(self, orchestrator, make_task):
        tasks = [make_task(title=f"T{i}") for i in range(3)]
        result = orchestrator.bulk_create(tasks)
        assert len(result.instructions_of(InstructionType.CREATE_TASK)) == 3
        assert len(orchestrator.all_tasks()) == 3

    def test_bulk_create_stops_at_first_invalid_item(self, now, make_task):
        published = []
        orchestrator = TaskOrchestrator(handlers=[published.append], clock=lambda: now)
        good = [make_task(title="one"), make_task(title="two")]
        bad = make_task(title="  ")

        with pytest.raises(ValidationError) as exc:
            orchestrator.bulk_create(good + [bad, make_task(title="never")])

        assert {t.title for t in orchestrator.all_tasks()} == {"one", "two"}
        assert exc.value.details["applied"] == [good[0].id, good[1].id]
        assert len(published) == 1
        assert len(published[0].tasks) == 2

    def test_bulk_update_and_delete(self, orchestrator):
        a = orchestrator.new_task("A").task
        b = orchestrator.new_task("B").task

        orchestrator.bulk_update({a.id: {"title": "A2"}, b.id: {"category": "home"}})
        assert orchestrator.get_task(a.id).title == "A2"
        assert orchestrator.get_task(b.id).category == "home"

        result = orchestrator.bulk_delete([a.id, b.id])
        assert len(result.instructions_of(InstructionType.DELETE_TASK)) == 2
        assert orchestrator.all_tasks() == []


class TestSubtasksAndArchive:
    """Test parent links and soft deletion."""

    def test_add_subtask_inherits_owner(self, orchestrator):
        parent = orchestrator.new_task("Parent", user_id="u1").task
        child = orchestrator.new_task("Child").task

        result = orchestrator.add_subtask(parent.id, child.id)

        assert result.task.parent_task_id == parent.id
        assert result.task.user_id == "u1"
        assert orchestrator.subtasks(parent.id) == [result.task]

    def test_task_cannot_be_own_parent(self, orchestrator):
        task = orchestrator.new_task("A").task
        with pytest.raises(ValidationError):
            orchestrator.add_subtask(task.id, task.id)

    def test_ancestor_cannot_become_subtask(self, orchestrator):
        top = orchestrator.new_task("Top").task
        mid = orchestrator.new_task("Mid", parent_task_id=top.id).task
        with pytest.raises(ValidationError):
            orchestrator.add_subtask(mid.id, top.id)

    def test_remove_subtask(self, orchestrator):
        parent = orchestrator.new_task("Parent").task
        child = orchestrator.new_task("Child", parent_task_id=parent.id).task
        assert orchestrator.remove_subtask(child.id).task.parent_task_id is None
        assert orchestrator.subtasks(parent.id) == []

    def test_archive_hides_and_cancels(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task

        result = orchestrator.archive_task(task.id)

        assert result.task.is_archived is True
        assert len(result.instructions_of(InstructionType.CANCEL_NOTIFICATION)) == 2
        assert orchestrator.active_tasks() == []

    def test_unarchive_rearms_open_task(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task
        orchestrator.archive_task(task.id)

        result = orchestrator.unarchive_task(task.id)

        assert result.task.is_archived is False
        assert result.task.archived_at is None
        assert len(result.instructions_of(InstructionType.SCHEDULE_DEADLINE)) == 1

    def test_unarchive_completed_task_does_not_rearm(self, orchestrator, future):
        task = orchestrator.new_task("A", due_date=future(days=3)).task
        orchestrator.complete_task(task.id)
        orchestrator.archive_task(task.id)

        result = orchestrator.unarchive_task(task.id)

        assert result.instructions_of(InstructionType.SCHEDULE_DEADLINE) == []


class TestScans:
    """Test overdue and notification reconciliation scans."""

    def test_check_overdue_reports_without_status_change(self, orchestrator, future):
        late = orchestrator.new_task("Late", due_date=future(days=-1)).task
        orchestrator.new_task("Fine", due_date=future(days=1))
        done = orchestrator.new_task("Done", due_date=future(days=-1)).task
        orchestrator.complete_task(done.id)

        result = orchestrator.check_overdue()

        assert [e.task_id for e in result.events_of(EventType.TASK_OVERDUE)] == [late.id]
        assert result.instructions == []
        assert orchestrator.get_task(late.id).status == TaskStatus.PENDING

    def test_reconcile_is_idempotent(self, orchestrator, future):
        orchestrator.new_task("A", due_date=future(days=3), reminder_date=future(days=1))
        orchestrator.new_task("B")

        first = orchestrator.reconcile_notifications()
        second = orchestrator.reconcile_notifications()

        assert first.instructions == second.instructions
        assert len(first.instructions_of(InstructionType.CANCEL_NOTIFICATION)) == 4
        assert len(first.instructions_of(InstructionType.SCHEDULE_DEADLINE)) == 1
        assert len(first.instructions_of(InstructionType.SCHEDULE_REMINDER)) == 1

    def test_statistics(self, orchestrator, now):
        a = orchestrator.new_task("A", priority=Priority.HIGH).task
        orchestrator.new_task("B")
        orchestrator.complete_task(a.id)

        stats = orchestrator.statistics(StatisticsPeriod.TODAY, now=now)

        assert stats.total_tasks == 2
        assert stats.completed_tasks == 1
        assert stats.completion_rate == 0.5
        assert stats.productivity_score == pytest.approx(0.45)


class TestWiring:
    """Test handlers, loading and locking."""

    def test_handlers_apply_instructions(self, wired_orchestrator, memory_store, notifier, future):
        task = wired_orchestrator.new_task("A", due_date=future(days=3)).task

        assert memory_store.fetch_one(task.id) == task
        assert [n.kind for n in notifier.for_task(task.id)] == ["deadline"]

        wired_orchestrator.complete_task(task.id)

        assert memory_store.fetch_one(task.id).status == TaskStatus.COMPLETED
        assert notifier.for_task(task.id) == []

    def test_rejected_command_publishes_nothing(self, now):
        published = []
        orchestrator = TaskOrchestrator(handlers=[published.append], clock=lambda: now)
        with pytest.raises(NotFoundError):
            orchestrator.complete_task("ghost")
        assert published == []

    def test_load_rebuilds_graph_and_drops_dangling_edges(self, orchestrator, make_task):
        a = make_task(title="A")
        b = make_task(title="B", prerequisite_ids={a.id, "ghost"})

        assert orchestrator.load([a, b]) == 2

        assert orchestrator.get_task(b.id).prerequisite_ids == {a.id}
        assert orchestrator.can_start(b.id) is False
        assert orchestrator.dependents(a.id)[0].id == b.id

    def test_concurrent_creates(self, orchestrator):
        def worker(n):
            for i in range(20):
                orchestrator.new_task(f"T{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(orchestrator.all_tasks()) == 80


class TestTimezones:
    """Test that aware datetimes are normalized to naive UTC."""

    def test_aware_due_date_is_stored_as_naive_utc(self, orchestrator, now):
        due = datetime(2024, 3, 7, 12, 0, tzinfo=timezone(timedelta(hours=2)))

        result = orchestrator.new_task("Aware", due_date=due)

        assert result.task.due_date == datetime(2024, 3, 7, 10, 0)
        deadline = result.instructions_of(InstructionType.SCHEDULE_DEADLINE)[0]
        assert deadline.fire_at == datetime(2024, 3, 6, 10, 0)

    def test_aware_dates_through_update_and_scans(self, orchestrator, now):
        task = orchestrator.new_task("A").task
        past = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)

        orchestrator.update_task(
            task.id, due_date=past, reminder_date=now.replace(tzinfo=timezone.utc) + timedelta(hours=1)
        )
        overdue = orchestrator.check_overdue(now=now.replace(tzinfo=timezone.utc))

        assert [e.task_id for e in overdue.events_of(EventType.TASK_OVERDUE)] == [task.id]
        assert orchestrator.get_task(task.id).reminder_date == now + timedelta(hours=1)

    def test_aware_end_date_on_pattern(self, orchestrator, now):
        ending = RecurringPattern(
            frequency=RecurrenceFrequency.DAILY,
            end_date=now.replace(tzinfo=timezone.utc) + timedelta(hours=1),
        )
        task = orchestrator.new_task("Last one", due_date=now, recurring_pattern=ending).task

        assert ending.end_date == now + timedelta(hours=1)
        assert orchestrator.complete_task(task.id).instructions_of(InstructionType.CREATE_TASK) == []

    def test_aware_statistics_bounds(self, orchestrator, now):
        orchestrator.new_task("A")
        stats = orchestrator.statistics(
            StatisticsPeriod.CUSTOM,
            start=(now - timedelta(hours=1)).replace(tzinfo=timezone.utc),
            end=(now + timedelta(hours=1)).replace(tzinfo=timezone.utc),
        )
        assert stats.total_tasks == 1
