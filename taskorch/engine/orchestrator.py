"""Task orchestrator for taskorch.

Composes the dependency graph, the lifecycle state machine and the recurrence
engine behind task-level commands. The orchestrator owns an in-memory task
table and graph; every command checks first and commits second, so a failed
command leaves both untouched. Commands never call storage or notification
services. They return a `CommandResult` whose instructions the application
shell executes, usually through `taskorch.dispatch.InstructionDispatcher`
registered as a handler.

One re-entrant lock guards the task table and the graph as a unit.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from taskorch.engine import lifecycle
from taskorch.engine.dependency_graph import DependencyGraph
from taskorch.engine.lifecycle import TransitionEffect
from taskorch.engine.recurrence import materialize_next
from taskorch.engine.statistics import (
    StatisticsPeriod,
    TaskStatistics,
    compute_statistics,
    period_range,
)
from taskorch.errors import NotFoundError, TaskOrchestrationError, ValidationError
from taskorch.models.constants import DEADLINE_LEAD_HOURS, DEADLINE_TITLE_PREFIX
from taskorch.models.dates import to_naive_utc
from taskorch.models.instructions import (
    CancelNotification,
    CommandResult,
    CreateTask,
    DeleteTask,
    EventType,
    Instruction,
    PersistTask,
    ScheduleDeadline,
    ScheduleReminder,
    TaskEvent,
    status_changed,
)
from taskorch.models.task import Priority, Task, TaskStatus
from taskorch.models.task_factory import create_task_base, validate_task

logger = logging.getLogger(__name__)

ResultHandler = Callable[[CommandResult], None]

# Fields `update_task` may change; status, timestamps, edges and archival
# have their own commands.
EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "priority",
    "category",
    "tags",
    "due_date",
    "reminder_date",
    "estimated_duration_sec",
    "location",
    "url",
    "recurring_pattern",
    "user_id",
})


class TaskOrchestrator:
    """Command surface of the task orchestration core."""

    def __init__(
        self,
        *,
        handlers: Optional[Iterable[ResultHandler]] = None,
        deadline_lead: timedelta = timedelta(hours=DEADLINE_LEAD_HOURS),
        enforce_max_occurrences: bool = True,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._tasks: Dict[str, Task] = {}
        self._graph = DependencyGraph()
        self._lock = threading.RLock()
        self._handlers: List[ResultHandler] = list(handlers or [])
        self._deadline_lead = deadline_lead
        self._enforce_max_occurrences = enforce_max_occurrences
        self._clock = clock
        # (series id, occurrence index) of deleted recurring occurrences
        self._retired: Set[Tuple[str, int]] = set()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def add_handler(self, handler: ResultHandler) -> None:
        """Register a consumer for every committed command result."""
        self._handlers.append(handler)

    def load(self, tasks: Iterable[Task]) -> int:
        """Replace the task table and graph with a storage snapshot.

        Edges pointing at ids absent from the snapshot are dropped.

        Returns:
            Number of tasks loaded
        """
        with self._lock:
            table = {t.id: t for t in tasks}
            edges = []
            for task in table.values():
                dangling = {p for p in task.prerequisite_ids if p not in table}
                if dangling:
                    logger.warning(f"Dropping dangling prerequisites of task {task.id}: {sorted(dangling)}")
                    table[task.id] = task.model_copy(
                        update={"prerequisite_ids": task.prerequisite_ids - dangling}
                    )
                edges.extend((task.id, p) for p in task.prerequisite_ids if p in table)
            self._tasks = table
            self._graph.load(edges)
            logger.debug(f"Loaded {len(table)} tasks and {len(edges)} dependency edges")
            return len(table)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return self._require(task_id)

    def find_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def all_tasks(self) -> List[Task]:
        with self._lock:
            return sorted(self._tasks.values(), key=lambda t: (t.created_at, t.id))

    def active_tasks(self) -> List[Task]:
        """Non-archived, non-cancelled tasks."""
        return [t for t in self.all_tasks() if t.is_active]

    def subtasks(self, parent_id: str) -> List[Task]:
        with self._lock:
            self._require(parent_id)
            return [
                t for t in self.all_tasks()
                if t.parent_task_id == parent_id and not t.is_archived
            ]

    def prerequisites(self, task_id: str) -> List[Task]:
        with self._lock:
            self._require(task_id)
            return self._tasks_by_ids(self._graph.prerequisites(task_id))

    def dependents(self, task_id: str) -> List[Task]:
        """Tasks that list `task_id` as a prerequisite."""
        with self._lock:
            self._require(task_id)
            return self._tasks_by_ids(self._graph.dependents(task_id))

    def can_start(self, task_id: str) -> bool:
        """True iff every prerequisite of the task is completed."""
        with self._lock:
            self._require(task_id)
            return self._graph.can_start(task_id, self._status_of)

    def blocked_tasks(self, task_id: str) -> List[Task]:
        """Dependents of `task_id` that cannot start yet."""
        with self._lock:
            return [
                t for t in self.dependents(task_id)
                if not self._graph.can_start(t.id, self._status_of)
            ]

    def statistics(
        self,
        period: StatisticsPeriod = StatisticsPeriod.THIS_WEEK,
        now: Optional[datetime] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TaskStatistics:
        now = self._now(now)
        period_start, period_end = period_range(period, now, to_naive_utc(start), to_naive_utc(end))
        return compute_statistics(self.all_tasks(), period_start, period_end, now)

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    def new_task(self, title: str, now: Optional[datetime] = None, **fields) -> CommandResult:
        """Build a task from keyword fields and create it."""
        now = self._now(now)
        return self.create_task(create_task_base(title=title, now=now, **fields))

    def create_task(self, task: Task) -> CommandResult:
        """Admit a new pending task, its prerequisite edges and its notifications.

        Raises:
            ValidationError: invalid fields, duplicate id, or non-pending status
            NotFoundError: a prerequisite or the parent does not exist
        """
        with self._lock:
            result = self._create(task)
        self._publish(result)
        return result

    def bulk_create(self, tasks: Iterable[Task]) -> CommandResult:
        return self._bulk(self._create, tasks)

    def update_task(self, task_id: str, now: Optional[datetime] = None, **changes) -> CommandResult:
        """Change editable fields and re-arm notifications.

        Raises:
            NotFoundError: unknown task
            ValidationError: non-editable field or invalid result
        """
        now = self._now(now)
        with self._lock:
            result = self._update(task_id, changes, now)
        self._publish(result)
        return result

    def bulk_update(self, updates: Mapping[str, dict], now: Optional[datetime] = None) -> CommandResult:
        """Apply `{task_id: changes}` one by one. Not atomic across the batch."""
        now = self._now(now)
        return self._bulk(lambda item: self._update(item[0], item[1], now), list(updates.items()))

    def update_priority(self, task_id: str, priority: Priority, now: Optional[datetime] = None) -> CommandResult:
        return self.update_task(task_id, now=now, priority=priority)

    def add_tag(self, task_id: str, tag: str, now: Optional[datetime] = None) -> CommandResult:
        tags = list(self.get_task(task_id).tags)
        return self.update_task(task_id, now=now, tags=tags + [tag])

    def remove_tag(self, task_id: str, tag: str, now: Optional[datetime] = None) -> CommandResult:
        tags = [t for t in self.get_task(task_id).tags if t != tag.strip()]
        return self.update_task(task_id, now=now, tags=tags)

    def delete_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Hard-delete a task, its edges and its notifications.

        Former dependents lose the edge (and may become startable); former
        subtasks lose their parent back-reference.
        """
        now = self._now(now)
        with self._lock:
            result = self._delete(task_id, now)
        self._publish(result)
        return result

    def bulk_delete(self, task_ids: Iterable[str], now: Optional[datetime] = None) -> CommandResult:
        now = self._now(now)
        return self._bulk(lambda task_id: self._delete(task_id, now), list(task_ids))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def transition(self, task_id: str, to_status: TaskStatus, now: Optional[datetime] = None) -> CommandResult:
        """Move a task along the lifecycle table.

        Raises:
            NotFoundError: unknown task
            StateTransitionError: the move is not in the table
            PrerequisitesNotMetError: starting with unfinished prerequisites
        """
        now = self._now(now)
        with self._lock:
            result = self._transition(task_id, TaskStatus(to_status), now)
        self._publish(result)
        return result

    def start_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        return self.transition(task_id, TaskStatus.IN_PROGRESS, now)

    def pause_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        return self.transition(task_id, TaskStatus.ON_HOLD, now)

    def resume_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        return self.transition(task_id, TaskStatus.IN_PROGRESS, now)

    def cancel_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        return self.transition(task_id, TaskStatus.CANCELLED, now)

    def complete_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Complete a task.

        In order: lifecycle complete, cancel the task's notifications,
        materialize the next occurrence of a recurring task, and report
        dependents that became startable. Dependents keep their status.
        """
        return self.transition(task_id, TaskStatus.COMPLETED, now)

    def uncomplete_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Re-open a completed task and re-arm its notifications."""
        now = self._now(now)
        with self._lock:
            task = self._require(task_id)
            outcome = lifecycle.uncomplete(task, now)
            result = self._commit_outcome(task, outcome, now)
        self._publish(result)
        return result

    # ------------------------------------------------------------------
    # Dependencies and subtasks
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, prerequisite_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Make `task_id` depend on `prerequisite_id`.

        Raises:
            NotFoundError: either task is unknown
            CyclicDependencyError: the edge would close a cycle (nothing changes)
        """
        now = self._now(now)
        with self._lock:
            task = self._require(task_id)
            self._require(prerequisite_id)
            result = CommandResult()
            if self._graph.add_prerequisite(task_id, prerequisite_id):
                updated = self._sync_edges(task, now)
                result.tasks.append(updated)
                result.instructions.append(PersistTask(task=updated))
                logger.debug(f"Task {task_id} now depends on {prerequisite_id}")
            else:
                result.tasks.append(task)
        self._publish(result)
        return result

    def remove_dependency(self, task_id: str, prerequisite_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Drop the edge if present. Removing a missing edge succeeds and changes nothing."""
        now = self._now(now)
        with self._lock:
            task = self._require(task_id)
            result = CommandResult()
            was_blocked = not self._graph.can_start(task_id, self._status_of)
            if self._graph.remove_prerequisite(task_id, prerequisite_id):
                updated = self._sync_edges(task, now)
                result.tasks.append(updated)
                result.instructions.append(PersistTask(task=updated))
                if was_blocked:
                    result.events.extend(self._unblocked_events([task_id], prerequisite_id, now))
            else:
                result.tasks.append(task)
        self._publish(result)
        return result

    def add_subtask(self, parent_id: str, subtask_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Point the subtask's weak back-reference at the parent.

        Raises:
            NotFoundError: either task is unknown
            ValidationError: the link would make a task its own ancestor
        """
        now = self._now(now)
        with self._lock:
            parent = self._require(parent_id)
            subtask = self._require(subtask_id)
            if subtask_id in self._ancestors(parent_id) | {parent_id}:
                raise ValidationError(
                    f"Task {subtask_id} cannot be a subtask of its own descendant {parent_id}",
                    details={"parent_id": parent_id, "subtask_id": subtask_id},
                )
            updated = subtask.model_copy(
                update={
                    "parent_task_id": parent_id,
                    "user_id": parent.user_id if parent.user_id is not None else subtask.user_id,
                    "updated_at": now,
                }
            )
            self._tasks[subtask_id] = updated
            result = CommandResult(tasks=[updated], instructions=[PersistTask(task=updated)])
        self._publish(result)
        return result

    def remove_subtask(self, subtask_id: str, now: Optional[datetime] = None) -> CommandResult:
        now = self._now(now)
        with self._lock:
            subtask = self._require(subtask_id)
            result = CommandResult(tasks=[subtask])
            if subtask.parent_task_id is not None:
                updated = subtask.model_copy(update={"parent_task_id": None, "updated_at": now})
                self._tasks[subtask_id] = updated
                result = CommandResult(tasks=[updated], instructions=[PersistTask(task=updated)])
        self._publish(result)
        return result

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Soft-delete: hide the task from active queries and cancel its notifications."""
        now = self._now(now)
        with self._lock:
            task = self._require(task_id)
            updated = task.model_copy(update={"is_archived": True, "archived_at": now, "updated_at": now})
            self._tasks[task_id] = updated
            result = CommandResult(tasks=[updated], instructions=[PersistTask(task=updated)])
            result.instructions.extend(self._cancel_notifications(updated))
        self._publish(result)
        return result

    def unarchive_task(self, task_id: str, now: Optional[datetime] = None) -> CommandResult:
        """Restore an archived task; notifications come back unless it is completed."""
        now = self._now(now)
        with self._lock:
            task = self._require(task_id)
            updated = task.model_copy(update={"is_archived": False, "archived_at": None, "updated_at": now})
            self._tasks[task_id] = updated
            result = CommandResult(tasks=[updated], instructions=[PersistTask(task=updated)])
            result.instructions.extend(self._schedule_notifications(updated, now))
        self._publish(result)
        return result

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def check_overdue(self, now: Optional[datetime] = None) -> CommandResult:
        """Report active tasks past their due date. Never changes a status."""
        now = self._now(now)
        with self._lock:
            overdue = [t for t in self.active_tasks() if t.is_overdue(now)]
            result = CommandResult(tasks=overdue)
            for task in overdue:
                logger.info(f"Task '{task.title}' is overdue")
                result.events.append(
                    TaskEvent(
                        type=EventType.TASK_OVERDUE,
                        task_id=task.id,
                        timestamp=now,
                        details={"due_date": task.due_date.isoformat()},
                    )
                )
        self._publish(result)
        return result

    def reconcile_notifications(self, now: Optional[datetime] = None) -> CommandResult:
        """Re-derive every notification from current due and reminder dates.

        For each task, in id order: cancel both of its slots, then schedule the
        ones that should exist. Running it twice yields the same instructions.
        """
        now = self._now(now)
        with self._lock:
            result = CommandResult()
            for task_id in sorted(self._tasks):
                task = self._tasks[task_id]
                result.instructions.extend(self._cancel_notifications(task))
                result.instructions.extend(self._schedule_notifications(task, now))
        self._publish(result)
        return result

    def process_recurring_tasks(self, now: Optional[datetime] = None) -> CommandResult:
        """Materialize missing successors of completed recurring tasks.

        A series that already has a later occurrence is skipped, and so is an
        occurrence deleted through `delete_task` in this process. Deletions are
        not persisted, so after a fresh `load` a deleted successor whose
        predecessor is the newest completed occurrence is created again.
        """
        now = self._now(now)
        with self._lock:
            result = CommandResult()
            for task_id in sorted(self._tasks):
                task = self._tasks[task_id]
                if task.status == TaskStatus.COMPLETED and task.is_recurring:
                    result.extend(self._materialize_successor(task, now))
        self._publish(result)
        return result

    # ------------------------------------------------------------------
    # Internals (callers hold the lock)
    # ------------------------------------------------------------------

    def _publish(self, result: CommandResult) -> None:
        for handler in self._handlers:
            handler(result)

    def _now(self, now: Optional[datetime]) -> datetime:
        return to_naive_utc(now or self._clock())

    def _bulk(self, apply: Callable, items: Iterable) -> CommandResult:
        """Apply items one by one, publishing whatever succeeded before a failure."""
        combined = CommandResult()
        try:
            for item in items:
                with self._lock:
                    combined.extend(apply(item))
        except TaskOrchestrationError as e:
            e.details["applied"] = [t.id for t in combined.tasks]
            logger.error(f"Bulk command stopped after {len(combined.tasks)} items: {type(e).__name__}: {e}")
            self._publish(combined)
            raise
        self._publish(combined)
        return combined

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _status_of(self, task_id: str) -> Optional[TaskStatus]:
        task = self._tasks.get(task_id)
        return task.status if task is not None else None

    def _tasks_by_ids(self, ids: Set[str]) -> List[Task]:
        tasks = [self._tasks[i] for i in ids if i in self._tasks]
        return sorted(tasks, key=lambda t: (t.created_at, t.id))

    def _ancestors(self, task_id: str) -> Set[str]:
        seen: Set[str] = set()
        current = self._tasks.get(task_id)
        while current is not None and current.parent_task_id is not None:
            if current.parent_task_id in seen:
                break
            seen.add(current.parent_task_id)
            current = self._tasks.get(current.parent_task_id)
        return seen

    def _sync_edges(self, task: Task, now: datetime) -> Task:
        """Mirror the graph's prerequisite set onto the stored task."""
        updated = task.model_copy(
            update={"prerequisite_ids": self._graph.prerequisites(task.id), "updated_at": now}
        )
        self._tasks[task.id] = updated
        return updated

    def _create(self, task: Task) -> CommandResult:
        validate_task(task)
        if task.id in self._tasks:
            raise ValidationError(f"Task {task.id} already exists", details={"task_id": task.id})
        if task.status != TaskStatus.PENDING:
            raise ValidationError(
                f"New task {task.id} must be pending, got {task.status.value}",
                details={"task_id": task.id},
            )
        for prerequisite_id in sorted(task.prerequisite_ids):
            self._require(prerequisite_id)
        if task.parent_task_id is not None:
            self._require(task.parent_task_id)

        # A new task has no dependents, so its edges cannot close a cycle.
        self._tasks[task.id] = task
        for prerequisite_id in task.prerequisite_ids:
            self._graph.add_prerequisite(task.id, prerequisite_id)

        logger.debug(f"Created task {task.id}: {task.title[:50]}")
        result = CommandResult(tasks=[task], instructions=[CreateTask(task=task)])
        result.instructions.extend(self._schedule_notifications(task, task.created_at))
        return result

    def _update(self, task_id: str, changes: dict, now: datetime) -> CommandResult:
        task = self._require(task_id)
        illegal = set(changes) - EDITABLE_FIELDS
        if illegal:
            raise ValidationError(
                f"Fields not editable through update: {', '.join(sorted(illegal))}",
                details={"task_id": task_id, "fields": sorted(illegal)},
            )
        data = task.model_dump()
        data.update(changes)
        data["updated_at"] = now
        if "recurring_pattern" in changes:
            data["is_recurring"] = changes["recurring_pattern"] is not None
        try:
            updated = Task.model_validate(data)
        except ValueError as e:
            raise ValidationError(f"Invalid update for task {task_id}: {e}", details={"task_id": task_id}) from e
        validate_task(updated)

        self._tasks[task_id] = updated
        logger.debug(f"Updated task {task_id}: {updated.title[:50]}")
        result = CommandResult(tasks=[updated], instructions=[PersistTask(task=updated)])
        result.instructions.extend(self._cancel_notifications(updated))
        result.instructions.extend(self._schedule_notifications(updated, now))
        return result

    def _delete(self, task_id: str, now: datetime) -> CommandResult:
        task = self._require(task_id)
        result = CommandResult(tasks=[task])
        result.instructions.extend(self._cancel_notifications(task))

        former_dependents = self._graph.remove_task(task_id)
        del self._tasks[task_id]
        if task.is_recurring:
            self._retired.add((task.series_id, task.occurrence_index))

        for dependent_id in sorted(former_dependents):
            updated = self._sync_edges(self._tasks[dependent_id], now)
            result.instructions.append(PersistTask(task=updated))
        result.events.extend(self._unblocked_events(former_dependents, task_id, now))

        for child in [t for t in self._tasks.values() if t.parent_task_id == task_id]:
            orphan = child.model_copy(update={"parent_task_id": None, "updated_at": now})
            self._tasks[child.id] = orphan
            result.instructions.append(PersistTask(task=orphan))

        result.instructions.append(DeleteTask(task_id=task_id))
        logger.debug(f"Deleted task {task_id}")
        return result

    def _transition(self, task_id: str, to_status: TaskStatus, now: datetime) -> CommandResult:
        task = self._require(task_id)
        blocking = self._graph.blocking_prerequisites(task_id, self._status_of)
        outcome = lifecycle.transition(task, to_status, now, blocking)
        return self._commit_outcome(task, outcome, now)

    def _commit_outcome(self, before: Task, outcome: lifecycle.TransitionOutcome, now: datetime) -> CommandResult:
        """Store the transitioned task and translate its effects into instructions."""
        task = outcome.task
        self._tasks[task.id] = task
        logger.debug(f"Task {task.id}: {before.status.value} -> {task.status.value}")

        result = CommandResult(
            tasks=[task],
            instructions=[PersistTask(task=task)],
            events=[status_changed(task.id, before.status, task.status, now)],
        )
        effects = outcome.effects

        if TransitionEffect.CANCEL_REMINDER in effects:
            result.instructions.extend(self._cancel_notifications(task))
        if TransitionEffect.REARM_NOTIFICATIONS in effects:
            result.instructions.extend(self._cancel_notifications(task))
            result.instructions.extend(self._schedule_notifications(task, now))
        if TransitionEffect.EVALUATE_RECURRENCE in effects:
            result.extend(self._materialize_successor(task, now))
        if TransitionEffect.NOTIFY_DEPENDENTS in effects:
            result.events.extend(self._unblocked_events(self._graph.dependents(task.id), task.id, now))
        return result

    def _has_successor(self, task: Task) -> bool:
        """True when a later occurrence of the series exists or the next one was deleted."""
        series = task.series_id
        if (series, task.occurrence_index + 1) in self._retired:
            return True
        return any(
            t.series_id == series and t.occurrence_index > task.occurrence_index
            for t in self._tasks.values()
        )

    def _materialize_successor(self, task: Task, now: datetime) -> CommandResult:
        result = CommandResult()
        if self._has_successor(task):
            return result
        successor = materialize_next(task, now, self._enforce_max_occurrences)
        if successor is None:
            return result

        self._tasks[successor.id] = successor
        logger.debug(
            f"Materialized occurrence {successor.occurrence_index} of series {successor.series_id} "
            f"due {successor.due_date.isoformat()}"
        )
        result.tasks.append(successor)
        result.instructions.append(CreateTask(task=successor, generated_from=task.id))
        result.instructions.extend(self._schedule_notifications(successor, now))
        result.events.append(
            TaskEvent(
                type=EventType.RECURRENCE_MATERIALIZED,
                task_id=successor.id,
                timestamp=now,
                details={"generated_from": task.id, "occurrence_index": successor.occurrence_index},
            )
        )
        return result

    def _unblocked_events(self, candidate_ids: Iterable[str], cause_id: str, now: datetime) -> List[TaskEvent]:
        events = []
        for dependent_id in sorted(candidate_ids):
            dependent = self._tasks.get(dependent_id)
            if dependent is None or dependent.is_archived or dependent.status != TaskStatus.PENDING:
                continue
            if self._graph.can_start(dependent_id, self._status_of):
                logger.info(f"Task '{dependent.title}' is now ready to start")
                events.append(
                    TaskEvent(
                        type=EventType.TASK_UNBLOCKED,
                        task_id=dependent_id,
                        timestamp=now,
                        details={"unblocked_by": cause_id},
                    )
                )
        return events

    def _wants_notifications(self, task: Task) -> bool:
        return not task.is_archived and not TaskStatus(task.status).is_terminal

    def _cancel_notifications(self, task: Task) -> List[Instruction]:
        return [CancelNotification(identifier=identifier) for identifier in task.notification_ids()]

    def _schedule_notifications(self, task: Task, now: datetime) -> List[Instruction]:
        """Deadline one lead period before due (if still ahead) and the reminder (if ahead)."""
        if not self._wants_notifications(task):
            return []
        instructions: List[Instruction] = []
        if task.due_date is not None:
            fire_at = task.due_date - self._deadline_lead
            if fire_at > now:
                instructions.append(
                    ScheduleDeadline(task_id=task.id, title=f"{DEADLINE_TITLE_PREFIX}{task.title}", fire_at=fire_at)
                )
        if task.reminder_date is not None and task.reminder_date > now:
            instructions.append(ScheduleReminder(task_id=task.id, title=task.title, fire_at=task.reminder_date))
        return instructions
