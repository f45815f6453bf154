"""Task lifecycle state machine for taskorch.

The transition table is the single source of truth for which status moves
are legal and which side effects each move requires. Functions here are pure:
they return an updated copy of the task plus the effects for the caller to
carry out, and never touch the graph, storage or notifications.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, NamedTuple, Set, Tuple

from taskorch.errors import PrerequisitesNotMetError, StateTransitionError
from taskorch.models.task import Task, TaskStatus


class TransitionEffect(str, Enum):
    """Side effects a transition asks the orchestrator to perform."""
    RECORD_START = "record_start"
    CANCEL_REMINDER = "cancel_reminder"
    SET_COMPLETED = "set_completed"
    EVALUATE_RECURRENCE = "evaluate_recurrence"
    NOTIFY_DEPENDENTS = "notify_dependents"
    CLEAR_COMPLETION = "clear_completion"
    REARM_NOTIFICATIONS = "rearm_notifications"


_COMPLETE_EFFECTS = (
    TransitionEffect.SET_COMPLETED,
    TransitionEffect.CANCEL_REMINDER,
    TransitionEffect.EVALUATE_RECURRENCE,
    TransitionEffect.NOTIFY_DEPENDENTS,
)

TRANSITIONS: Dict[Tuple[TaskStatus, TaskStatus], Tuple[TransitionEffect, ...]] = {
    (TaskStatus.PENDING, TaskStatus.IN_PROGRESS): (TransitionEffect.RECORD_START,),
    (TaskStatus.ON_HOLD, TaskStatus.IN_PROGRESS): (TransitionEffect.RECORD_START,),
    (TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD): (),
    (TaskStatus.PENDING, TaskStatus.CANCELLED): (TransitionEffect.CANCEL_REMINDER,),
    (TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED): (TransitionEffect.CANCEL_REMINDER,),
    (TaskStatus.ON_HOLD, TaskStatus.CANCELLED): (TransitionEffect.CANCEL_REMINDER,),
    (TaskStatus.PENDING, TaskStatus.COMPLETED): _COMPLETE_EFFECTS,
    (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED): _COMPLETE_EFFECTS,
    (TaskStatus.ON_HOLD, TaskStatus.COMPLETED): _COMPLETE_EFFECTS,
}

# Moves into in_progress are gated on every prerequisite being completed
GATED_BY_PREREQUISITES: FrozenSet[Tuple[TaskStatus, TaskStatus]] = frozenset({
    (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
    (TaskStatus.ON_HOLD, TaskStatus.IN_PROGRESS),
})

UNCOMPLETE_EFFECTS = (
    TransitionEffect.CLEAR_COMPLETION,
    TransitionEffect.REARM_NOTIFICATIONS,
)


class TransitionOutcome(NamedTuple):
    task: Task
    effects: Tuple[TransitionEffect, ...]


def is_legal(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return (TaskStatus(from_status), TaskStatus(to_status)) in TRANSITIONS


def allowed_targets(from_status: TaskStatus) -> Set[TaskStatus]:
    """Statuses reachable from `from_status` in one table transition."""
    from_status = TaskStatus(from_status)
    return {to for (frm, to) in TRANSITIONS if frm == from_status}


def check_transition(
    task: Task,
    to_status: TaskStatus,
    blocking: Iterable[str] = (),
) -> Tuple[TransitionEffect, ...]:
    """Validate a move without applying it.

    Args:
        task: Task in its current state
        to_status: Requested status
        blocking: Prerequisite ids that are not completed yet

    Returns:
        The effects the move requires

    Raises:
        StateTransitionError: the pair is not in the table
        PrerequisitesNotMetError: the move is gated and prerequisites are open
    """
    from_status = TaskStatus(task.status)
    to_status = TaskStatus(to_status)
    key = (from_status, to_status)
    if key not in TRANSITIONS:
        raise StateTransitionError(from_status, to_status)
    blocking = set(blocking)
    if key in GATED_BY_PREREQUISITES and blocking:
        raise PrerequisitesNotMetError(task.id, from_status, to_status, blocking)
    return TRANSITIONS[key]


def transition(
    task: Task,
    to_status: TaskStatus,
    now: datetime,
    blocking: Iterable[str] = (),
) -> TransitionOutcome:
    """Apply a table transition and return the updated copy with its effects."""
    effects = check_transition(task, to_status, blocking)
    update = {"status": TaskStatus(to_status), "updated_at": now}

    if TransitionEffect.RECORD_START in effects:
        update["started_at"] = now
    if TransitionEffect.SET_COMPLETED in effects:
        update["completed_at"] = now
        if task.started_at is not None:
            update["actual_duration_sec"] = (now - task.started_at).total_seconds()

    return TransitionOutcome(task.model_copy(update=update), effects)


def uncomplete(task: Task, now: datetime) -> TransitionOutcome:
    """Re-open a completed task (explicit command, not a table transition).

    Raises:
        StateTransitionError: the task is not completed
    """
    if task.status != TaskStatus.COMPLETED:
        raise StateTransitionError(task.status, TaskStatus.PENDING)
    updated = task.model_copy(
        update={
            "status": TaskStatus.PENDING,
            "completed_at": None,
            "actual_duration_sec": None,
            "updated_at": now,
        }
    )
    return TransitionOutcome(updated, UNCOMPLETE_EFFECTS)
