"""Recurrence evaluation for taskorch.

Decides whether a completed recurring task gets a successor and builds it.
Each successor belongs to the same series as its source (the series id is the
id of the first task) and carries the next 1-based occurrence index, so the
occurrence cap is a pure function of the completed task and its pattern.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from taskorch.models.recurrence import RecurrenceFrequency, RecurringPattern
from taskorch.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)

_SATURDAY = 5


def _step(pattern: RecurringPattern, reference: datetime) -> datetime:
    frequency = RecurrenceFrequency(pattern.frequency)

    if frequency in (RecurrenceFrequency.DAILY, RecurrenceFrequency.CUSTOM):
        return reference + timedelta(days=pattern.interval)

    if frequency == RecurrenceFrequency.WEEKLY:
        return reference + timedelta(weeks=pattern.interval)

    if frequency == RecurrenceFrequency.MONTHLY:
        # Clamps to the last day of shorter months (Jan 31 -> Feb 28/29)
        return reference + relativedelta(months=pattern.interval)

    if frequency == RecurrenceFrequency.YEARLY:
        return reference + relativedelta(years=pattern.interval)

    if frequency == RecurrenceFrequency.WEEKDAYS:
        nxt = reference + timedelta(days=1)
        while nxt.weekday() >= _SATURDAY:
            nxt = nxt + timedelta(days=1)
        return nxt

    raise ValueError(f"Unsupported recurrence frequency: {pattern.frequency}")


def next_occurrence(pattern: RecurringPattern, reference_date: datetime) -> Optional[datetime]:
    """Advance `reference_date` by one pattern step.

    Returns:
        The next occurrence, or None when it falls after the pattern's end date
    """
    nxt = _step(pattern, reference_date)
    if pattern.end_date is not None and nxt > pattern.end_date:
        return None
    return nxt


def reference_date(task: Task) -> Optional[datetime]:
    """Anchor for the next occurrence: the due date, else the completion time."""
    return task.due_date or task.completed_at


def occurrence_cap_reached(pattern: RecurringPattern, task: Task) -> bool:
    if pattern.max_occurrences is None:
        return False
    return task.occurrence_index >= pattern.max_occurrences


def should_materialize_next(
    pattern: RecurringPattern,
    completed_task: Task,
    enforce_max_occurrences: bool = True,
) -> bool:
    """Check whether a completed task should spawn its successor.

    False when the task has no completion timestamp, when the pattern has no
    further occurrence, or when the series already holds `max_occurrences`
    tasks (only if `enforce_max_occurrences`).
    """
    if completed_task.completed_at is None:
        return False
    anchor = reference_date(completed_task)
    if anchor is None or next_occurrence(pattern, anchor) is None:
        return False
    if enforce_max_occurrences and occurrence_cap_reached(pattern, completed_task):
        logger.debug(
            f"Series {completed_task.series_id} reached max_occurrences={pattern.max_occurrences}"
        )
        return False
    return True


def materialize_next(
    completed_task: Task,
    now: datetime,
    enforce_max_occurrences: bool = True,
) -> Optional[Task]:
    """Build the successor of a completed recurring task, or None if none is due.

    The successor copies the content fields of its source and starts over as
    a pending task with no prerequisites, due on the next occurrence. A
    reminder keeps the same offset from the due date as on the source.
    """
    pattern = completed_task.recurring_pattern
    if not completed_task.is_recurring or pattern is None:
        return None
    if not should_materialize_next(pattern, completed_task, enforce_max_occurrences):
        return None

    anchor = reference_date(completed_task)
    next_due = next_occurrence(pattern, anchor)

    next_reminder = None
    if completed_task.reminder_date is not None and completed_task.due_date is not None:
        next_reminder = next_due - (completed_task.due_date - completed_task.reminder_date)

    return Task(
        id=str(uuid.uuid4()),
        user_id=completed_task.user_id,
        title=completed_task.title,
        description=completed_task.description,
        status=TaskStatus.PENDING,
        priority=completed_task.priority,
        category=completed_task.category,
        tags=list(completed_task.tags),
        due_date=next_due,
        reminder_date=next_reminder,
        estimated_duration_sec=completed_task.estimated_duration_sec,
        location=completed_task.location,
        url=completed_task.url,
        is_recurring=True,
        recurring_pattern=pattern,
        recurrence_series_id=completed_task.series_id,
        occurrence_index=completed_task.occurrence_index + 1,
        parent_task_id=completed_task.parent_task_id,
        created_at=now,
        updated_at=now,
    )
