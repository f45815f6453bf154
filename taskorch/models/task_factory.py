"""Task creation factory for taskorch.

This module centralizes task creation logic so that commands, recurrence
materialization and tests all start from the same defaults.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from taskorch.errors import ValidationError
from taskorch.models.constants import DEFAULT_PRIORITY
from taskorch.models.recurrence import RecurringPattern
from taskorch.models.task import Priority, Task, TaskStatus


def create_task_defaults() -> Dict[str, Any]:
    """Get default task values as a dictionary."""
    return {
        "status": TaskStatus.PENDING,
        "priority": DEFAULT_PRIORITY,
        "tags": [],
        "is_recurring": False,
        "recurring_pattern": None,
        "prerequisite_ids": set(),
        "is_archived": False,
    }


def create_task_base(
    title: str,
    user_id: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[Priority] = None,
    category: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    due_date: Optional[datetime] = None,
    reminder_date: Optional[datetime] = None,
    estimated_duration_sec: Optional[float] = None,
    location: Optional[str] = None,
    url: Optional[str] = None,
    recurring_pattern: Optional[RecurringPattern] = None,
    parent_task_id: Optional[str] = None,
    prerequisite_ids: Optional[Iterable[str]] = None,
    task_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Task:
    """Create a task with defaults, allowing overrides.

    A task is recurring exactly when a pattern is supplied. The returned task
    is not validated; call `validate_task` before committing it.

    Args:
        title: Task title (required)
        user_id: Owning user
        priority: Task priority (defaults to medium)
        recurring_pattern: Recurrence rule; sets `is_recurring`
        prerequisite_ids: Ids the new task depends on
        task_id: Explicit id (defaults to a fresh UUID v4)
        now: Creation timestamp (defaults to utcnow)

    Returns:
        Task object with defaults applied
    """
    now = now or datetime.utcnow()
    defaults = create_task_defaults()

    return Task(
        id=task_id or str(uuid.uuid4()),
        user_id=user_id,
        title=title,
        description=description,
        status=defaults["status"],
        priority=priority if priority is not None else defaults["priority"],
        category=category,
        tags=list(tags) if tags is not None else defaults["tags"],
        due_date=due_date,
        reminder_date=reminder_date,
        estimated_duration_sec=estimated_duration_sec,
        location=location,
        url=url,
        is_recurring=recurring_pattern is not None,
        recurring_pattern=recurring_pattern,
        parent_task_id=parent_task_id,
        prerequisite_ids=set(prerequisite_ids) if prerequisite_ids is not None else defaults["prerequisite_ids"],
        is_archived=defaults["is_archived"],
        created_at=now,
        updated_at=now,
    )


def validate_task(task: Task) -> None:
    """Structural checks run before any write.

    Raises:
        ValidationError: listing every failed check
    """
    problems: List[str] = []
    if not task.title or not task.title.strip():
        problems.append("title must not be empty")
    if task.due_date is not None and task.started_at is not None and task.due_date < task.started_at:
        problems.append("due_date must not be before started_at")
    if task.estimated_duration_sec is not None and task.estimated_duration_sec < 0:
        problems.append("estimated duration must not be negative")
    if task.is_recurring and task.recurring_pattern is None:
        problems.append("recurring task requires a recurring_pattern")
    if task.id in task.prerequisite_ids:
        problems.append("task cannot be its own prerequisite")
    if task.parent_task_id is not None and task.parent_task_id == task.id:
        problems.append("task cannot be its own parent")
    if (task.status == TaskStatus.COMPLETED) != (task.completed_at is not None):
        problems.append("completed_at must be set exactly when status is completed")

    if problems:
        raise ValidationError(
            f"Invalid task {task.id}: " + "; ".join(problems),
            details={"task_id": task.id, "problems": problems},
        )
