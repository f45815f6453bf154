"""Task data model for taskorch."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field, field_validator

from taskorch.models.dates import to_naive_utc
from taskorch.models.recurrence import RecurringPattern


class TaskStatus(str, Enum):
    """Task status enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class Priority(str, Enum):
    """Task priority enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def sort_order(self) -> int:
        return _PRIORITY_SORT_ORDER[self]

    @property
    def points(self) -> int:
        return _PRIORITY_POINTS[self]


_PRIORITY_SORT_ORDER = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}

_PRIORITY_POINTS = {
    Priority.LOW: 5,
    Priority.MEDIUM: 10,
    Priority.HIGH: 15,
    Priority.URGENT: 20,
}


class Task(BaseModel):
    """Canonical Task model.

    Instances are treated as values: the orchestrator never mutates a stored
    task in place, it commits a `model_copy(update=...)` instead.
    """

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    user_id: Optional[str] = Field(None, description="User ID who owns this task")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    status: TaskStatus = Field(TaskStatus.PENDING, description="Lifecycle status")
    priority: Priority = Field(Priority.MEDIUM, description="Task priority")
    category: Optional[str] = Field(None, description="Category name")
    tags: List[str] = Field(default_factory=list, description="Unique free-form tags")

    due_date: Optional[datetime] = Field(None, description="Task due date")
    reminder_date: Optional[datetime] = Field(None, description="When to remind the user")
    started_at: Optional[datetime] = Field(None, description="Set when the task enters in_progress")
    completed_at: Optional[datetime] = Field(None, description="Non-null iff status is completed")
    estimated_duration_sec: Optional[float] = Field(None, description="Estimated duration in seconds")
    actual_duration_sec: Optional[float] = Field(None, description="Measured duration in seconds")

    location: Optional[str] = Field(None, description="Where the task happens")
    url: Optional[str] = Field(None, description="Link to a related document or site")

    is_recurring: bool = Field(False, description="Whether completing this task spawns a successor")
    recurring_pattern: Optional[RecurringPattern] = Field(None, description="Recurrence rule")
    recurrence_series_id: Optional[str] = Field(
        None, description="Id of the first task of the recurring series"
    )
    occurrence_index: int = Field(1, ge=1, description="1-based position within the recurring series")

    parent_task_id: Optional[str] = Field(None, description="Weak back-reference to the parent task")
    prerequisite_ids: Set[str] = Field(
        default_factory=set, description="Ids of tasks that must complete before this one starts"
    )

    is_archived: bool = Field(False, description="Soft-delete flag")
    archived_at: Optional[datetime] = Field(None, description="When the task was archived")

    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")

    @field_validator(
        "due_date", "reminder_date", "started_at", "completed_at",
        "archived_at", "created_at", "updated_at",
    )
    @classmethod
    def _naive_utc(cls, v):
        return to_naive_utc(v)

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        # Strip, drop blanks, deduplicate but preserve order
        seen = set()
        out: List[str] = []
        for tag in v:
            clean = tag.strip()
            if clean and clean not in seen:
                seen.add(clean)
                out.append(clean)
        return out

    @property
    def is_active(self) -> bool:
        """Active tasks are neither archived nor cancelled."""
        return not self.is_archived and self.status != TaskStatus.CANCELLED

    @property
    def duration(self) -> Optional[float]:
        """Actual duration when known, otherwise the estimate."""
        if self.actual_duration_sec is not None:
            return self.actual_duration_sec
        return self.estimated_duration_sec

    @property
    def series_id(self) -> str:
        return self.recurrence_series_id or self.id

    def is_overdue(self, now: datetime) -> bool:
        """Check whether the due date has passed on a task that is not completed."""
        if self.due_date is None or self.status == TaskStatus.COMPLETED:
            return False
        return now > self.due_date

    def days_until_due(self, now: datetime) -> Optional[int]:
        if self.due_date is None:
            return None
        return (self.due_date - now).days

    def notification_ids(self) -> List[str]:
        """Identifiers of the reminder and deadline slots owned by this task."""
        return [reminder_notification_id(self.id), deadline_notification_id(self.id)]


def reminder_notification_id(task_id: str) -> str:
    return f"task-{task_id}"


def deadline_notification_id(task_id: str) -> str:
    # Separate slot so a reminder never replaces the deadline notification
    return f"task-{task_id}-deadline"
