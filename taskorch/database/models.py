"""SQLAlchemy database models for taskorch."""

from datetime import datetime
from typing import Type, TypeVar, Union
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String

from taskorch.database.database import Base
from taskorch.models.points import PointsHistory, PointsSource
from taskorch.models.recurrence import RecurringPattern
from taskorch.models.task import Priority, Task, TaskStatus

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=True, index=True)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, nullable=False, default=TaskStatus.PENDING.value, index=True)
    priority = Column(String, nullable=False, default=Priority.MEDIUM.value)
    category = Column(String, nullable=True, index=True)
    tags = Column(JSON, nullable=False, default=list)

    due_date = Column(DateTime, nullable=True, index=True)
    reminder_date = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    estimated_duration_sec = Column(Float, nullable=True)
    actual_duration_sec = Column(Float, nullable=True)

    location = Column(String, nullable=True)
    url = Column(String, nullable=True)

    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(JSON, nullable=True)
    recurrence_series_id = Column(String, nullable=True, index=True)
    occurrence_index = Column(Integer, nullable=False, default=1)

    # Weak references by id; the orchestrator keeps them consistent on delete
    parent_task_id = Column(String, nullable=True, index=True)
    prerequisite_ids = Column(JSON, nullable=False, default=list)

    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    # Owned by the domain model, no onupdate
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_pydantic(self) -> Task:
        """Convert database model to Pydantic model."""
        pattern = None
        if self.recurring_pattern:
            pattern = RecurringPattern.model_validate(self.recurring_pattern)

        return Task(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            description=self.description,
            status=value_to_enum(self.status, TaskStatus, TaskStatus.PENDING),
            priority=value_to_enum(self.priority, Priority, Priority.MEDIUM),
            category=self.category,
            tags=self.tags or [],
            due_date=self.due_date,
            reminder_date=self.reminder_date,
            started_at=self.started_at,
            completed_at=self.completed_at,
            estimated_duration_sec=self.estimated_duration_sec,
            actual_duration_sec=self.actual_duration_sec,
            location=self.location,
            url=self.url,
            is_recurring=self.is_recurring,
            recurring_pattern=pattern,
            recurrence_series_id=self.recurrence_series_id,
            occurrence_index=self.occurrence_index or 1,
            parent_task_id=self.parent_task_id,
            prerequisite_ids=set(self.prerequisite_ids or []),
            is_archived=self.is_archived,
            archived_at=self.archived_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pydantic(cls, task: Task) -> "TaskDB":
        """Create database model from Pydantic model."""
        task_db = cls(id=task.id, created_at=task.created_at)
        task_db.apply(task)
        return task_db

    def apply(self, task: Task) -> None:
        """Copy every mutable field of `task` onto this row."""
        self.user_id = task.user_id
        self.title = task.title
        self.description = task.description
        self.status = enum_to_value(task.status)
        self.priority = enum_to_value(task.priority)
        self.category = task.category
        self.tags = list(task.tags)
        self.due_date = task.due_date
        self.reminder_date = task.reminder_date
        self.started_at = task.started_at
        self.completed_at = task.completed_at
        self.estimated_duration_sec = task.estimated_duration_sec
        self.actual_duration_sec = task.actual_duration_sec
        self.location = task.location
        self.url = task.url
        self.is_recurring = task.is_recurring
        self.recurring_pattern = (
            task.recurring_pattern.model_dump(mode="json") if task.recurring_pattern else None
        )
        self.recurrence_series_id = task.recurrence_series_id
        self.occurrence_index = task.occurrence_index
        self.parent_task_id = task.parent_task_id
        # Sorted for a stable stored representation
        self.prerequisite_ids = sorted(task.prerequisite_ids)
        self.is_archived = task.is_archived
        self.archived_at = task.archived_at
        self.updated_at = task.updated_at


class PointsHistoryDB(Base):
    """Database model for an append-only points ledger entry."""

    __tablename__ = "points_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    source = Column(String, nullable=False, index=True)
    source_id = Column(String, nullable=True)
    reason = Column(String, nullable=False)
    multiplier = Column(Float, nullable=False, default=1.0)
    bonus_points = Column(Integer, nullable=False, default=0)
    earned_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_pydantic(self) -> PointsHistory:
        return PointsHistory(
            id=self.id,
            user_id=self.user_id,
            amount=self.amount,
            source=value_to_enum(self.source, PointsSource, PointsSource.BONUS),
            source_id=self.source_id,
            reason=self.reason,
            multiplier=self.multiplier,
            bonus_points=self.bonus_points,
            earned_at=self.earned_at,
        )

    @classmethod
    def from_pydantic(cls, entry: PointsHistory) -> "PointsHistoryDB":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            amount=entry.amount,
            source=enum_to_value(entry.source),
            source_id=entry.source_id,
            reason=entry.reason,
            multiplier=entry.multiplier,
            bonus_points=entry.bonus_points,
            earned_at=entry.earned_at,
        )
