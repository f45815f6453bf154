"""Data models for taskorch."""

from taskorch.models.recurrence import RecurrenceFrequency, RecurringPattern
from taskorch.models.task import (
    Priority,
    Task,
    TaskStatus,
    deadline_notification_id,
    reminder_notification_id,
)
from taskorch.models.points import (
    ConsistencyMultiplier,
    LevelMultiplier,
    PointsBreakdown,
    PointsHistory,
    PointsMultiplier,
    PointsSource,
    SpecialMultiplier,
    StreakMultiplier,
    TimeOfDayMultiplier,
    TimeOfDayPeriod,
)
from taskorch.models.query import TaskQuery
from taskorch.models.instructions import (
    CancelNotification,
    CommandResult,
    CreateTask,
    DeleteTask,
    EventType,
    Instruction,
    InstructionType,
    PersistTask,
    ScheduleDeadline,
    ScheduleReminder,
    TaskEvent,
)

__all__ = [
    "RecurrenceFrequency",
    "RecurringPattern",
    "Priority",
    "Task",
    "TaskStatus",
    "deadline_notification_id",
    "reminder_notification_id",
    "ConsistencyMultiplier",
    "LevelMultiplier",
    "PointsBreakdown",
    "PointsHistory",
    "PointsMultiplier",
    "PointsSource",
    "SpecialMultiplier",
    "StreakMultiplier",
    "TimeOfDayMultiplier",
    "TimeOfDayPeriod",
    "TaskQuery",
    "CancelNotification",
    "CommandResult",
    "CreateTask",
    "DeleteTask",
    "EventType",
    "Instruction",
    "InstructionType",
    "PersistTask",
    "ScheduleDeadline",
    "ScheduleReminder",
    "TaskEvent",
]
