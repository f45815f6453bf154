"""Side-effect instructions and events emitted by orchestrator commands.

Instructions are work for collaborators (storage, notifications). Events are
informational and are never required to be acted upon.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from taskorch.models.task import (
    Task,
    TaskStatus,
    deadline_notification_id,
    reminder_notification_id,
)


class InstructionType(str, Enum):
    """Instruction type enumeration."""
    SCHEDULE_DEADLINE = "schedule_deadline"
    SCHEDULE_REMINDER = "schedule_reminder"
    CANCEL_NOTIFICATION = "cancel_notification"
    PERSIST_TASK = "persist_task"
    CREATE_TASK = "create_task"
    DELETE_TASK = "delete_task"


class ScheduleDeadline(BaseModel):
    type: Literal[InstructionType.SCHEDULE_DEADLINE] = InstructionType.SCHEDULE_DEADLINE
    task_id: str
    title: str
    fire_at: datetime

    @property
    def identifier(self) -> str:
        return deadline_notification_id(self.task_id)


class ScheduleReminder(BaseModel):
    type: Literal[InstructionType.SCHEDULE_REMINDER] = InstructionType.SCHEDULE_REMINDER
    task_id: str
    title: str
    fire_at: datetime

    @property
    def identifier(self) -> str:
        return reminder_notification_id(self.task_id)


class CancelNotification(BaseModel):
    type: Literal[InstructionType.CANCEL_NOTIFICATION] = InstructionType.CANCEL_NOTIFICATION
    identifier: str


class PersistTask(BaseModel):
    """Write an existing task back to storage."""
    type: Literal[InstructionType.PERSIST_TASK] = InstructionType.PERSIST_TASK
    task: Task


class CreateTask(BaseModel):
    """Save a task that storage has not seen yet (new or materialized)."""
    type: Literal[InstructionType.CREATE_TASK] = InstructionType.CREATE_TASK
    task: Task
    generated_from: Optional[str] = Field(None, description="Source task id for recurrence successors")


class DeleteTask(BaseModel):
    type: Literal[InstructionType.DELETE_TASK] = InstructionType.DELETE_TASK
    task_id: str


Instruction = Union[
    ScheduleDeadline,
    ScheduleReminder,
    CancelNotification,
    PersistTask,
    CreateTask,
    DeleteTask,
]


class EventType(str, Enum):
    """Event type enumeration."""
    STATUS_CHANGED = "status_changed"
    TASK_UNBLOCKED = "task_unblocked"
    TASK_OVERDUE = "task_overdue"
    RECURRENCE_MATERIALIZED = "recurrence_materialized"


class TaskEvent(BaseModel):
    """Informational event for the application shell."""

    type: EventType = Field(..., description="Type of event")
    task_id: str = Field(..., description="ID of the task this event relates to")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Event timestamp")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional event details")


def status_changed(task_id: str, from_status: TaskStatus, to_status: TaskStatus, at: datetime) -> TaskEvent:
    return TaskEvent(
        type=EventType.STATUS_CHANGED,
        task_id=task_id,
        timestamp=at,
        details={"from": from_status.value, "to": to_status.value},
    )


class CommandResult(BaseModel):
    """Outcome of one orchestrator command."""

    tasks: List[Task] = Field(default_factory=list, description="Tasks affected by the command")
    instructions: List[Instruction] = Field(default_factory=list, description="Ordered side effects")
    events: List[TaskEvent] = Field(default_factory=list, description="Informational events")

    @property
    def task(self) -> Optional[Task]:
        """The primary task of a single-task command."""
        return self.tasks[0] if self.tasks else None

    def extend(self, other: "CommandResult") -> "CommandResult":
        self.tasks.extend(other.tasks)
        self.instructions.extend(other.instructions)
        self.events.extend(other.events)
        return self

    def instructions_of(self, instruction_type: InstructionType) -> list:
        return [i for i in self.instructions if i.type == instruction_type]

    def events_of(self, event_type: EventType) -> List[TaskEvent]:
        return [e for e in self.events if e.type == event_type]
