"""Instruction dispatcher for taskorch.

Carries out the instructions of a `CommandResult` against a storage and a
notification collaborator, in order. Storage failures propagate to the caller.
Notification delivery is fire-and-forget: failures are logged and dropped.
"""

import logging
from typing import Optional

from taskorch.models.instructions import (
    CancelNotification,
    CommandResult,
    CreateTask,
    DeleteTask,
    Instruction,
    PersistTask,
    ScheduleDeadline,
    ScheduleReminder,
)
from taskorch.ports import Notifier, TaskStore

logger = logging.getLogger(__name__)


class InstructionDispatcher:
    """Applies orchestrator instructions to collaborators.

    Instances are callable, so one can be registered directly as an
    orchestrator result handler.
    """

    def __init__(self, store: Optional[TaskStore] = None, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier

    def __call__(self, result: CommandResult) -> None:
        self.dispatch(result)

    def dispatch(self, result: CommandResult) -> int:
        """Apply every instruction of `result`.

        Returns:
            Number of instructions handed to a collaborator
        """
        applied = 0
        for instruction in result.instructions:
            if self.apply(instruction):
                applied += 1
        return applied

    def apply(self, instruction: Instruction) -> bool:
        """Apply one instruction. Returns False when no collaborator handles it."""
        if isinstance(instruction, (CreateTask, PersistTask, DeleteTask)):
            return self._apply_storage(instruction)
        return self._apply_notification(instruction)

    def _apply_storage(self, instruction: Instruction) -> bool:
        if self.store is None:
            return False
        if isinstance(instruction, CreateTask):
            self.store.save(instruction.task)
        elif isinstance(instruction, PersistTask):
            self.store.update(instruction.task)
        else:
            self.store.delete(instruction.task_id)
        return True

    def _apply_notification(self, instruction: Instruction) -> bool:
        if not isinstance(instruction, (ScheduleDeadline, ScheduleReminder, CancelNotification)):
            raise TypeError(f"Unknown instruction: {type(instruction).__name__}")
        if self.notifier is None:
            return False
        try:
            if isinstance(instruction, ScheduleDeadline):
                self.notifier.schedule_deadline(instruction.task_id, instruction.title, instruction.fire_at)
            elif isinstance(instruction, ScheduleReminder):
                self.notifier.schedule_reminder(instruction.task_id, instruction.title, instruction.fire_at)
            else:
                self.notifier.cancel(instruction.identifier)
        except Exception as e:
            # Notification delivery never fails a command
            logger.warning(f"Notification instruction {instruction.type.value} failed: {type(e).__name__}: {str(e)}")
        return True
