"""In-process notification collaborator.

Keeps pending notifications in a dict keyed by identifier, the way a local
notification center replaces a request that reuses an identifier.
"""

import logging
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel

from taskorch.models.task import deadline_notification_id, reminder_notification_id

logger = logging.getLogger(__name__)


class PendingNotification(BaseModel):
    identifier: str
    task_id: str
    title: str
    fire_at: datetime
    kind: str


class InMemoryNotifier:
    """Notifier that records pending notifications instead of delivering them."""

    def __init__(self):
        self.pending: Dict[str, PendingNotification] = {}

    def schedule_deadline(self, task_id: str, title: str, date: datetime) -> None:
        self._schedule(deadline_notification_id(task_id), task_id, title, date, "deadline")

    def schedule_reminder(self, task_id: str, title: str, date: datetime) -> None:
        self._schedule(reminder_notification_id(task_id), task_id, title, date, "reminder")

    def cancel(self, identifier: str) -> None:
        if self.pending.pop(identifier, None) is not None:
            logger.debug(f"Cancelled notification {identifier}")

    def cancel_all(self) -> None:
        logger.debug(f"Cancelled {len(self.pending)} notifications")
        self.pending.clear()

    def for_task(self, task_id: str) -> List[PendingNotification]:
        return [n for n in self.pending.values() if n.task_id == task_id]

    def _schedule(self, identifier: str, task_id: str, title: str, date: datetime, kind: str) -> None:
        self.pending[identifier] = PendingNotification(
            identifier=identifier, task_id=task_id, title=title, fire_at=date, kind=kind
        )
        logger.debug(f"Scheduled {kind} notification {identifier} at {date.isoformat()}")
