"""Ports (interfaces) the core depends on.

The orchestrator never calls these directly; it returns instructions that the
application shell hands to implementations of these Protocols (see
`taskorch.dispatch`). Keeping them as Protocols keeps storage and
notification delivery swappable and makes testing easier.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from taskorch.models.query import TaskQuery
from taskorch.models.task import Task


class TaskStore(Protocol):
    """Storage collaborator. Any method may raise; callers propagate unchanged."""

    def fetch(self, query: TaskQuery) -> List[Task]: ...

    def fetch_one(self, task_id: str) -> Optional[Task]: ...

    def save(self, task: Task) -> Task: ...

    def update(self, task: Task) -> Task: ...

    def batch_save(self, tasks: Sequence[Task]) -> List[Task]: ...

    def delete(self, task_id: str) -> bool: ...

    def batch_delete(self, task_ids: Sequence[str]) -> int: ...


class Notifier(Protocol):
    """Notification collaborator. Fire-and-forget from the core's perspective."""

    def schedule_deadline(self, task_id: str, title: str, date: datetime) -> None: ...

    def schedule_reminder(self, task_id: str, title: str, date: datetime) -> None: ...

    def cancel(self, identifier: str) -> None: ...

    def cancel_all(self) -> None: ...
