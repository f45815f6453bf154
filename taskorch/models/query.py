"""Explicit query criteria passed to the storage collaborator."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from taskorch.models.task import Priority, Task, TaskStatus


class TaskQuery(BaseModel):
    """Criteria for `TaskStore.fetch`. Unset fields do not constrain the result."""

    ids: Optional[List[str]] = Field(None, description="Restrict to these task ids")
    user_id: Optional[str] = None
    statuses: Optional[List[TaskStatus]] = None
    exclude_statuses: Optional[List[TaskStatus]] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    archived: Optional[bool] = Field(False, description="None matches archived and active tasks")
    due_from: Optional[datetime] = Field(None, description="Inclusive lower bound on due_date")
    due_before: Optional[datetime] = Field(None, description="Exclusive upper bound on due_date")
    parent_task_id: Optional[str] = None
    has_prerequisite: Optional[str] = Field(None, description="Tasks listing this id as a prerequisite")
    search: Optional[str] = Field(None, description="Case-insensitive match on title, description, tags")
    limit: Optional[int] = Field(None, ge=1)

    @classmethod
    def active(cls, **kwargs) -> "TaskQuery":
        """Non-archived, non-cancelled tasks."""
        return cls(archived=False, exclude_statuses=[TaskStatus.CANCELLED], **kwargs)

    @classmethod
    def everything(cls) -> "TaskQuery":
        return cls(archived=None)

    def matches(self, task: Task) -> bool:
        """Evaluate the criteria against one task (used by in-memory stores)."""
        if self.ids is not None and task.id not in self.ids:
            return False
        if self.user_id is not None and task.user_id != self.user_id:
            return False
        if self.statuses is not None and task.status not in self.statuses:
            return False
        if self.exclude_statuses is not None and task.status in self.exclude_statuses:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.category is not None and task.category != self.category:
            return False
        if self.archived is not None and task.is_archived != self.archived:
            return False
        if self.due_from is not None and (task.due_date is None or task.due_date < self.due_from):
            return False
        if self.due_before is not None and (task.due_date is None or task.due_date >= self.due_before):
            return False
        if self.parent_task_id is not None and task.parent_task_id != self.parent_task_id:
            return False
        if self.has_prerequisite is not None and self.has_prerequisite not in task.prerequisite_ids:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = [task.title, task.description or ""] + list(task.tags)
            if not any(needle in s.lower() for s in haystack):
                return False
        return True
