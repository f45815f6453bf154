"""Repository layer for task storage.

`SqlTaskStore` is the SQLAlchemy implementation of `taskorch.ports.TaskStore`.
"""

import logging
from typing import List, Optional, Sequence, Set

from sqlalchemy.orm import Query, Session

from taskorch.database.models import TaskDB, enum_to_value
from taskorch.errors import DataOperationError, NotFoundError
from taskorch.models.query import TaskQuery
from taskorch.models.task import Task

logger = logging.getLogger(__name__)


class SqlTaskStore:
    """Repository for Task database operations."""

    def __init__(self, db: Session):
        self.db = db

    def _as_unique_ids(self, task_ids: Sequence[str]) -> List[str]:
        """Deduplicate while preserving order."""
        seen: Set[str] = set()
        unique: List[str] = []
        for task_id in task_ids:
            if task_id not in seen:
                seen.add(task_id)
                unique.append(task_id)
        return unique

    def _filtered(self, query: TaskQuery) -> Query:
        """Translate the column criteria of `query` into SQL filters.

        Criteria on JSON columns (tags, prerequisites) and free-text search are
        evaluated afterwards with `TaskQuery.matches`.
        """
        q = self.db.query(TaskDB)
        if query.ids is not None:
            q = q.filter(TaskDB.id.in_(self._as_unique_ids(query.ids)))
        if query.user_id is not None:
            q = q.filter(TaskDB.user_id == query.user_id)
        if query.statuses is not None:
            q = q.filter(TaskDB.status.in_([enum_to_value(s) for s in query.statuses]))
        if query.exclude_statuses is not None:
            q = q.filter(TaskDB.status.notin_([enum_to_value(s) for s in query.exclude_statuses]))
        if query.priority is not None:
            q = q.filter(TaskDB.priority == enum_to_value(query.priority))
        if query.category is not None:
            q = q.filter(TaskDB.category == query.category)
        if query.archived is not None:
            q = q.filter(TaskDB.is_archived.is_(query.archived))
        if query.due_from is not None:
            q = q.filter(TaskDB.due_date >= query.due_from)
        if query.due_before is not None:
            q = q.filter(TaskDB.due_date < query.due_before)
        if query.parent_task_id is not None:
            q = q.filter(TaskDB.parent_task_id == query.parent_task_id)
        return q.order_by(TaskDB.created_at, TaskDB.id)

    def fetch(self, query: TaskQuery) -> List[Task]:
        """Get tasks matching `query`, oldest first."""
        try:
            rows = self._filtered(query).all()
        except Exception as e:
            logger.error(f"Failed to fetch tasks: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to fetch tasks: {str(e)}") from e

        tasks = [t for t in (row.to_pydantic() for row in rows) if query.matches(t)]
        if query.limit is not None:
            tasks = tasks[:query.limit]
        return tasks

    def fetch_one(self, task_id: str) -> Optional[Task]:
        """Get task by ID."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        return task_db.to_pydantic() if task_db else None

    def save(self, task: Task) -> Task:
        """Create a new task."""
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to create task {task.id}: {str(e)}") from e

    def update(self, task: Task) -> Task:
        """Update an existing task.

        Raises:
            NotFoundError: no row with the task's id
            DataOperationError: the write failed (rolled back)
        """
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task.id).first()
        if not task_db:
            raise NotFoundError("Task", task.id)

        task_db.apply(task)
        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {task.id}: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to update task {task.id}: {str(e)}") from e

    def batch_save(self, tasks: Sequence[Task]) -> List[Task]:
        """Create several tasks in one transaction."""
        if not tasks:
            return []
        try:
            rows = [TaskDB.from_pydantic(task) for task in tasks]
            self.db.add_all(rows)
            self.db.commit()
            for row in rows:
                self.db.refresh(row)
            logger.debug(f"Created {len(rows)} tasks")
            return [row.to_pydantic() for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create {len(tasks)} tasks: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to create {len(tasks)} tasks: {str(e)}") from e

    def delete(self, task_id: str) -> bool:
        """Permanently delete a task by ID. Returns False when it does not exist."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        if not task_db:
            return False

        try:
            self.db.delete(task_db)
            self.db.commit()
            logger.debug(f"Deleted task {task_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete task {task_id}: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to delete task {task_id}: {str(e)}") from e

    def batch_delete(self, task_ids: Sequence[str]) -> int:
        """Permanently delete several tasks. Returns how many rows were removed."""
        ids = self._as_unique_ids(task_ids)
        if not ids:
            return 0
        try:
            count = (
                self.db.query(TaskDB)
                .filter(TaskDB.id.in_(ids))
                .delete(synchronize_session=False)
            )
            self.db.commit()
            logger.debug(f"Deleted {count} tasks")
            return count
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete {len(ids)} tasks: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to delete {len(ids)} tasks: {str(e)}") from e
