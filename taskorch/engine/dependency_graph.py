"""Task dependency graph for taskorch.

Edges point from a task to its prerequisites and are stored by task id only:
`task id -> set(prerequisite ids)` plus a derived reverse index
`prerequisite id -> set(dependent ids)`. The graph holds no task objects;
status lookups are supplied by the caller.

The graph is not thread-safe on its own. The orchestrator serializes every
mutation together with the task table it belongs to.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from taskorch.errors import CyclicDependencyError
from taskorch.models.task import TaskStatus

logger = logging.getLogger(__name__)

StatusLookup = Callable[[str], Optional[TaskStatus]]


class DependencyGraph:
    """Prerequisite -> dependent edges between task ids."""

    def __init__(self) -> None:
        self._prerequisites: Dict[str, Set[str]] = {}
        self._dependents: Dict[str, Set[str]] = {}

    def load(self, edges: Iterable[Tuple[str, str]]) -> None:
        """Replace all edges with (task, prerequisite) pairs.

        Loaded edges are trusted; no cycle check is performed, so the
        traversal below must tolerate a stored cycle.
        """
        self._prerequisites.clear()
        self._dependents.clear()
        for task_id, prerequisite_id in edges:
            self._link(task_id, prerequisite_id)

    def would_create_cycle(self, task_id: str, prerequisite_id: str) -> bool:
        """Check whether `prerequisite_id` already depends on `task_id`.

        Iterative depth-first search from the prerequisite along its own
        prerequisite edges, visiting each node at most once.
        """
        if task_id == prerequisite_id:
            return True

        visited: Set[str] = set()
        stack: List[str] = [prerequisite_id]
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            for upstream in self._prerequisites.get(node, ()):
                if upstream == task_id:
                    return True
                if upstream not in visited:
                    stack.append(upstream)
        return False

    def add_prerequisite(self, task_id: str, prerequisite_id: str) -> bool:
        """Admit the edge task -> prerequisite.

        Returns:
            True if the edge was added, False if it already existed

        Raises:
            CyclicDependencyError: if the edge would close a cycle (graph unchanged)
        """
        if prerequisite_id in self._prerequisites.get(task_id, ()):
            return False
        if self.would_create_cycle(task_id, prerequisite_id):
            logger.debug(f"Rejected edge {task_id} -> {prerequisite_id}: cycle")
            raise CyclicDependencyError(task_id, prerequisite_id)
        self._link(task_id, prerequisite_id)
        return True

    def remove_prerequisite(self, task_id: str, prerequisite_id: str) -> bool:
        """Drop the edge if present. Idempotent.

        Returns:
            True if an edge was removed
        """
        prerequisites = self._prerequisites.get(task_id)
        if not prerequisites or prerequisite_id not in prerequisites:
            return False
        prerequisites.discard(prerequisite_id)
        if not prerequisites:
            del self._prerequisites[task_id]
        dependents = self._dependents.get(prerequisite_id)
        if dependents is not None:
            dependents.discard(task_id)
            if not dependents:
                del self._dependents[prerequisite_id]
        return True

    def remove_task(self, task_id: str) -> Set[str]:
        """Drop every edge touching a task. Returns the ids of its former dependents."""
        for prerequisite_id in list(self._prerequisites.get(task_id, ())):
            self.remove_prerequisite(task_id, prerequisite_id)
        former_dependents = set(self._dependents.get(task_id, ()))
        for dependent_id in former_dependents:
            self.remove_prerequisite(dependent_id, task_id)
        return former_dependents

    def prerequisites(self, task_id: str) -> Set[str]:
        return set(self._prerequisites.get(task_id, ()))

    def dependents(self, task_id: str) -> Set[str]:
        """Every task that lists `task_id` as a prerequisite."""
        return set(self._dependents.get(task_id, ()))

    def blocking_prerequisites(self, task_id: str, status_of: StatusLookup) -> Set[str]:
        """Prerequisites that are not completed. Unknown ids count as blocking."""
        return {
            prerequisite_id
            for prerequisite_id in self._prerequisites.get(task_id, ())
            if status_of(prerequisite_id) != TaskStatus.COMPLETED
        }

    def can_start(self, task_id: str, status_of: StatusLookup) -> bool:
        """True iff every prerequisite of the task is completed."""
        return not self.blocking_prerequisites(task_id, status_of)

    def edges(self) -> Set[Tuple[str, str]]:
        """Snapshot of all (task, prerequisite) pairs."""
        return {
            (task_id, prerequisite_id)
            for task_id, prerequisites in self._prerequisites.items()
            for prerequisite_id in prerequisites
        }

    def __len__(self) -> int:
        return sum(len(p) for p in self._prerequisites.values())

    def _link(self, task_id: str, prerequisite_id: str) -> None:
        self._prerequisites.setdefault(task_id, set()).add(prerequisite_id)
        self._dependents.setdefault(prerequisite_id, set()).add(task_id)
