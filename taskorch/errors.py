"""Exceptions raised by the taskorch core."""

from typing import Iterable, Optional


class TaskOrchestrationError(Exception):
    """Base exception for all taskorch errors."""

    def __init__(self, message: str, *, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StateTransitionError(TaskOrchestrationError):
    """Raised when a lifecycle move is not in the transition table."""

    def __init__(self, from_status, to_status, message: Optional[str] = None) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Illegal status transition: {_value(from_status)} -> {_value(to_status)}",
            details={"from": _value(from_status), "to": _value(to_status)},
        )


class PrerequisitesNotMetError(StateTransitionError):
    """Raised when a task cannot start because prerequisites are not completed."""

    def __init__(self, task_id: str, from_status, to_status, blocking: Iterable[str]) -> None:
        self.task_id = task_id
        self.blocking = sorted(blocking)
        super().__init__(
            from_status,
            to_status,
            message=f"Task {task_id} cannot start: unfinished prerequisites {', '.join(self.blocking)}",
        )
        self.details["task_id"] = task_id
        self.details["blocking"] = self.blocking


class CyclicDependencyError(TaskOrchestrationError):
    """Raised when an edge would create a dependency cycle. The graph is unchanged."""

    def __init__(self, task_id: str, prerequisite_id: str) -> None:
        self.task_id = task_id
        self.prerequisite_id = prerequisite_id
        super().__init__(
            f"Cyclic dependency: {prerequisite_id} already depends on {task_id}",
            details={"task_id": task_id, "prerequisite_id": prerequisite_id},
        )


class ValidationError(TaskOrchestrationError):
    """Raised when task fields fail structural checks."""


class NotFoundError(TaskOrchestrationError):
    """Raised when a referenced task is absent."""

    def __init__(self, entity_type: str, identifier: str) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f"{entity_type} not found: {identifier}",
            details={"entity_type": entity_type, "identifier": identifier},
        )


class DataOperationError(TaskOrchestrationError):
    """Raised by storage adapters when a read or write fails."""


def _value(status) -> str:
    return getattr(status, "value", str(status))
