"""Domain errors raised by workflow mutations and store access."""

from __future__ import annotations


class NotFoundError(ValueError):
    """Referenced record does not exist in the store."""


class TaskNotFoundError(NotFoundError):
    """Referenced task does not exist in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class AuthorizationError(PermissionError):
    """Actor's role or identity does not permit the requested action."""


class InvalidTransitionError(ValueError):
    """Requested action is not legal from the task's current status."""

    def __init__(self, status: str, action: str, reason: str = "") -> None:
        message = f"Cannot {action} a task in status '{status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.status = status
        self.action = action


class BlockedTaskError(ValueError):
    """Forward progress is refused while a blocking prerequisite is incomplete."""

    def __init__(self, task_id: str, blocker_ids: list[str]) -> None:
        super().__init__(f"Task {task_id} has unresolved blocker(s): {', '.join(blocker_ids)}")
        self.task_id = task_id
        self.blocker_ids = list(blocker_ids)


class DependencyError(ValueError):
    """Dependency edge is malformed, duplicated or references unknown tasks."""


class DependencyCycleError(DependencyError):
    """``blocks`` edges form (or would form) a cycle."""

    def __init__(self, message: str, nodes: list[str] | None = None) -> None:
        super().__init__(message)
        self.nodes = list(nodes or [])


class StoreWriteError(RuntimeError):
    """Store rejected or failed a write; the local view and earlier writes of the same action were rolled back."""


class StoreTimeoutError(TimeoutError):
    """Store call exceeded the configured timeout on every attempt."""
