"""Domain models for task planning and workflow state."""

from .errors import (
    AuthorizationError,
    BlockedTaskError,
    DependencyCycleError,
    DependencyError,
    InvalidTransitionError,
    NotFoundError,
    StoreTimeoutError,
    StoreWriteError,
    TaskNotFoundError,
)
from .models import Actor, RecurringTask, Task, TaskApproval, TaskDependency, TaskTemplate

__all__ = [
    "Actor",
    "Task",
    "TaskDependency",
    "TaskApproval",
    "TaskTemplate",
    "RecurringTask",
    "AuthorizationError",
    "BlockedTaskError",
    "DependencyCycleError",
    "DependencyError",
    "InvalidTransitionError",
    "NotFoundError",
    "StoreTimeoutError",
    "StoreWriteError",
    "TaskNotFoundError",
]
