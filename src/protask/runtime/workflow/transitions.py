"""Task status transition table and the pure transition evaluator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional, cast

from ..domain.errors import AuthorizationError, BlockedTaskError, InvalidTransitionError
from ..domain.models import Actor, Task, TaskStatus

WorkflowAction = Literal["take", "assign", "release", "submit", "approve", "reject"]

# (from_status, action) -> to_status
TRANSITIONS: dict[tuple[str, str], TaskStatus] = {
    ("open", "take"): "in-progress",
    ("open", "assign"): "in-progress",
    ("in-progress", "release"): "open",
    ("in-progress", "submit"): "review",
    ("review", "approve"): "completed",
    ("review", "reject"): "in-progress",
}

WORKFLOW_ACTIONS: tuple[str, ...] = ("take", "assign", "release", "submit", "approve", "reject")
FORWARD_ACTIONS = frozenset({"take", "assign", "submit", "approve"})
MANAGER_ACTIONS = frozenset({"assign", "approve", "reject"})

EVENT_TYPES: dict[str, str] = {
    "take": "task.taken",
    "assign": "task.assigned",
    "release": "task.released",
    "submit": "task.submitted",
    "approve": "task.approved",
    "reject": "task.rejected",
}


@dataclass(frozen=True)
class Transition:
    """Outcome of a legal action: the task's next status and assignee."""
    action: WorkflowAction
    from_status: TaskStatus
    to_status: TaskStatus
    assigned_to: Optional[str]


def allowed_actions(status: str) -> list[str]:
    return [action for action in WORKFLOW_ACTIONS if (status, action) in TRANSITIONS]


def evaluate_transition(
    task: Task,
    actor: Actor,
    action: str,
    *,
    assignee: Optional[str] = None,
    blocked_by: Iterable[str] = (),
) -> Transition:
    """Decide whether ``actor`` may apply ``action`` to ``task``.

    The task is not modified. Status is checked first, then the actor's
    role and identity, then blocking prerequisites for forward actions.

    Args:
        task: Current task state.
        actor: User requesting the action.
        action: One of :data:`WORKFLOW_ACTIONS`.
        assignee: Target user for ``assign``.
        blocked_by: Ids of incomplete ``blocks`` prerequisites of the task.

    Returns:
        Transition: Next status and assignee.

    Raises:
        InvalidTransitionError: Unknown action or illegal from the current status.
        AuthorizationError: Actor's role or identity does not permit the action.
        BlockedTaskError: Forward action while a prerequisite is incomplete.
    """
    if action not in WORKFLOW_ACTIONS:
        raise InvalidTransitionError(task.status, action, "unknown action")
    target = TRANSITIONS.get((task.status, action))
    if target is None:
        raise InvalidTransitionError(task.status, action)

    if action in MANAGER_ACTIONS and not actor.is_manager:
        raise AuthorizationError(f"Only managers can {action} tasks")

    next_assignee = task.assigned_to
    if action == "take":
        if task.assigned_to:
            raise InvalidTransitionError(task.status, action, f"already assigned to {task.assigned_to}")
        next_assignee = actor.id
    elif action == "assign":
        if not assignee:
            raise InvalidTransitionError(task.status, action, "assignee is required")
        next_assignee = assignee
    elif action == "release":
        if actor.id != task.assigned_to and not actor.is_manager:
            raise AuthorizationError("Only the assignee or a manager can release a task")
        next_assignee = None
    elif action == "submit":
        if actor.id != task.assigned_to:
            raise AuthorizationError("Only the assignee can submit a task for review")

    if action in FORWARD_ACTIONS:
        blockers = list(blocked_by)
        if blockers:
            raise BlockedTaskError(task.id, blockers)

    return Transition(
        action=cast(WorkflowAction, action),
        from_status=task.status,
        to_status=target,
        assigned_to=next_assignee,
    )
