"""Task creation and optimistic status transitions."""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from ..domain.errors import AuthorizationError, StoreWriteError, TaskNotFoundError
from ..domain.models import Actor, Task, TaskApproval, now_iso
from ..events.bus import EventBus
from ..planning.blocked import unresolved_blockers
from ..storage.container import Container
from ..storage.gateway import StoreGateway
from .approvals import ApprovalService
from .board import TaskBoard
from .transitions import EVENT_TYPES, FORWARD_ACTIONS, Transition, evaluate_transition

logger = logging.getLogger(__name__)

_CREATE_FIELDS = (
    "title",
    "description",
    "priority",
    "estimated_hours",
    "deadline",
    "workspace_id",
    "project_id",
    "skills",
    "metadata",
)


class WorkflowService:
    """Apply workflow actions to tasks through the optimistic board.

    Every mutation computes the next state, applies it to :attr:`board`,
    writes it to the store, and on a failed write rolls the board back,
    re-fetches it from the store and raises :class:`StoreWriteError`.
    """

    def __init__(
        self,
        container: Container,
        bus: EventBus,
        gateway: StoreGateway,
        *,
        approvals: Optional[ApprovalService] = None,
        board: Optional[TaskBoard] = None,
    ) -> None:
        self.container = container
        self.bus = bus
        self.gateway = gateway
        self.approvals = approvals or ApprovalService(container, bus, gateway)
        self.board = board if board is not None else TaskBoard()
        self._board_loaded = board is not None

    # -- board -----------------------------------------------------------

    def refresh(self) -> list[Task]:
        """Replace the board with the store's current tasks."""
        tasks = self.gateway.call(self.container.tasks.list)
        self.board.replace_all(tasks)
        self._board_loaded = True
        return tasks

    def board_tasks(self, workspace_id: Optional[str] = None) -> list[Task]:
        if not self._board_loaded:
            self.refresh()
        tasks = self.board.tasks()
        if workspace_id:
            tasks = [task for task in tasks if task.workspace_id == workspace_id]
        return tasks

    def _refetch_after_failure(self) -> None:
        try:
            self.refresh()
        except Exception:
            logger.exception("Failed to re-fetch task board after a rejected write")

    def _write(self, task: Task) -> Task:
        token = self.board.apply(task)
        try:
            saved = self.gateway.call(self.container.tasks.upsert, task)
        except Exception as exc:
            self.board.rollback(token)
            logger.warning("Task write for %s failed; rolled back local board: %s", task.id, exc)
            self._refetch_after_failure()
            raise StoreWriteError(f"Failed to save task {task.id}: {exc}") from exc
        self.board.apply(saved)
        return saved

    def _save_approval(self, approval: TaskApproval) -> TaskApproval:
        try:
            return self.approvals.save(approval)
        except Exception as exc:
            logger.warning("Approval write for task %s failed; task left unchanged: %s", approval.task_id, exc)
            raise StoreWriteError(f"Failed to save approval for task {approval.task_id}: {exc}") from exc

    def _restore_approval(self, previous: Optional[TaskApproval], written: TaskApproval) -> None:
        try:
            self.approvals.restore(previous, written)
        except Exception:
            logger.exception("Failed to restore approval %s after a rejected task write", written.id)

    # -- reads -----------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        task = self.gateway.call(self.container.tasks.get, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def blockers_of(self, task_id: str) -> list[str]:
        """Ids of incomplete ``blocks`` prerequisites of ``task_id``."""
        tasks, dependencies = self.gateway.gather(
            self.container.tasks.list,
            lambda: self.container.dependencies.for_tasks([task_id]),
        )
        return unresolved_blockers(task_id, tasks, dependencies)

    # -- mutations -------------------------------------------------------

    def create_task(self, actor: Actor, **fields: Any) -> Task:
        """Create an ``open`` task; managers only.

        Raises:
            AuthorizationError: If ``actor`` is not a manager.
            StoreWriteError: If the store rejected the write.
        """
        if not actor.is_manager:
            raise AuthorizationError("Only managers can create tasks")
        data = {key: fields[key] for key in _CREATE_FIELDS if fields.get(key) is not None}
        if fields.get("id"):
            data["id"] = fields["id"]
        data["status"] = "open"
        data["assigned_to"] = None
        data["created_by"] = actor.id
        task = Task.from_dict(data)
        if not task.title.strip():
            raise ValueError("Task title is required")
        task.created_at = now_iso()
        saved = self._write(task)
        self.bus.emit(
            channel="tasks",
            event_type="task.created",
            entity_id=saved.id,
            payload={"status": saved.status, "actor_id": actor.id, "workspace_id": saved.workspace_id},
        )
        return saved

    def transition(
        self,
        task_id: str,
        actor: Actor,
        action: str,
        *,
        assignee: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> Task:
        """Apply one workflow action to a task.

        Args:
            task_id: Target task.
            actor: User performing the action.
            action: ``take``, ``assign``, ``release``, ``submit``, ``approve`` or ``reject``.
            assignee: Target user for ``assign``.
            comments: Reviewer note recorded on ``reject``.

        Returns:
            Task: The task after the action.

        Raises:
            TaskNotFoundError: If the task does not exist.
            InvalidTransitionError: If the action is illegal from the current status.
            AuthorizationError: If the actor may not perform the action.
            BlockedTaskError: If a forward action meets an incomplete prerequisite.
            StoreWriteError: If the store rejected the write (board rolled back).
        """
        task = self.get_task(task_id)
        blocked_by = self.blockers_of(task_id) if action in FORWARD_ACTIONS else []
        step = evaluate_transition(task, actor, action, assignee=assignee, blocked_by=blocked_by)

        approval: Optional[TaskApproval] = None
        previous_approval: Optional[TaskApproval] = None
        if step.action in ("submit", "approve", "reject"):
            previous_approval = self.approvals.open_request_for(task.id)
        if step.action == "submit":
            approval = self.approvals.prepare_request(task, actor)
        elif step.action == "approve":
            approval = self.approvals.prepare_approval(task, actor)
        elif step.action == "reject":
            approval = self.approvals.prepare_rejection(task, actor, comments=comments)

        if approval is not None:
            self._save_approval(approval)

        if step.action == "approve" and approval is not None and approval.status != "approved":
            # Partial sign-off: the task stays in review.
            self.bus.emit(
                channel="approvals",
                event_type="approval.recorded",
                entity_id=approval.id,
                payload={
                    "task_id": task.id,
                    "actor_id": actor.id,
                    "approval_count": approval.approval_count,
                    "required_approvals": approval.required_approvals,
                },
            )
            return task

        previous_assignee = task.assigned_to
        updated = copy.deepcopy(task)
        updated.status = step.to_status
        updated.assigned_to = step.assigned_to
        try:
            saved = self._write(updated)
        except StoreWriteError:
            if approval is not None:
                self._restore_approval(previous_approval, approval)
            raise

        self._emit_transition(saved, actor, step, previous_assignee=previous_assignee, comments=comments)
        return saved

    def _emit_transition(
        self,
        task: Task,
        actor: Actor,
        step: Transition,
        *,
        previous_assignee: Optional[str],
        comments: Optional[str],
    ) -> None:
        self.bus.emit(
            channel="tasks",
            event_type=EVENT_TYPES[step.action],
            entity_id=task.id,
            payload={
                "from_status": step.from_status,
                "status": task.status,
                "assigned_to": task.assigned_to,
                "actor_id": actor.id,
            },
        )
        recipient = _notification_recipient(task, step, previous_assignee)
        if recipient and recipient != actor.id:
            message = f"Task '{task.title}' was {EVENT_TYPES[step.action].split('.', 1)[1]} by {actor.id}"
            if comments:
                message = f"{message}: {comments}"
            self.bus.emit(
                channel="notifications",
                event_type="notification.created",
                entity_id=recipient,
                payload={
                    "recipient_id": recipient,
                    "kind": f"task_{step.action}",
                    "task_id": task.id,
                    "message": message,
                },
            )

    def take(self, task_id: str, actor: Actor) -> Task:
        return self.transition(task_id, actor, "take")

    def assign(self, task_id: str, actor: Actor, assignee: str) -> Task:
        return self.transition(task_id, actor, "assign", assignee=assignee)

    def release(self, task_id: str, actor: Actor) -> Task:
        return self.transition(task_id, actor, "release")

    def submit(self, task_id: str, actor: Actor) -> Task:
        return self.transition(task_id, actor, "submit")

    def approve(self, task_id: str, actor: Actor) -> Task:
        return self.transition(task_id, actor, "approve")

    def reject(self, task_id: str, actor: Actor, comments: Optional[str] = None) -> Task:
        return self.transition(task_id, actor, "reject", comments=comments)


def _notification_recipient(task: Task, step: Transition, previous_assignee: Optional[str]) -> Optional[str]:
    if step.action in {"assign", "approve", "reject"}:
        return task.assigned_to
    if step.action == "release":
        return previous_assignee
    if step.action == "submit":
        return task.created_by
    return None
