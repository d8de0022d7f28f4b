"""Multi-approver sign-off for tasks in review, with SLA escalation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..domain.errors import InvalidTransitionError
from ..domain.models import Actor, Task, TaskApproval, parse_iso_datetime
from ..events.bus import EventBus
from ..storage.bootstrap import DEFAULT_APPROVALS_CONFIG
from ..storage.container import Container
from ..storage.gateway import StoreGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalRule:
    required_approvals: int = 1
    sla_hours: float = 24.0
    escalate_to: list[str] = field(default_factory=list)


def _int_at_least_one(value: Any, default: int) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return default


def _positive_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def resolve_rule(approvals_cfg: dict[str, Any], workspace_id: Optional[str], project_id: Optional[str] = None) -> ApprovalRule:
    """Pick the approval rule for a workspace/project from config.

    A rule naming the project wins over a workspace-wide rule; without a
    matching rule the section's top-level defaults apply.
    """
    base_required = _int_at_least_one(approvals_cfg.get("required_approvals"), DEFAULT_APPROVALS_CONFIG["required_approvals"])
    base_sla = _positive_float(approvals_cfg.get("sla_hours"), float(DEFAULT_APPROVALS_CONFIG["sla_hours"]))
    base_escalate = [str(item) for item in list(approvals_cfg.get("escalate_to") or [])]

    workspace_rule: Optional[dict[str, Any]] = None
    project_rule: Optional[dict[str, Any]] = None
    for raw in list(approvals_cfg.get("rules") or []):
        if not isinstance(raw, dict) or raw.get("workspace_id") != workspace_id:
            continue
        rule_project = raw.get("project_id")
        if rule_project and rule_project == project_id and project_rule is None:
            project_rule = raw
        elif not rule_project and workspace_rule is None:
            workspace_rule = raw

    chosen = project_rule or workspace_rule
    if chosen is None:
        return ApprovalRule(required_approvals=base_required, sla_hours=base_sla, escalate_to=base_escalate)
    escalate_to = chosen.get("escalate_to")
    return ApprovalRule(
        required_approvals=_int_at_least_one(chosen.get("required_approvals"), base_required),
        sla_hours=_positive_float(chosen.get("sla_hours"), base_sla),
        escalate_to=[str(item) for item in escalate_to] if isinstance(escalate_to, list) else base_escalate,
    )


class ApprovalService:
    """Open, count and escalate approval requests for reviewed tasks.

    ``prepare_*`` methods compute the next approval record without writing
    it. The workflow service persists it before the task write and calls
    :meth:`restore` if the task write then fails.
    """

    def __init__(self, container: Container, bus: EventBus, gateway: StoreGateway) -> None:
        self.container = container
        self.bus = bus
        self.gateway = gateway

    def rule_for(self, workspace_id: Optional[str], project_id: Optional[str] = None) -> ApprovalRule:
        cfg = self.container.config.load()
        return resolve_rule(dict(cfg.get("approvals") or {}), workspace_id, project_id)

    def list(self, *, workspace_id: Optional[str] = None, status: Optional[str] = None) -> list[TaskApproval]:
        approvals = self.gateway.call(self.container.approvals.list)
        if workspace_id:
            approvals = [item for item in approvals if item.workspace_id == workspace_id]
        if status:
            approvals = [item for item in approvals if item.status == status]
        return approvals

    def open_request_for(self, task_id: str) -> Optional[TaskApproval]:
        return self.gateway.call(self.container.approvals.pending_for_task, task_id)

    def _new_request(self, task: Task, requested_by: Optional[str], now: datetime) -> TaskApproval:
        rule = self.rule_for(task.workspace_id, task.project_id)
        return TaskApproval(
            task_id=task.id,
            workspace_id=task.workspace_id,
            project_id=task.project_id,
            required_approvals=rule.required_approvals,
            requested_by=requested_by,
            requested_at=now.isoformat(),
            due_at=(now + timedelta(hours=rule.sla_hours)).isoformat(),
        )

    def prepare_request(self, task: Task, actor: Actor, *, now: Optional[datetime] = None) -> TaskApproval:
        """Reuse the task's open request or build a fresh one from the workspace rule."""
        existing = self.open_request_for(task.id)
        if existing is not None:
            return existing
        return self._new_request(task, actor.id, now or datetime.now(timezone.utc))

    def prepare_approval(self, task: Task, actor: Actor, *, now: Optional[datetime] = None) -> TaskApproval:
        """Count ``actor``'s approval; the request is approved once the requirement is met.

        Raises:
            InvalidTransitionError: If ``actor`` already approved this request.
        """
        current = now or datetime.now(timezone.utc)
        approval = self.open_request_for(task.id) or self._new_request(task, task.assigned_to, current)
        if actor.id in approval.approvers:
            raise InvalidTransitionError(task.status, "approve", f"already approved by {actor.id}")
        approval.approvers.append(actor.id)
        approval.approval_count += 1
        if approval.approval_count >= approval.required_approvals:
            approval.status = "approved"
            approval.approved_by = actor.id
            approval.approved_at = current.isoformat()
        return approval

    def prepare_rejection(
        self,
        task: Task,
        actor: Actor,
        *,
        comments: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TaskApproval:
        current = now or datetime.now(timezone.utc)
        approval = self.open_request_for(task.id) or self._new_request(task, task.assigned_to, current)
        approval.status = "rejected"
        approval.rejected_by = actor.id
        approval.rejected_at = current.isoformat()
        if comments:
            approval.comments = comments
        return approval

    def save(self, approval: TaskApproval) -> TaskApproval:
        return self.gateway.call(self.container.approvals.upsert, approval)

    def restore(self, previous: Optional[TaskApproval], written: TaskApproval) -> None:
        """Undo a saved approval: put back ``previous`` or drop a request opened by ``written``."""
        if previous is None:
            self.gateway.call(self.container.approvals.delete, written.id)
        else:
            self.save(previous)

    def run_escalations(self, workspace_id: Optional[str] = None, *, now: Optional[datetime] = None) -> list[TaskApproval]:
        """Escalate pending requests whose ``due_at`` has passed.

        Each escalated request emits an ``approvals`` event and one
        ``notifications`` event per configured recipient.

        Returns:
            list[TaskApproval]: Requests escalated by this run.
        """
        current = now or datetime.now(timezone.utc)
        escalated: list[TaskApproval] = []
        for approval in self.list(workspace_id=workspace_id, status="pending"):
            due = parse_iso_datetime(approval.due_at)
            if due is None or due >= current:
                continue
            approval.status = "escalated"
            try:
                self.save(approval)
            except Exception:
                logger.exception("Failed to escalate approval %s for task %s", approval.id, approval.task_id)
                continue
            escalated.append(approval)
            rule = self.rule_for(approval.workspace_id, approval.project_id)
            self.bus.emit(
                channel="approvals",
                event_type="approval.escalated",
                entity_id=approval.id,
                payload={"task_id": approval.task_id, "due_at": approval.due_at, "recipients": list(rule.escalate_to)},
            )
            for recipient in rule.escalate_to:
                self.bus.emit(
                    channel="notifications",
                    event_type="notification.created",
                    entity_id=recipient,
                    payload={
                        "recipient_id": recipient,
                        "kind": "approval_escalated",
                        "task_id": approval.task_id,
                        "approval_id": approval.id,
                        "message": f"Approval for task {approval.task_id} is overdue",
                    },
                )
        if escalated:
            logger.info("Escalated %s overdue approval(s)", len(escalated))
        return escalated
