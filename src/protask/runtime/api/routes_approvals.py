"""Approval, template and recurring-task routes."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from ..domain.errors import AuthorizationError
from ..domain.models import Actor
from .deps import RouteDeps, current_actor, http_errors, parse_clock
from .schemas import (
    CreateRecurringTaskRequest,
    CreateTemplateRequest,
    InstantiateTemplateRequest,
    RunScheduledRequest,
)


def register_approval_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register approval, template and recurring-task routes."""

    @router.get("/approvals")
    def list_approvals(
        workspace_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            approvals = runtime.approvals.list(workspace_id=workspace_id, status=status)
        return {"approvals": [item.to_dict() for item in approvals]}

    @router.post("/approvals/escalate")
    def escalate_approvals(
        body: Optional[RunScheduledRequest] = None,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Escalate overdue approval requests and notify the configured managers."""
        body = body or RunScheduledRequest()
        runtime = deps.ctx(project_dir)
        with http_errors():
            if not actor.is_manager:
                raise AuthorizationError("Only managers can run approval escalations")
            escalated = runtime.approvals.run_escalations(body.workspace_id, now=parse_clock(body.now))
        return {"escalated": [item.to_dict() for item in escalated]}

    @router.get("/templates")
    def list_templates(workspace_id: Optional[str] = Query(None), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            templates = runtime.templates.list(workspace_id)
        return {"templates": [item.to_dict() for item in templates]}

    @router.post("/templates")
    def create_template(
        body: CreateTemplateRequest,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            template = runtime.templates.create(actor, **body.model_dump())
        return {"template": template.to_dict()}

    @router.post("/templates/{template_id}/instantiate")
    def instantiate_template(
        template_id: str,
        body: Optional[InstantiateTemplateRequest] = None,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        overrides = body.model_dump(exclude_none=True) if body else {}
        with http_errors():
            task = runtime.templates.instantiate(actor, template_id, overrides)
        return {"task": task.to_dict()}

    @router.delete("/templates/{template_id}")
    def delete_template(
        template_id: str,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            runtime.templates.delete(actor, template_id)
        return {"deleted": True}

    @router.get("/recurring")
    def list_recurring(workspace_id: Optional[str] = Query(None), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            schedules = runtime.recurring.list(workspace_id)
        return {"recurring_tasks": [item.to_dict() for item in schedules]}

    @router.post("/recurring")
    def create_recurring(
        body: CreateRecurringTaskRequest,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            schedule = runtime.recurring.create(actor, **body.model_dump())
        return {"recurring_task": schedule.to_dict()}

    @router.post("/recurring/run")
    def run_recurring(
        body: Optional[RunScheduledRequest] = None,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Materialize due recurring schedules into open tasks."""
        body = body or RunScheduledRequest()
        runtime = deps.ctx(project_dir)
        with http_errors():
            created = runtime.recurring.run_due(body.workspace_id, now=parse_clock(body.now))
        return {"created": [task.to_dict() for task in created]}
