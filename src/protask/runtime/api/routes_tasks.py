"""Task, board, workflow-transition and dependency routes."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from ..domain.models import Actor, Task
from ..planning.blocked import detect_blocked_work
from ..workflow.transitions import allowed_actions
from .deps import RouteDeps, current_actor, http_errors
from .schemas import AddDependencyRequest, AssignTaskRequest, CreateTaskRequest, RejectTaskRequest


def _task_payload(task: Task, blocked_by: Optional[list[str]] = None) -> dict[str, Any]:
    payload = task.to_dict()
    payload["allowed_actions"] = allowed_actions(task.status)
    if blocked_by is not None:
        payload["blocked_by"] = list(blocked_by)
    return payload


def register_task_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register task CRUD, board, transition and dependency routes."""

    @router.get("/tasks")
    def list_tasks(
        workspace_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """List tasks from the store, optionally filtered by workspace and status."""
        runtime = deps.ctx(project_dir)
        with http_errors():
            tasks = runtime.planning.list_tasks_in_scope(workspace_id)
        if status:
            tasks = [task for task in tasks if task.status == status]
        return {"tasks": [_task_payload(task) for task in tasks], "total": len(tasks)}

    @router.post("/tasks")
    def create_task(
        body: CreateTaskRequest,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Create an open task. Managers only."""
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.create_task(actor, **body.model_dump())
        return {"task": _task_payload(task)}

    @router.get("/tasks/board")
    def get_board(
        workspace_id: Optional[str] = Query(None),
        refresh: bool = Query(False),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Return the optimistic task board grouped by status.

        Args:
            workspace_id: Optional workspace filter.
            refresh: Re-fetch the board from the store before reading it.
            project_dir: Optional project directory used to resolve runtime state.
        """
        runtime = deps.ctx(project_dir)
        with http_errors():
            if refresh:
                runtime.workflow.refresh()
            tasks = runtime.workflow.board_tasks(workspace_id)
            dependencies = runtime.planning.list_dependencies([task.id for task in tasks])
        blocked: dict[str, list[str]] = {}
        for alert in detect_blocked_work(tasks, dependencies):
            blocked.setdefault(alert.task.id, []).append(alert.blocker.id)
        columns: dict[str, list[dict[str, Any]]] = {"open": [], "in-progress": [], "review": [], "completed": []}
        for task in tasks:
            columns[task.status].append(_task_payload(task, blocked.get(task.id, [])))
        return {"columns": columns, "total": len(tasks)}

    @router.get("/tasks/{task_id}")
    def get_task(task_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.get_task(task_id)
            blocked_by = runtime.workflow.blockers_of(task_id)
        return {"task": _task_payload(task, blocked_by)}

    @router.post("/tasks/{task_id}/take")
    def take_task(task_id: str, actor: Actor = Depends(current_actor), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.take(task_id, actor)
        return {"task": _task_payload(task)}

    @router.post("/tasks/{task_id}/assign")
    def assign_task(
        task_id: str,
        body: AssignTaskRequest,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.assign(task_id, actor, body.assignee)
        return {"task": _task_payload(task)}

    @router.post("/tasks/{task_id}/release")
    def release_task(task_id: str, actor: Actor = Depends(current_actor), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.release(task_id, actor)
        return {"task": _task_payload(task)}

    @router.post("/tasks/{task_id}/submit")
    def submit_task(task_id: str, actor: Actor = Depends(current_actor), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.submit(task_id, actor)
            approval = runtime.approvals.open_request_for(task_id)
        return {"task": _task_payload(task), "approval": approval.to_dict() if approval else None}

    @router.post("/tasks/{task_id}/approve")
    def approve_task(task_id: str, actor: Actor = Depends(current_actor), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Record a manager approval; the task completes once enough approvals are in."""
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.approve(task_id, actor)
        return {"task": _task_payload(task)}

    @router.post("/tasks/{task_id}/reject")
    def reject_task(
        task_id: str,
        body: Optional[RejectTaskRequest] = None,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            task = runtime.workflow.reject(task_id, actor, comments=body.comments if body else None)
        return {"task": _task_payload(task)}

    @router.get("/tasks/{task_id}/dependencies")
    def list_task_dependencies(task_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """List rows where the task is the dependent (prerequisites) or the prerequisite (dependents)."""
        runtime = deps.ctx(project_dir)
        with http_errors():
            prerequisites, dependents = runtime.dependencies.for_task(task_id)
        return {
            "prerequisites": [dep.to_dict() for dep in prerequisites],
            "dependents": [dep.to_dict() for dep in dependents],
        }

    @router.post("/tasks/{task_id}/dependencies")
    def add_task_dependency(
        task_id: str,
        body: AddDependencyRequest,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            dependency = runtime.dependencies.add(actor, task_id, body.depends_on_task_id, body.dependency_type)
        return {"dependency": dependency.to_dict()}

    @router.delete("/dependencies/{dependency_id}")
    def remove_dependency(
        dependency_id: str,
        actor: Actor = Depends(current_actor),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        with http_errors():
            dependency = runtime.dependencies.remove(actor, dependency_id)
        return {"deleted": True, "dependency": dependency.to_dict()}
