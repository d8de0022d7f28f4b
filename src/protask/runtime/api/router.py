"""Runtime API router assembly."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import APIRouter

from ..context import ProjectRuntime
from .deps import RouteDeps
from .routes_approvals import register_approval_routes
from .routes_planning import register_planning_routes
from .routes_tasks import register_task_routes


def create_router(resolve_runtime: Callable[[Optional[str]], ProjectRuntime]) -> APIRouter:
    """Create the runtime API router.

    Args:
        resolve_runtime (Callable[[Optional[str]], ProjectRuntime]): Callable that
            resolves the project-scoped services for an optional ``project_dir``
            query value.

    Returns:
        APIRouter: Router exposing task workflow, dependency, planning,
        approval, template, recurring-task and activity endpoints under ``/api``.
    """
    router = APIRouter(prefix="/api", tags=["api"])
    deps = RouteDeps(ctx=resolve_runtime)
    register_task_routes(router, deps)
    register_planning_routes(router, deps)
    register_approval_routes(router, deps)
    return router
