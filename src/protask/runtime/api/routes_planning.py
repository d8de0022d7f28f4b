"""Planning snapshot and activity log routes."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Query

from .deps import RouteDeps


def register_planning_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register planning and activity routes."""

    @router.get("/planning")
    def get_planning(workspace_id: Optional[str] = Query(None), project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Compute blocked alerts, critical path and Gantt rows for a workspace.

        Store failures degrade to an empty snapshot carrying an ``error`` message
        instead of failing the request.

        Args:
            workspace_id: Optional workspace scope; omitted means every task.
            project_dir: Optional project directory used to resolve runtime state.

        Returns:
            The planning snapshot payload.
        """
        runtime = deps.ctx(project_dir)
        return {"planning": runtime.planning.snapshot(workspace_id).to_dict()}

    @router.get("/activity")
    def get_activity(
        limit: int = Query(100, ge=1, le=2000),
        channel: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.ctx(project_dir)
        events = runtime.container.events.list_recent(limit=limit)
        if channel:
            events = [event for event in events if event.get("channel") == channel]
        return {"events": events}
