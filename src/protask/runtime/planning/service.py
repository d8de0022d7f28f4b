"""Planning snapshot composition and live recomputation."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..domain.errors import DependencyCycleError
from ..domain.models import Task, TaskDependency
from ..events.bus import EventBus
from ..storage.container import Container
from ..storage.gateway import StoreGateway
from ..storage.bootstrap import DEFAULT_PLANNING_CONFIG
from .blocked import BlockedAlert, detect_blocked_work
from .critical_path import CriticalPath, compute_critical_path
from .gantt import GanttRow, project_gantt
from .graph import build_dependency_graph

logger = logging.getLogger(__name__)

PLANNING_CHANNELS = frozenset({"tasks", "dependencies"})


@dataclass
class PlanningSnapshot:
    """Everything the planning view renders for one workspace."""
    workspace_id: Optional[str] = None
    tasks: list[Task] = field(default_factory=list)
    dependencies: list[TaskDependency] = field(default_factory=list)
    blocked: list[BlockedAlert] = field(default_factory=list)
    critical_path: CriticalPath = field(default_factory=CriticalPath)
    gantt: list[GanttRow] = field(default_factory=list)
    cycle: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "task_count": len(self.tasks),
            "dependency_count": len(self.dependencies),
            "blocked": [alert.to_dict() for alert in self.blocked],
            "critical_path": self.critical_path.to_dict(),
            "gantt": [row.to_dict() for row in self.gantt],
            "cycle": list(self.cycle),
            "error": self.error,
        }


class PlanningService:
    """Fetch scoped tasks and dependencies, then derive planning results.

    Derivations never raise: a failed fetch degrades to an empty snapshot and
    a dependency cycle degrades the critical path to empty.
    """

    def __init__(self, container: Container, gateway: StoreGateway) -> None:
        self.container = container
        self.gateway = gateway

    def list_tasks_in_scope(self, workspace_id: Optional[str] = None) -> list[Task]:
        return self.gateway.call(self.container.tasks.list_in_scope, workspace_id)

    def list_dependencies(self, task_ids: Optional[list[str]] = None) -> list[TaskDependency]:
        """Dependency rows whose dependent task is in ``task_ids``.

        ``None`` means unscoped (every row). An empty id list short-circuits
        to no rows without a store round-trip.
        """
        if task_ids is None:
            return self.gateway.call(self.container.dependencies.list)
        if not task_ids:
            return []
        return self.gateway.call(self.container.dependencies.for_tasks, task_ids)

    def _unestimated_hours(self) -> float:
        cfg = dict(self.container.config.load().get("planning") or {})
        try:
            return float(cfg.get("unestimated_hours", DEFAULT_PLANNING_CONFIG["unestimated_hours"]))
        except (TypeError, ValueError):
            return float(DEFAULT_PLANNING_CONFIG["unestimated_hours"])

    def snapshot(self, workspace_id: Optional[str] = None, *, now: Optional[datetime] = None) -> PlanningSnapshot:
        """Compute blocked alerts, critical path and Gantt rows for a scope."""
        try:
            tasks = self.list_tasks_in_scope(workspace_id)
            dependencies = self.list_dependencies([task.id for task in tasks] if workspace_id else None)
        except Exception as exc:
            logger.exception("Failed to load planning data for workspace %s", workspace_id or "<all>")
            return PlanningSnapshot(workspace_id=workspace_id, error=str(exc))
        return self.derive(tasks, dependencies, workspace_id=workspace_id, now=now)

    def derive(
        self,
        tasks: list[Task],
        dependencies: list[TaskDependency],
        *,
        workspace_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PlanningSnapshot:
        graph = build_dependency_graph(tasks, dependencies)
        cycle: list[str] = []
        try:
            path = compute_critical_path(tasks, graph=graph)
        except DependencyCycleError as exc:
            logger.warning("Critical path skipped for workspace %s: %s", workspace_id or "<all>", exc)
            path = CriticalPath()
            cycle = exc.nodes
        return PlanningSnapshot(
            workspace_id=workspace_id,
            tasks=tasks,
            dependencies=dependencies,
            blocked=detect_blocked_work(tasks, dependencies),
            critical_path=path,
            gantt=project_gantt(tasks, now=now, unestimated_hours=self._unestimated_hours()),
            cycle=cycle,
        )


class PlanningView:
    """Live planning snapshot that recomputes on every task/dependency event.

    Each change triggers a full recomputation. After :meth:`close` the
    listener is detached and results still in flight are discarded.
    """

    def __init__(
        self,
        service: PlanningService,
        bus: EventBus,
        workspace_id: Optional[str] = None,
        *,
        on_update: Optional[Callable[[PlanningSnapshot], None]] = None,
    ) -> None:
        self.service = service
        self.workspace_id = workspace_id
        self._on_update = on_update
        self._lock = threading.Lock()
        self._closed = False
        self._generation = 0
        self._snapshot = PlanningSnapshot(workspace_id=workspace_id)
        self._unsubscribe = bus.subscribe(self._handle_event, channels=set(PLANNING_CHANNELS))
        self.refresh()

    @property
    def snapshot(self) -> PlanningSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def _handle_event(self, event: dict[str, Any]) -> None:
        self.refresh()

    def refresh(self) -> Optional[PlanningSnapshot]:
        """Recompute the snapshot; returns ``None`` when the result was discarded."""
        with self._lock:
            if self._closed:
                return None
            self._generation += 1
            generation = self._generation
        result = self.service.snapshot(self.workspace_id)
        with self._lock:
            # Stale or post-close results are dropped.
            if self._closed or generation != self._generation:
                return None
            self._snapshot = result
        if self._on_update is not None:
            self._on_update(result)
        return result

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._unsubscribe()
