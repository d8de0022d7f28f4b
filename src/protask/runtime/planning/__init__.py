"""Dependency planning: graph, blocked work, critical path and Gantt rows."""

from .blocked import BlockedAlert, detect_blocked_work, unresolved_blockers
from .critical_path import CriticalPath, compute_critical_path, task_weight
from .gantt import GanttRow, project_gantt
from .graph import DependencyGraph, build_dependency_graph, cyclic_nodes, would_create_cycle
from .service import PlanningService, PlanningSnapshot, PlanningView

__all__ = [
    "BlockedAlert",
    "CriticalPath",
    "DependencyGraph",
    "GanttRow",
    "PlanningService",
    "PlanningSnapshot",
    "PlanningView",
    "build_dependency_graph",
    "compute_critical_path",
    "cyclic_nodes",
    "detect_blocked_work",
    "project_gantt",
    "task_weight",
    "unresolved_blockers",
    "would_create_cycle",
]
