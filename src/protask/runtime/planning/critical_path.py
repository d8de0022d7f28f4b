"""Longest weighted path through the ``blocks`` dependency DAG.

Weights are estimated effort hours (minimum 1). Roots start at their own
weight; distances propagate along outgoing edges from a FIFO worklist and
the task with the greatest cumulative distance ends the path. Cyclic input
is refused up front so the relaxation always terminates.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from ..domain.errors import DependencyCycleError
from ..domain.models import Task, TaskDependency
from .graph import DependencyGraph, build_dependency_graph, cyclic_nodes


def task_weight(task: Optional[Task]) -> float:
    """Effort weight of a task: ``max(1, estimated_hours or 1)``."""
    hours = task.estimated_hours if task is not None else None
    return max(1.0, float(hours or 1))


@dataclass
class CriticalPath:
    tasks: list[Task] = field(default_factory=list)
    total_weight: float = 0.0

    @property
    def has_path(self) -> bool:
        """Whether enough dependencies exist for a meaningful path (two or more tasks)."""
        return len(self.tasks) > 1

    @property
    def task_ids(self) -> list[str]:
        return [task.id for task in self.tasks]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "task_ids": self.task_ids,
            "total_weight": self.total_weight,
            "has_path": self.has_path,
        }


def compute_critical_path(
    tasks: Sequence[Task],
    dependencies: Iterable[TaskDependency] = (),
    *,
    graph: Optional[DependencyGraph] = None,
) -> CriticalPath:
    """Compute the critical path over ``tasks``.

    Args:
        tasks: Tasks in scope, in iteration order (used for tie-breaks).
        dependencies: Dependency rows; ignored when ``graph`` is given.
        graph: Prebuilt graph for ``tasks``.

    Returns:
        CriticalPath: Tasks prerequisite-first and the terminal distance.

    Raises:
        DependencyCycleError: If the ``blocks`` edges in scope contain a cycle.
    """
    if not tasks:
        return CriticalPath()
    if graph is None:
        graph = build_dependency_graph(tasks, dependencies)

    stuck = cyclic_nodes(graph)
    if stuck:
        raise DependencyCycleError(f"Dependency cycle among tasks: {', '.join(stuck)}", stuck)

    task_map = {task.id: task for task in tasks}
    distance: dict[str, float] = {task.id: -math.inf for task in tasks}
    parent: dict[str, Optional[str]] = {task.id: None for task in tasks}

    roots = graph.roots()
    for root in roots:
        distance[root] = task_weight(task_map.get(root))

    # Acyclic relaxation settles well within this bound.
    budget = len(tasks) * (graph.edge_count + 1) + len(tasks)
    queue = deque(roots)
    while queue:
        budget -= 1
        if budget < 0:
            raise DependencyCycleError("Critical path relaxation did not converge", list(queue))
        current = queue.popleft()
        current_distance = distance[current]
        for nxt in graph.outgoing.get(current, []):
            candidate = current_distance + task_weight(task_map.get(nxt))
            if candidate > distance[nxt]:
                distance[nxt] = candidate
                parent[nxt] = current
                queue.append(nxt)

    end_node: Optional[str] = None
    best = -math.inf
    for task in tasks:
        if distance[task.id] > best:
            best = distance[task.id]
            end_node = task.id

    path: list[Task] = []
    cursor = end_node
    while cursor is not None:
        path.append(task_map[cursor])
        cursor = parent[cursor]
    path.reverse()
    return CriticalPath(tasks=path, total_weight=best if path else 0.0)
