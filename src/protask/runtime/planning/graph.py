"""Dependency graph construction over ``blocks`` edges in a task scope."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..domain.models import Task, TaskDependency


@dataclass
class DependencyGraph:
    """Adjacency maps keyed by every task id in scope.

    ``incoming[t]`` lists prerequisites of ``t``; ``outgoing[t]`` lists the
    tasks that ``t`` blocks. Only ``blocks`` edges whose both ends are in
    scope are present.
    """
    task_ids: list[str] = field(default_factory=list)
    incoming: dict[str, list[str]] = field(default_factory=dict)
    outgoing: dict[str, list[str]] = field(default_factory=dict)

    def in_degree(self, task_id: str) -> int:
        return len(self.incoming.get(task_id, []))

    def roots(self) -> list[str]:
        return [task_id for task_id in self.task_ids if not self.incoming.get(task_id)]

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.outgoing.values())


def blocking_edges(dependencies: Iterable[TaskDependency]) -> list[TaskDependency]:
    return [dep for dep in dependencies if dep.dependency_type == "blocks"]


def build_dependency_graph(tasks: Sequence[Task], dependencies: Iterable[TaskDependency]) -> DependencyGraph:
    """Build incoming/outgoing maps from tasks and dependency rows."""
    graph = DependencyGraph(task_ids=[task.id for task in tasks])
    for task in tasks:
        graph.incoming.setdefault(task.id, [])
        graph.outgoing.setdefault(task.id, [])

    for dep in blocking_edges(dependencies):
        if dep.task_id not in graph.incoming or dep.depends_on_task_id not in graph.outgoing:
            continue
        graph.incoming[dep.task_id].append(dep.depends_on_task_id)
        graph.outgoing[dep.depends_on_task_id].append(dep.task_id)
    return graph


def cyclic_nodes(graph: DependencyGraph) -> list[str]:
    """Return ids left with residual in-degree after Kahn's algorithm.

    An empty list means the graph is acyclic. Non-empty results include every
    node on a cycle plus nodes only reachable through one.
    """
    indegree = {task_id: graph.in_degree(task_id) for task_id in graph.task_ids}
    ready = deque(task_id for task_id, degree in indegree.items() if degree == 0)
    while ready:
        current = ready.popleft()
        for nxt in graph.outgoing.get(current, []):
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                ready.append(nxt)
    return [task_id for task_id in graph.task_ids if indegree[task_id] > 0]


def would_create_cycle(outgoing: dict[str, list[str]], from_id: str, to_id: str) -> bool:
    """Check whether adding edge from_id->to_id introduces a cycle."""
    visited: set[str] = set()
    stack = [to_id]
    while stack:
        node = stack.pop()
        if node == from_id:
            return True
        if node in visited:
            continue
        visited.add(node)
        stack.extend(outgoing.get(node, []))
    return False
