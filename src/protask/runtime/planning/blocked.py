"""Detection of tasks held up by an incomplete blocking prerequisite."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ..domain.models import Task, TaskDependency


@dataclass(frozen=True)
class BlockedAlert:
    dependency_id: str
    task: Task
    blocker: Task

    def to_dict(self) -> dict[str, Any]:
        return {
            "dependency_id": self.dependency_id,
            "task": self.task.to_dict(),
            "blocker": self.blocker.to_dict(),
        }


def detect_blocked_work(tasks: Sequence[Task], dependencies: Iterable[TaskDependency]) -> list[BlockedAlert]:
    """One alert per ``blocks`` row whose blocker is in scope and not completed.

    Rows pointing at tasks outside ``tasks`` are dropped.
    """
    task_map = {task.id: task for task in tasks}
    alerts: list[BlockedAlert] = []
    for dep in dependencies:
        if dep.dependency_type != "blocks":
            continue
        blocker = task_map.get(dep.depends_on_task_id)
        if blocker is None or blocker.status == "completed":
            continue
        task = task_map.get(dep.task_id)
        if task is None:
            continue
        alerts.append(BlockedAlert(dependency_id=dep.id, task=task, blocker=blocker))
    return alerts


def unresolved_blockers(task_id: str, tasks: Sequence[Task], dependencies: Iterable[TaskDependency]) -> list[str]:
    """Ids of incomplete prerequisites currently blocking ``task_id``."""
    return [
        alert.blocker.id
        for alert in detect_blocked_work(tasks, dependencies)
        if alert.task.id == task_id
    ]
