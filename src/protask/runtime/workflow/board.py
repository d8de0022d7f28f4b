"""In-memory task board backing optimistic workflow updates."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

from ..domain.models import Task


@dataclass(frozen=True)
class RollbackToken:
    """Pre-mutation snapshot of one board entry.

    ``previous`` is ``None`` when the entry did not exist before ``apply``.
    """
    task_id: str
    previous: Optional[Task]


class TaskBoard:
    """Local view of tasks that is updated before the store confirms a write.

    ``apply`` installs the new state and returns a :class:`RollbackToken`;
    ``rollback`` restores the snapshot held by that token. The board is only
    mutated by the workflow service that owns it.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self.replace_all(tasks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    def tasks(self) -> list[Task]:
        with self._lock:
            return [copy.deepcopy(task) for task in self._tasks.values()]

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def apply(self, task: Task) -> RollbackToken:
        with self._lock:
            previous = self._tasks.get(task.id)
            self._tasks[task.id] = copy.deepcopy(task)
            return RollbackToken(task_id=task.id, previous=previous)

    def rollback(self, token: RollbackToken) -> None:
        with self._lock:
            if token.previous is None:
                self._tasks.pop(token.task_id, None)
            else:
                self._tasks[token.task_id] = token.previous

    def replace_all(self, tasks: Iterable[Task]) -> None:
        fresh = {task.id: copy.deepcopy(task) for task in tasks}
        with self._lock:
            self._tasks = fresh
