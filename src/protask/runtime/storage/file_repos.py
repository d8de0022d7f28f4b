"""File-backed repository implementations for the task store."""

from __future__ import annotations

import json
import os
import threading
import uuid
from collections import deque
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

import yaml

from ...io_utils import FileLock, atomic_write_text
from ..domain.models import RecurringTask, Task, TaskApproval, TaskDependency, TaskTemplate, now_iso
from .interfaces import (
    ApprovalRepository,
    DependencyRepository,
    EventRepository,
    RecurringTaskRepository,
    TaskRepository,
    TemplateRepository,
)


T = TypeVar("T")

OPEN_APPROVAL_STATUSES = frozenset({"pending", "escalated"})


class _YamlCollectionRepo(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        """Initialize the YamlCollectionRepo.

        Args:
            path (Path): YAML file path containing this repository collection.
            lock_path (Path): Lock file path used for cross-process synchronization.
            key (str): Top-level YAML key that stores serialized collection items.
            loader (Callable[[dict[str, Any]], T]): Callable converting raw dictionaries
                into domain models.
            dumper (Callable[[T], dict[str, Any]]): Callable converting domain models
                into dictionaries for persistence.
        """
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        if not self._path.exists():
            return []
        raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            return []
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        payload = {"version": 1, self._key: [self._dumper(item) for item in items]}
        atomic_write_text(self._path, yaml.safe_dump(payload, sort_keys=False))

    def list(self) -> list[T]:
        with self._thread_lock:
            with self._lock:
                return self._load()

    def replace_by_id(self, item: T, item_id: str, id_of: Callable[[T], str]) -> T:
        with self._thread_lock:
            with self._lock:
                items = self._load()
                for idx, existing in enumerate(items):
                    if id_of(existing) == item_id:
                        items[idx] = item
                        self._save(items)
                        return item
                items.append(item)
                self._save(items)
        return item

    def remove_by_id(self, item_id: str, id_of: Callable[[T], str]) -> bool:
        with self._thread_lock:
            with self._lock:
                items = self._load()
                keep = [item for item in items if id_of(item) != item_id]
                if len(keep) == len(items):
                    return False
                self._save(keep)
        return True


class FileTaskRepository(TaskRepository):
    """YAML-backed task repository with coarse file/process locking."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        """Initialize the FileTaskRepository.

        Args:
            path (Path): YAML file path for task records.
            lock_path (Path): Lock file path used while mutating task data.
        """
        self._repo = _YamlCollectionRepo[Task](
            path,
            lock_path,
            "tasks",
            loader=Task.from_dict,
            dumper=lambda t: t.to_dict(),
        )

    def list(self) -> list[Task]:
        """Load all persisted tasks.

        Returns:
            list[Task]: All persisted task records.
        """
        return self._repo.list()

    def list_in_scope(self, workspace_id: Optional[str] = None) -> list[Task]:
        """Load tasks filtered by workspace.

        Args:
            workspace_id (Optional[str]): Workspace filter; ``None`` returns every task.

        Returns:
            list[Task]: Tasks in scope.
        """
        tasks = self.list()
        if not workspace_id:
            return tasks
        return [task for task in tasks if task.workspace_id == workspace_id]

    def get(self, task_id: str) -> Optional[Task]:
        """Fetch a single task by identifier.

        Args:
            task_id (str): Identifier for the target task.

        Returns:
            Optional[Task]: Requested value when available; otherwise `None`.
        """
        for task in self.list():
            if task.id == task_id:
                return task
        return None

    def upsert(self, task: Task) -> Task:
        """Insert or update a task and refresh timestamps.

        Args:
            task (Task): Task model to insert or replace by id.

        Returns:
            Task: Persisted task record after timestamps are refreshed.
        """
        with self._repo._thread_lock:
            with self._repo._lock:
                tasks = self._repo._load()
                task.updated_at = now_iso()
                for idx, existing in enumerate(tasks):
                    if existing.id == task.id:
                        tasks[idx] = task
                        break
                else:
                    task.created_at = task.created_at or now_iso()
                    tasks.append(task)
                self._repo._save(tasks)
        return task

    def insert_if_absent(self, task: Task) -> bool:
        """Insert a task unless its id is already present.

        Args:
            task (Task): Task model to insert.

        Returns:
            bool: `True` when inserted, `False` for a duplicate id.
        """
        with self._repo._thread_lock:
            with self._repo._lock:
                tasks = self._repo._load()
                if any(existing.id == task.id for existing in tasks):
                    return False
                tasks.append(task)
                self._repo._save(tasks)
        return True


class FileDependencyRepository(DependencyRepository):
    """YAML-backed repository for dependency edges."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[TaskDependency](
            path,
            lock_path,
            "dependencies",
            loader=TaskDependency.from_dict,
            dumper=lambda d: d.to_dict(),
        )

    def list(self) -> list[TaskDependency]:
        return self._repo.list()

    def for_tasks(self, task_ids: Iterable[str]) -> list[TaskDependency]:
        wanted = set(task_ids)
        if not wanted:
            return []
        return [dep for dep in self.list() if dep.task_id in wanted]

    def get(self, dependency_id: str) -> Optional[TaskDependency]:
        for dep in self.list():
            if dep.id == dependency_id:
                return dep
        return None

    def add(self, dependency: TaskDependency) -> TaskDependency:
        return self._repo.replace_by_id(dependency, dependency.id, lambda d: d.id)

    def delete(self, dependency_id: str) -> bool:
        return self._repo.remove_by_id(dependency_id, lambda d: d.id)


class FileApprovalRepository(ApprovalRepository):
    """YAML-backed repository for approval requests."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[TaskApproval](
            path,
            lock_path,
            "approvals",
            loader=TaskApproval.from_dict,
            dumper=lambda a: a.to_dict(),
        )

    def list(self) -> list[TaskApproval]:
        """Load approvals newest-first.

        Returns:
            list[TaskApproval]: Persisted approvals sorted by creation time, newest first.
        """
        return sorted(self._repo.list(), key=lambda item: item.created_at, reverse=True)

    def pending_for_task(self, task_id: str) -> Optional[TaskApproval]:
        for approval in self.list():
            if approval.task_id == task_id and approval.status in OPEN_APPROVAL_STATUSES:
                return approval
        return None

    def upsert(self, approval: TaskApproval) -> TaskApproval:
        approval.updated_at = now_iso()
        return self._repo.replace_by_id(approval, approval.id, lambda a: a.id)

    def delete(self, approval_id: str) -> bool:
        return self._repo.remove_by_id(approval_id, lambda a: a.id)


class FileTemplateRepository(TemplateRepository):
    """YAML-backed repository for task templates."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[TaskTemplate](
            path,
            lock_path,
            "templates",
            loader=TaskTemplate.from_dict,
            dumper=lambda t: t.to_dict(),
        )

    def list(self) -> list[TaskTemplate]:
        return sorted(self._repo.list(), key=lambda item: item.created_at, reverse=True)

    def get(self, template_id: str) -> Optional[TaskTemplate]:
        for template in self._repo.list():
            if template.id == template_id:
                return template
        return None

    def upsert(self, template: TaskTemplate) -> TaskTemplate:
        return self._repo.replace_by_id(template, template.id, lambda t: t.id)

    def delete(self, template_id: str) -> bool:
        return self._repo.remove_by_id(template_id, lambda t: t.id)


class FileRecurringTaskRepository(RecurringTaskRepository):
    """YAML-backed repository for recurring task schedules."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[RecurringTask](
            path,
            lock_path,
            "recurring_tasks",
            loader=RecurringTask.from_dict,
            dumper=lambda r: r.to_dict(),
        )

    def list(self) -> list[RecurringTask]:
        """Load schedules ordered by next run time.

        Returns:
            list[RecurringTask]: Persisted schedules, soonest first.
        """
        return sorted(self._repo.list(), key=lambda item: item.next_run_at)

    def upsert(self, recurring: RecurringTask) -> RecurringTask:
        return self._repo.replace_by_id(recurring, recurring.id, lambda r: r.id)


class FileEventRepository(EventRepository):
    """JSONL-backed event stream repository."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        """Initialize the FileEventRepository.

        Args:
            path (Path): JSONL file path where event envelopes are appended.
            lock_path (Path): Lock file path used while writing or reading events.
        """
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()

    def append(self, *, channel: str, event_type: str, entity_id: str, payload: dict[str, Any], project_id: str) -> dict[str, Any]:
        """Append one event envelope to the JSONL stream.

        Args:
            channel (str): Channel namespace for the event stream.
            event_type (str): Specific event type emitted in the channel.
            entity_id (str): Identifier for the related entity.
            payload (dict[str, Any]): JSON-serializable event payload body.
            project_id (str): Identifier for the related project.

        Returns:
            dict[str, Any]: Persisted event envelope including generated id and timestamp.
        """
        event = {
            "id": f"evt-{uuid.uuid4().hex[:10]}",
            "ts": now_iso(),
            "channel": channel,
            "type": event_type,
            "entity_id": entity_id,
            "payload": payload,
            "project_id": project_id,
        }
        with self._thread_lock:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(event) + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
        return event

    def list_recent(self, limit: int = 100) -> List[dict[str, Any]]:
        """Read the newest events up to ``limit``.

        Args:
            limit (int): Maximum number of newest events to return.

        Returns:
            List[dict[str, Any]]: Parsed event envelopes from the tail of the stream.
        """
        if limit <= 0 or not self._path.exists():
            return []
        with self._thread_lock:
            with self._lock:
                with self._path.open("r", encoding="utf-8") as handle:
                    selected = list(deque(handle, maxlen=limit))
        events: list[dict[str, Any]] = []
        for line in selected:
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                events.append(parsed)
        return events


class FileConfigRepository:
    """YAML-backed repository for runtime configuration."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        """Initialize the FileConfigRepository.

        Args:
            path (Path): YAML file path for runtime configuration.
            lock_path (Path): Lock file path used while reading or writing config.
        """
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()

    def load(self) -> dict[str, Any]:
        """Load configuration from disk.

        Returns:
            dict[str, Any]: Configuration mapping from disk, or an empty mapping.
        """
        with self._thread_lock:
            with self._lock:
                if not self._path.exists():
                    return {}
                raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
                return raw if isinstance(raw, dict) else {}

    def save(self, config: dict[str, Any]) -> dict[str, Any]:
        """Persist configuration to disk atomically.

        Args:
            config (dict[str, Any]): Configuration mapping to persist.

        Returns:
            dict[str, Any]: Saved configuration mapping.
        """
        with self._thread_lock:
            with self._lock:
                atomic_write_text(self._path, yaml.safe_dump(config, sort_keys=False))
        return config
