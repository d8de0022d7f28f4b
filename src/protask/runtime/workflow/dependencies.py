"""Adding and removing dependency edges with cycle rejection."""

from __future__ import annotations

from typing import Optional, cast

from ..domain.errors import DependencyCycleError, DependencyError, NotFoundError, StoreWriteError, TaskNotFoundError
from ..domain.models import Actor, DependencyType, TaskDependency, _VALID_DEPENDENCY_TYPES
from ..events.bus import EventBus
from ..planning.graph import blocking_edges, would_create_cycle
from ..storage.container import Container
from ..storage.gateway import StoreGateway


class DependencyService:
    """Edit the dependency graph while keeping ``blocks`` edges acyclic."""

    def __init__(self, container: Container, bus: EventBus, gateway: StoreGateway) -> None:
        self.container = container
        self.bus = bus
        self.gateway = gateway

    def for_task(self, task_id: str) -> tuple[list[TaskDependency], list[TaskDependency]]:
        """Return ``(prerequisites, dependents)`` rows touching ``task_id``."""
        task = self.gateway.call(self.container.tasks.get, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        rows = self.gateway.call(self.container.dependencies.list)
        prerequisites = [dep for dep in rows if dep.task_id == task_id]
        dependents = [dep for dep in rows if dep.depends_on_task_id == task_id]
        return prerequisites, dependents

    def add(
        self,
        actor: Actor,
        task_id: str,
        depends_on_task_id: str,
        dependency_type: str = "blocks",
    ) -> TaskDependency:
        """Record that ``task_id`` depends on ``depends_on_task_id``.

        Raises:
            DependencyError: Self-edge, unknown type or duplicate edge.
            TaskNotFoundError: Either endpoint does not exist.
            DependencyCycleError: A ``blocks`` edge would close a cycle.
            StoreWriteError: The store rejected the write.
        """
        if dependency_type not in _VALID_DEPENDENCY_TYPES:
            raise DependencyError(f"Unknown dependency type: {dependency_type}")
        if task_id == depends_on_task_id:
            raise DependencyError("A task cannot depend on itself")

        task_ids = {task.id for task in self.gateway.call(self.container.tasks.list)}
        for ref in (task_id, depends_on_task_id):
            if ref not in task_ids:
                raise TaskNotFoundError(ref)

        rows = self.gateway.call(self.container.dependencies.list)
        for dep in rows:
            if (
                dep.task_id == task_id
                and dep.depends_on_task_id == depends_on_task_id
                and dep.dependency_type == dependency_type
            ):
                raise DependencyError(f"Dependency already exists: {dep.id}")

        if dependency_type == "blocks":
            outgoing: dict[str, list[str]] = {}
            for dep in blocking_edges(rows):
                outgoing.setdefault(dep.depends_on_task_id, []).append(dep.task_id)
            if would_create_cycle(outgoing, depends_on_task_id, task_id):
                raise DependencyCycleError(
                    f"Adding {depends_on_task_id} -> {task_id} would create a dependency cycle",
                    [depends_on_task_id, task_id],
                )

        dependency = TaskDependency(
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
            dependency_type=cast(DependencyType, dependency_type),
            created_by=actor.id,
        )
        try:
            saved = self.gateway.call(self.container.dependencies.add, dependency)
        except Exception as exc:
            raise StoreWriteError(f"Failed to save dependency: {exc}") from exc
        self.bus.emit(
            channel="dependencies",
            event_type="dependency.added",
            entity_id=saved.id,
            payload={
                "task_id": saved.task_id,
                "depends_on_task_id": saved.depends_on_task_id,
                "dependency_type": saved.dependency_type,
                "actor_id": actor.id,
            },
        )
        return saved

    def remove(self, actor: Actor, dependency_id: str) -> TaskDependency:
        existing: Optional[TaskDependency] = self.gateway.call(self.container.dependencies.get, dependency_id)
        if existing is None:
            raise NotFoundError(f"Dependency not found: {dependency_id}")
        try:
            self.gateway.call(self.container.dependencies.delete, dependency_id)
        except Exception as exc:
            raise StoreWriteError(f"Failed to delete dependency {dependency_id}: {exc}") from exc
        self.bus.emit(
            channel="dependencies",
            event_type="dependency.removed",
            entity_id=dependency_id,
            payload={
                "task_id": existing.task_id,
                "depends_on_task_id": existing.depends_on_task_id,
                "actor_id": actor.id,
            },
        )
        return existing
