from __future__ import annotations

from pathlib import Path

import pytest

from protask.runtime.context import ProjectRuntime, create_runtime
from protask.runtime.domain.errors import (
    DependencyCycleError,
    DependencyError,
    NotFoundError,
    TaskNotFoundError,
)
from protask.runtime.domain.models import Actor, TaskDependency
from protask.runtime.planning import PlanningSnapshot, PlanningView
from protask.runtime.storage.container import Container

MANAGER = Actor.of("mgr", "manager")


def _runtime(tmp_path: Path) -> ProjectRuntime:
    return create_runtime(Container(tmp_path))


def test_add_dependency_validates_edges(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A")
    b = runtime.workflow.create_task(MANAGER, title="B")

    with pytest.raises(DependencyError, match="itself"):
        runtime.dependencies.add(MANAGER, a.id, a.id)
    with pytest.raises(TaskNotFoundError):
        runtime.dependencies.add(MANAGER, a.id, "task-ghost")
    with pytest.raises(DependencyError, match="Unknown dependency type"):
        runtime.dependencies.add(MANAGER, b.id, a.id, "mentions")

    edge = runtime.dependencies.add(MANAGER, b.id, a.id)
    assert (edge.task_id, edge.depends_on_task_id, edge.dependency_type) == (b.id, a.id, "blocks")
    assert edge.created_by == "mgr"
    with pytest.raises(DependencyError, match="already exists"):
        runtime.dependencies.add(MANAGER, b.id, a.id)
    runtime.close()


def test_add_dependency_rejects_cycles_but_allows_related_back_edges(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A")
    b = runtime.workflow.create_task(MANAGER, title="B")
    c = runtime.workflow.create_task(MANAGER, title="C")
    runtime.dependencies.add(MANAGER, b.id, a.id)
    runtime.dependencies.add(MANAGER, c.id, b.id)

    with pytest.raises(DependencyCycleError) as excinfo:
        runtime.dependencies.add(MANAGER, a.id, c.id)
    assert excinfo.value.nodes == [c.id, a.id]

    related = runtime.dependencies.add(MANAGER, a.id, c.id, "related")
    assert related.dependency_type == "related"
    runtime.close()


def test_for_task_and_remove(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A")
    b = runtime.workflow.create_task(MANAGER, title="B")
    edge = runtime.dependencies.add(MANAGER, b.id, a.id)

    prerequisites, dependents = runtime.dependencies.for_task(b.id)
    assert [dep.id for dep in prerequisites] == [edge.id]
    assert dependents == []
    _, dependents_of_a = runtime.dependencies.for_task(a.id)
    assert [dep.id for dep in dependents_of_a] == [edge.id]

    removed = runtime.dependencies.remove(MANAGER, edge.id)
    assert removed.id == edge.id
    assert runtime.container.dependencies.list() == []
    with pytest.raises(NotFoundError):
        runtime.dependencies.remove(MANAGER, edge.id)

    types = [event["type"] for event in runtime.container.events.list_recent() if event["channel"] == "dependencies"]
    assert types == ["dependency.added", "dependency.removed"]
    runtime.close()


def test_snapshot_scopes_by_workspace(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A", workspace_id="ws-1", estimated_hours=2)
    b = runtime.workflow.create_task(MANAGER, title="B", workspace_id="ws-1", estimated_hours=3)
    other = runtime.workflow.create_task(MANAGER, title="Other", workspace_id="ws-2")
    runtime.dependencies.add(MANAGER, b.id, a.id)
    runtime.dependencies.add(MANAGER, other.id, a.id)

    scoped = runtime.planning.snapshot("ws-1")
    assert [task.id for task in scoped.tasks] == [a.id, b.id]
    assert [dep.task_id for dep in scoped.dependencies] == [b.id]
    assert [(alert.task.id, alert.blocker.id) for alert in scoped.blocked] == [(b.id, a.id)]
    assert scoped.critical_path.task_ids == [a.id, b.id]
    assert scoped.critical_path.total_weight == 5
    assert [row.id for row in scoped.gantt] == [a.id, b.id]

    everything = runtime.planning.snapshot()
    assert len(everything.tasks) == 3
    assert len(everything.dependencies) == 2
    assert runtime.planning.list_dependencies([]) == []

    assert runtime.planning.snapshot("ws-empty").to_dict()["critical_path"]["tasks"] == []
    runtime.close()


def test_snapshot_degrades_on_cycle(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A")
    b = runtime.workflow.create_task(MANAGER, title="B")
    # Cyclic rows written straight to the store bypass edge validation.
    runtime.container.dependencies.add(TaskDependency(task_id=b.id, depends_on_task_id=a.id))
    runtime.container.dependencies.add(TaskDependency(task_id=a.id, depends_on_task_id=b.id))

    snapshot = runtime.planning.snapshot()

    assert snapshot.critical_path.tasks == []
    assert snapshot.cycle == [a.id, b.id]
    assert len(snapshot.blocked) == 2
    assert len(snapshot.gantt) == 2
    runtime.close()


def test_snapshot_survives_huge_estimates(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    huge = runtime.workflow.create_task(MANAGER, title="Long haul", estimated_hours=1e8)
    small = runtime.workflow.create_task(MANAGER, title="Follow-up", estimated_hours=2)
    runtime.dependencies.add(MANAGER, small.id, huge.id)

    snapshot = runtime.planning.snapshot()

    assert snapshot.error is None
    assert snapshot.critical_path.task_ids == [huge.id, small.id]
    assert [row.duration_days for row in snapshot.gantt][0] == 1
    runtime.close()


def test_snapshot_degrades_on_store_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(tmp_path)
    runtime.workflow.create_task(MANAGER, title="A")

    def _offline(workspace_id: str | None = None) -> list[object]:
        raise OSError("store offline")

    monkeypatch.setattr(runtime.container.tasks, "list_in_scope", _offline)

    snapshot = runtime.planning.snapshot()

    assert snapshot.tasks == []
    assert snapshot.blocked == []
    assert snapshot.gantt == []
    assert snapshot.error == "store offline"
    runtime.close()


def test_planning_view_recomputes_on_changes_until_closed(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    a = runtime.workflow.create_task(MANAGER, title="A")
    b = runtime.workflow.create_task(MANAGER, title="B")
    updates: list[PlanningSnapshot] = []
    view = PlanningView(runtime.planning, runtime.bus, on_update=updates.append)
    assert len(view.snapshot.tasks) == 2
    assert view.snapshot.blocked == []

    runtime.dependencies.add(MANAGER, b.id, a.id)
    assert [(alert.task.id, alert.blocker.id) for alert in view.snapshot.blocked] == [(b.id, a.id)]

    runtime.workflow.take(a.id, Actor.of("alice"))
    assert view.snapshot.tasks[0].status == "in-progress"
    seen = len(updates)

    view.close()
    assert view.closed is True
    runtime.workflow.create_task(MANAGER, title="C")
    assert len(view.snapshot.tasks) == 2
    assert len(updates) == seen
    assert view.refresh() is None
    runtime.close()


def test_planning_view_ignores_unrelated_channels(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    updates: list[PlanningSnapshot] = []
    view = PlanningView(runtime.planning, runtime.bus, on_update=updates.append)
    initial = len(updates)

    runtime.bus.emit(channel="notifications", event_type="notification.created", entity_id="u1", payload={})
    assert len(updates) == initial
    runtime.bus.emit(channel="tasks", event_type="task.updated", entity_id="t1", payload={})
    assert len(updates) == initial + 1
    view.close()
    runtime.close()
