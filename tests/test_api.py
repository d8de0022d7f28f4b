from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from protask.runtime.context import ProjectRuntime
from protask.server.api import create_app

MANAGER = {"X-Actor-Id": "mgr", "X-Actor-Role": "manager"}
ALICE = {"X-Actor-Id": "alice", "X-Actor-Role": "member"}
BOB = {"X-Actor-Id": "bob"}


def _client(tmp_path: Path) -> TestClient:
    return TestClient(create_app(project_dir=tmp_path))


def _create(client: TestClient, title: str, **extra: Any) -> str:
    resp = client.post("/api/tasks", json={"title": title, **extra}, headers=MANAGER)
    assert resp.status_code == 200, resp.text
    return str(resp.json()["task"]["id"])


def _runtime(client: TestClient, tmp_path: Path) -> ProjectRuntime:
    return client.app.state.runtimes[str(tmp_path.resolve())]  # type: ignore[attr-defined]


def test_health_and_root(tmp_path: Path) -> None:
    client = _client(tmp_path)
    assert client.get("/healthz").json()["status"] == "ok"
    ready = client.get("/readyz").json()
    assert ready["status"] == "ready"
    assert ready["project_id"] == tmp_path.name
    root = client.get("/").json()
    assert root["name"] == "ProTask"
    assert root["schema_version"] == 1


def test_create_task_requires_manager_actor(tmp_path: Path) -> None:
    client = _client(tmp_path)
    assert client.post("/api/tasks", json={"title": "X"}).status_code == 401
    assert client.post("/api/tasks", json={"title": "X"}, headers=ALICE).status_code == 403
    assert client.post("/api/tasks", json={"title": "X", "priority": "urgent"}, headers=MANAGER).status_code == 422

    task_id = _create(client, "Write release notes", estimated_hours=3, workspace_id="ws-1")

    listed = client.get("/api/tasks", params={"workspace_id": "ws-1"}).json()
    assert [task["id"] for task in listed["tasks"]] == [task_id]
    assert listed["tasks"][0]["allowed_actions"] == ["take", "assign"]
    assert client.get("/api/tasks", params={"workspace_id": "ws-2"}).json()["total"] == 0
    assert client.get(f"/api/tasks/{task_id}").json()["task"]["blocked_by"] == []
    assert client.get("/api/tasks/task-missing").status_code == 404


def test_workflow_endpoints(tmp_path: Path) -> None:
    client = _client(tmp_path)
    task_id = _create(client, "Fix login")

    taken = client.post(f"/api/tasks/{task_id}/take", headers=ALICE)
    assert taken.status_code == 200
    assert taken.json()["task"]["assigned_to"] == "alice"
    assert client.post(f"/api/tasks/{task_id}/take", headers=BOB).status_code == 400
    assert client.post(f"/api/tasks/{task_id}/submit", headers=BOB).status_code == 403

    submitted = client.post(f"/api/tasks/{task_id}/submit", headers=ALICE)
    assert submitted.json()["task"]["status"] == "review"
    assert submitted.json()["approval"]["status"] == "pending"

    rejected = client.post(f"/api/tasks/{task_id}/reject", json={"comments": "Add a test"}, headers=MANAGER)
    assert rejected.json()["task"]["status"] == "in-progress"
    client.post(f"/api/tasks/{task_id}/submit", headers=ALICE)

    assert client.post(f"/api/tasks/{task_id}/approve", headers=ALICE).status_code == 403
    approved = client.post(f"/api/tasks/{task_id}/approve", headers=MANAGER)
    assert approved.json()["task"]["status"] == "completed"
    assert client.post(f"/api/tasks/{task_id}/approve", headers=MANAGER).status_code == 400

    activity = client.get("/api/activity", params={"channel": "tasks"}).json()["events"]
    assert [event["type"] for event in activity] == [
        "task.created",
        "task.taken",
        "task.submitted",
        "task.rejected",
        "task.submitted",
        "task.approved",
    ]
    approvals = client.get("/api/approvals").json()["approvals"]
    assert sorted(item["status"] for item in approvals) == ["approved", "rejected"]


def test_assign_and_release(tmp_path: Path) -> None:
    client = _client(tmp_path)
    task_id = _create(client, "On-call handover")
    assert client.post(f"/api/tasks/{task_id}/assign", json={"assignee": "bob"}, headers=ALICE).status_code == 403
    assigned = client.post(f"/api/tasks/{task_id}/assign", json={"assignee": "bob"}, headers=MANAGER)
    assert assigned.json()["task"]["assigned_to"] == "bob"
    released = client.post(f"/api/tasks/{task_id}/release", headers=BOB)
    assert released.json()["task"]["status"] == "open"
    assert released.json()["task"]["assigned_to"] is None


def test_dependencies_board_and_planning(tmp_path: Path) -> None:
    client = _client(tmp_path)
    a = _create(client, "Design", estimated_hours=2, workspace_id="ws-1")
    b = _create(client, "Build", estimated_hours=3, workspace_id="ws-1")
    c = _create(client, "Launch", estimated_hours=4, workspace_id="ws-1")

    for task_id, prereq in ((b, a), (c, b)):
        resp = client.post(f"/api/tasks/{task_id}/dependencies", json={"depends_on_task_id": prereq}, headers=MANAGER)
        assert resp.status_code == 200, resp.text
    cycle = client.post(f"/api/tasks/{a}/dependencies", json={"depends_on_task_id": c}, headers=MANAGER)
    assert cycle.status_code == 409
    assert client.post(f"/api/tasks/{a}/dependencies", json={"depends_on_task_id": "task-ghost"}, headers=MANAGER).status_code == 404
    assert client.post(f"/api/tasks/{a}/dependencies", json={"depends_on_task_id": a}, headers=MANAGER).status_code == 400

    deps = client.get(f"/api/tasks/{b}/dependencies").json()
    assert [row["depends_on_task_id"] for row in deps["prerequisites"]] == [a]
    assert [row["task_id"] for row in deps["dependents"]] == [c]

    assert client.post(f"/api/tasks/{b}/take", headers=ALICE).status_code == 400

    planning = client.get("/api/planning", params={"workspace_id": "ws-1"}).json()["planning"]
    assert planning["critical_path"]["task_ids"] == [a, b, c]
    assert planning["critical_path"]["total_weight"] == 9
    assert planning["critical_path"]["has_path"] is True
    assert [(alert["task"]["id"], alert["blocker"]["id"]) for alert in planning["blocked"]] == [(b, a), (c, b)]
    assert [row["id"] for row in planning["gantt"]] == [a, b, c]
    assert all(row["duration_days"] >= 1 for row in planning["gantt"])

    board = client.get("/api/tasks/board", params={"workspace_id": "ws-1"}).json()
    open_column = {task["id"]: task for task in board["columns"]["open"]}
    assert open_column[b]["blocked_by"] == [a]
    assert open_column[a]["blocked_by"] == []

    dep_id = deps["prerequisites"][0]["id"]
    assert client.delete(f"/api/dependencies/{dep_id}", headers=MANAGER).json()["deleted"] is True
    assert client.delete(f"/api/dependencies/{dep_id}", headers=MANAGER).status_code == 404
    assert client.post(f"/api/tasks/{b}/take", headers=ALICE).status_code == 200


def test_store_failure_maps_to_503(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path)
    task_id = _create(client, "Flaky")
    runtime = _runtime(client, tmp_path)

    def _failing_upsert(task: object) -> object:
        raise OSError("disk full")

    monkeypatch.setattr(runtime.container.tasks, "upsert", _failing_upsert)

    resp = client.post(f"/api/tasks/{task_id}/take", headers=ALICE)
    assert resp.status_code == 503
    board = client.get("/api/tasks/board").json()
    assert [task["id"] for task in board["columns"]["open"]] == [task_id]
    assert board["columns"]["in-progress"] == []


def test_planning_degrades_when_store_unavailable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path)
    _create(client, "Anything")
    runtime = _runtime(client, tmp_path)

    def _offline(workspace_id: str | None = None) -> list[object]:
        raise OSError("store offline")

    monkeypatch.setattr(runtime.container.tasks, "list_in_scope", _offline)

    resp = client.get("/api/planning")
    assert resp.status_code == 200
    planning = resp.json()["planning"]
    assert planning["task_count"] == 0
    assert planning["critical_path"]["tasks"] == []
    assert planning["error"] == "store offline"


def test_templates_and_recurring_endpoints(tmp_path: Path) -> None:
    client = _client(tmp_path)
    assert client.post("/api/templates", json={"title": "Retro"}, headers=ALICE).status_code == 403
    template = client.post(
        "/api/templates",
        json={"title": "Retro", "description": "Sprint retrospective", "estimated_hours": 1, "workspace_id": "ws-1"},
        headers=MANAGER,
    ).json()["template"]
    assert [item["id"] for item in client.get("/api/templates", params={"workspace_id": "ws-1"}).json()["templates"]] == [template["id"]]

    task = client.post(
        f"/api/templates/{template['id']}/instantiate",
        json={"title": "Retro sprint 12"},
        headers=MANAGER,
    ).json()["task"]
    assert task["title"] == "Retro sprint 12"
    assert task["description"] == "Sprint retrospective"
    assert task["status"] == "open"
    assert client.post("/api/templates/tpl-missing/instantiate", headers=MANAGER).status_code == 404
    assert client.delete(f"/api/templates/{template['id']}", headers=MANAGER).json()["deleted"] is True

    schedule = client.post(
        "/api/recurring",
        json={"title": "Backup check", "frequency": "daily", "next_run_at": "2026-03-01T06:00:00+00:00"},
        headers=MANAGER,
    ).json()["recurring_task"]
    assert client.post("/api/recurring", json={"title": "x", "interval_value": 0}, headers=MANAGER).status_code == 422

    run = client.post("/api/recurring/run", json={"now": "2026-03-01T07:00:00+00:00"}).json()
    assert [item["title"] for item in run["created"]] == ["Backup check"]
    assert client.post("/api/recurring/run", json={"now": "2026-03-01T07:00:00+00:00"}).json()["created"] == []
    assert client.post("/api/recurring/run", json={"now": "yesterday"}).status_code == 400

    schedules = client.get("/api/recurring").json()["recurring_tasks"]
    assert schedules[0]["id"] == schedule["id"]
    assert schedules[0]["next_run_at"] == "2026-03-02T06:00:00+00:00"


def test_escalation_endpoint(tmp_path: Path) -> None:
    client = _client(tmp_path)
    task_id = _create(client, "Sign contract")
    client.post(f"/api/tasks/{task_id}/take", headers=ALICE)
    client.post(f"/api/tasks/{task_id}/submit", headers=ALICE)

    assert client.post("/api/approvals/escalate", json={}, headers=ALICE).status_code == 403
    none_due = client.post("/api/approvals/escalate", json={}, headers=MANAGER).json()
    assert none_due["escalated"] == []
    overdue = client.post("/api/approvals/escalate", json={"now": "2099-01-01T00:00:00+00:00"}, headers=MANAGER).json()
    assert [item["task_id"] for item in overdue["escalated"]] == [task_id]
    assert client.get("/api/approvals", params={"status": "escalated"}).json()["approvals"][0]["task_id"] == task_id
