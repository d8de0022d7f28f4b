from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from protask.runtime.context import ProjectRuntime, create_runtime
from protask.runtime.domain.errors import AuthorizationError, NotFoundError
from protask.runtime.domain.models import Actor, TaskApproval
from protask.runtime.storage.container import Container
from protask.runtime.workflow import add_months, next_occurrence, occurrence_task_id, resolve_rule

MANAGER = Actor.of("mgr", "manager")
ALICE = Actor.of("alice")


def _runtime(tmp_path: Path) -> ProjectRuntime:
    return create_runtime(Container(tmp_path))


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(datetime(2026, 1, 31, 9, 0), 1) == datetime(2026, 2, 28, 9, 0)
    assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)
    assert add_months(datetime(2026, 11, 15), 3) == datetime(2027, 2, 15)


def test_next_occurrence_per_frequency() -> None:
    start = datetime(2026, 4, 1, 8, 30, tzinfo=timezone.utc)
    assert next_occurrence(start, "daily", 2) == start + timedelta(days=2)
    assert next_occurrence(start, "weekly", 1) == start + timedelta(weeks=1)
    assert next_occurrence(start, "monthly", 1) == datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc)


def test_occurrence_task_id_is_deterministic_and_bounded() -> None:
    slot = datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc)
    assert occurrence_task_id("rec-abc", slot) == "rt_rec-abc_202601310900"
    long_id = occurrence_task_id("rec-" + "x" * 40, slot)
    assert len(long_id) == 36
    assert long_id.startswith("rt_rec-xxxxxxxxxxxxxxxx_")


def test_run_due_materializes_once_per_slot(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    with pytest.raises(AuthorizationError):
        runtime.recurring.create(ALICE, title="Standup notes")
    schedule = runtime.recurring.create(
        MANAGER,
        title="Month-end close",
        frequency="monthly",
        next_run_at="2026-01-31T09:00:00+00:00",
        workspace_id="ws-fin",
    )
    now = datetime(2026, 2, 1, tzinfo=timezone.utc)

    created = runtime.recurring.run_due(now=now)

    assert [task.id for task in created] == [occurrence_task_id(schedule.id, datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc))]
    task = created[0]
    assert (task.status, task.workspace_id, task.created_by) == ("open", "ws-fin", "mgr")
    assert task.metadata["recurring_task_id"] == schedule.id
    stored = runtime.recurring.list()[0]
    assert stored.next_run_at == "2026-02-28T09:00:00+00:00"
    assert stored.last_run_at == now.isoformat()

    assert runtime.recurring.run_due(now=now) == []

    # Rewinding the schedule replays an already materialized slot.
    stored.next_run_at = "2026-01-31T09:00:00+00:00"
    runtime.container.recurring.upsert(stored)
    assert runtime.recurring.run_due(now=now) == []
    assert len(runtime.container.tasks.list()) == 1
    runtime.close()


def test_run_due_skips_inactive_and_other_workspaces(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    past = "2026-01-01T00:00:00+00:00"
    runtime.recurring.create(MANAGER, title="Paused", next_run_at=past, active=False, workspace_id="ws-1")
    runtime.recurring.create(MANAGER, title="Elsewhere", next_run_at=past, workspace_id="ws-2")
    runtime.recurring.create(MANAGER, title="Due", frequency="daily", next_run_at=past, workspace_id="ws-1")

    created = runtime.recurring.run_due("ws-1", now=datetime(2026, 1, 2, tzinfo=timezone.utc))

    assert [task.title for task in created] == ["Due"]
    runtime.close()


def test_template_instantiation_applies_overrides(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    with pytest.raises(AuthorizationError):
        runtime.templates.create(ALICE, title="Bug triage")
    template = runtime.templates.create(
        MANAGER,
        title="Bug triage",
        description="Reproduce and label",
        priority="high",
        estimated_hours=2,
        skills=["qa"],
        workspace_id="ws-1",
    )

    task = runtime.templates.instantiate(MANAGER, template.id, {"title": "Triage #42", "estimated_hours": 3})

    assert task.title == "Triage #42"
    assert task.description == "Reproduce and label"
    assert task.priority == "high"
    assert task.estimated_hours == 3
    assert task.skills == ["qa"]
    assert task.status == "open"
    assert task.metadata["template_id"] == template.id
    with pytest.raises(AuthorizationError):
        runtime.templates.instantiate(ALICE, template.id)

    runtime.templates.delete(MANAGER, template.id)
    assert runtime.templates.list() == []
    with pytest.raises(NotFoundError):
        runtime.templates.instantiate(MANAGER, template.id)
    runtime.close()


def test_resolve_rule_prefers_project_then_workspace_then_defaults() -> None:
    cfg = {
        "required_approvals": 1,
        "sla_hours": 24,
        "escalate_to": ["ops"],
        "rules": [
            {"workspace_id": "ws-1", "required_approvals": 2, "sla_hours": 8},
            {"workspace_id": "ws-1", "project_id": "p-9", "required_approvals": 3, "escalate_to": ["cto"]},
            "not-a-rule",
        ],
    }

    project_rule = resolve_rule(cfg, "ws-1", "p-9")
    assert (project_rule.required_approvals, project_rule.sla_hours, project_rule.escalate_to) == (3, 24.0, ["cto"])
    workspace_rule = resolve_rule(cfg, "ws-1", "p-1")
    assert (workspace_rule.required_approvals, workspace_rule.sla_hours, workspace_rule.escalate_to) == (2, 8.0, ["ops"])
    fallback = resolve_rule(cfg, "ws-other")
    assert (fallback.required_approvals, fallback.sla_hours) == (1, 24.0)
    assert resolve_rule({}, None).required_approvals == 1


def test_escalation_marks_overdue_requests_and_notifies_managers(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    cfg = runtime.container.config.load()
    cfg["approvals"]["sla_hours"] = 1
    cfg["approvals"]["escalate_to"] = ["mgr", "director"]
    runtime.container.config.save(cfg)

    task = runtime.workflow.create_task(MANAGER, title="Invoice")
    runtime.workflow.take(task.id, ALICE)
    runtime.workflow.submit(task.id, ALICE)

    assert runtime.approvals.run_escalations() == []
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    escalated = runtime.approvals.run_escalations(now=later)

    assert [item.task_id for item in escalated] == [task.id]
    assert runtime.approvals.list(status="escalated")[0].task_id == task.id
    recipients = [
        event["payload"]["recipient_id"]
        for event in runtime.container.events.list_recent()
        if event["channel"] == "notifications" and event["payload"].get("kind") == "approval_escalated"
    ]
    assert recipients == ["mgr", "director"]
    assert runtime.approvals.run_escalations(now=later) == []

    # Escalated requests can still be approved.
    assert runtime.workflow.approve(task.id, MANAGER).status == "completed"
    runtime.close()


def test_escalation_uses_the_project_rule_recipients(tmp_path: Path) -> None:
    runtime = _runtime(tmp_path)
    cfg = runtime.container.config.load()
    cfg["approvals"]["escalate_to"] = ["ops"]
    cfg["approvals"]["rules"] = [
        {"workspace_id": "ws", "sla_hours": 48, "escalate_to": ["ws-lead"]},
        {"workspace_id": "ws", "project_id": "p1", "sla_hours": 1, "escalate_to": ["pm"]},
    ]
    runtime.container.config.save(cfg)

    task = runtime.workflow.create_task(MANAGER, title="Launch plan", workspace_id="ws", project_id="p1")
    runtime.workflow.take(task.id, ALICE)
    runtime.workflow.submit(task.id, ALICE)
    request = runtime.approvals.open_request_for(task.id)
    assert request is not None and request.project_id == "p1"

    escalated = runtime.approvals.run_escalations(now=datetime.now(timezone.utc) + timedelta(hours=2))

    assert [item.task_id for item in escalated] == [task.id]
    recipients = [
        event["payload"]["recipient_id"]
        for event in runtime.container.events.list_recent()
        if event["channel"] == "notifications" and event["payload"].get("kind") == "approval_escalated"
    ]
    assert recipients == ["pm"]
    runtime.close()


def test_escalation_continues_past_a_failed_save(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(tmp_path)
    cfg = runtime.container.config.load()
    cfg["approvals"]["sla_hours"] = 1
    runtime.container.config.save(cfg)
    first = runtime.workflow.create_task(MANAGER, title="First")
    second = runtime.workflow.create_task(MANAGER, title="Second")
    for task in (first, second):
        runtime.workflow.take(task.id, ALICE)
        runtime.workflow.submit(task.id, ALICE)

    stuck = runtime.approvals.open_request_for(first.id)
    assert stuck is not None
    original_upsert = runtime.container.approvals.upsert

    def _upsert(approval: TaskApproval) -> TaskApproval:
        if approval.id == stuck.id:
            raise OSError("row locked")
        return original_upsert(approval)

    monkeypatch.setattr(runtime.container.approvals, "upsert", _upsert)

    escalated = runtime.approvals.run_escalations(now=datetime.now(timezone.utc) + timedelta(hours=2))

    assert [item.task_id for item in escalated] == [second.id]
    assert runtime.approvals.open_request_for(first.id).status == "pending"  # type: ignore[union-attr]
    assert runtime.approvals.open_request_for(second.id).status == "escalated"  # type: ignore[union-attr]
    runtime.close()
