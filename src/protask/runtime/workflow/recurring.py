"""Recurring task schedules and their materialization into open tasks."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..domain.errors import AuthorizationError
from ..domain.models import Actor, RecurringTask, Task, parse_iso_datetime
from ..events.bus import EventBus
from ..storage.container import Container
from ..storage.gateway import StoreGateway

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = ("title", "description", "frequency", "interval_value", "next_run_at", "active", "workspace_id", "project_id")


def add_months(value: datetime, months: int) -> datetime:
    """Shift ``value`` by whole months, clamping the day to the target month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_occurrence(value: datetime, frequency: str, interval_value: int) -> datetime:
    step = max(1, int(interval_value))
    if frequency == "daily":
        return value + timedelta(days=step)
    if frequency == "monthly":
        return add_months(value, step)
    return value + timedelta(weeks=step)


def occurrence_task_id(schedule_id: str, slot: datetime) -> str:
    """Deterministic id for one scheduled slot, so reruns never duplicate it."""
    return f"rt_{schedule_id[:20]}_{slot:%Y%m%d%H%M}"[:36]


class RecurringTaskService:
    def __init__(self, container: Container, bus: EventBus, gateway: StoreGateway) -> None:
        self.container = container
        self.bus = bus
        self.gateway = gateway

    def list(self, workspace_id: Optional[str] = None) -> list[RecurringTask]:
        schedules = self.gateway.call(self.container.recurring.list)
        if workspace_id:
            schedules = [item for item in schedules if item.workspace_id == workspace_id]
        return schedules

    def create(self, actor: Actor, **fields: Any) -> RecurringTask:
        if not actor.is_manager:
            raise AuthorizationError("Only managers can schedule recurring tasks")
        data = {key: fields[key] for key in _SCHEDULE_FIELDS if fields.get(key) is not None}
        data["created_by"] = actor.id
        if data.get("next_run_at") and parse_iso_datetime(data["next_run_at"]) is None:
            raise ValueError(f"Invalid next_run_at: {data['next_run_at']}")
        schedule = RecurringTask.from_dict(data)
        if not schedule.title.strip():
            raise ValueError("Recurring task title is required")
        saved = self.gateway.call(self.container.recurring.upsert, schedule)
        self.bus.emit(
            channel="recurring",
            event_type="recurring.created",
            entity_id=saved.id,
            payload={"frequency": saved.frequency, "interval_value": saved.interval_value, "actor_id": actor.id},
        )
        return saved

    def run_due(self, workspace_id: Optional[str] = None, *, now: Optional[datetime] = None) -> list[Task]:
        """Materialize every active schedule whose ``next_run_at`` has arrived.

        Each due schedule yields at most one task per run and advances by one
        interval. A slot whose task already exists is skipped but still
        advanced, so repeated runs are idempotent.

        Returns:
            list[Task]: Tasks created by this run.
        """
        current = now or datetime.now(timezone.utc)
        created: list[Task] = []
        for schedule in self.list(workspace_id):
            if not schedule.active:
                continue
            slot = parse_iso_datetime(schedule.next_run_at)
            if slot is None:
                logger.warning("Skipping recurring task %s with invalid next_run_at %r", schedule.id, schedule.next_run_at)
                continue
            if slot > current:
                continue

            task = Task(
                id=occurrence_task_id(schedule.id, slot),
                title=schedule.title,
                description=schedule.description,
                status="open",
                created_by=schedule.created_by,
                workspace_id=schedule.workspace_id,
                project_id=schedule.project_id,
                created_at=current.isoformat(),
                updated_at=current.isoformat(),
                metadata={"recurring_task_id": schedule.id, "scheduled_for": slot.isoformat()},
            )
            if self.gateway.call(self.container.tasks.insert_if_absent, task):
                created.append(task)
                self.bus.emit(
                    channel="tasks",
                    event_type="task.created",
                    entity_id=task.id,
                    payload={"status": task.status, "recurring_task_id": schedule.id, "workspace_id": task.workspace_id},
                )
            else:
                logger.info("Recurring slot %s already materialized", task.id)

            schedule.last_run_at = current.isoformat()
            schedule.next_run_at = next_occurrence(slot, schedule.frequency, schedule.interval_value).isoformat()
            self.gateway.call(self.container.recurring.upsert, schedule)
        return created
