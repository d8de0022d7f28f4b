"""Per-task schedule bars derived from creation time, deadline and effort."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from ..domain.models import Task, parse_iso_datetime

# Effort assumed for a task without an estimate when no deadline is set.
UNESTIMATED_HOURS = 24.0


@dataclass(frozen=True)
class GanttRow:
    id: str
    title: str
    status: str
    start: datetime
    end: datetime
    duration_days: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "start_label": _label(self.start),
            "end_label": _label(self.end),
            "duration_days": self.duration_days,
        }


def _label(value: datetime) -> str:
    return f"{value:%b} {value.day}"


def whole_days_between(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(days=1)


def project_row(
    task: Task,
    *,
    now: Optional[datetime] = None,
    unestimated_hours: float = UNESTIMATED_HOURS,
) -> GanttRow:
    """Project one task onto a bar.

    ``end`` is the deadline when set, otherwise ``start`` plus the estimate
    (at least one hour). Unparseable timestamps, or an estimate that runs past
    the calendar, collapse the bar onto ``now``.
    """
    start = parse_iso_datetime(task.created_at)
    end: Optional[datetime] = None
    if start is not None:
        if task.deadline:
            end = parse_iso_datetime(task.deadline)
        else:
            hours = float(task.estimated_hours) if task.estimated_hours else float(unestimated_hours)
            try:
                end = start + timedelta(hours=max(1.0, hours))
            except (OverflowError, ValueError):
                end = None
    if start is None or end is None:
        start = end = now or datetime.now(timezone.utc)
    return GanttRow(
        id=task.id,
        title=task.title,
        status=task.status,
        start=start,
        end=end,
        duration_days=max(1, whole_days_between(start, end)),
    )


def project_gantt(
    tasks: Sequence[Task],
    *,
    now: Optional[datetime] = None,
    unestimated_hours: float = UNESTIMATED_HOURS,
) -> list[GanttRow]:
    """Project every task onto a start/end/duration row, preserving order."""
    return [project_row(task, now=now, unestimated_hours=unestimated_hours) for task in tasks]
