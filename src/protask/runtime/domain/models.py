"""Domain model dataclasses and normalization helpers."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, cast


TaskStatus = Literal["open", "in-progress", "review", "completed"]
Priority = Literal["low", "medium", "high", "critical"]
DependencyType = Literal["blocks", "related"]
AppRole = Literal["admin", "manager", "member"]
ApprovalStatus = Literal["pending", "approved", "rejected", "escalated"]
RecurrenceFrequency = Literal["daily", "weekly", "monthly"]

_VALID_TASK_STATUSES = {"open", "in-progress", "review", "completed"}
_VALID_PRIORITIES = {"low", "medium", "high", "critical"}
_VALID_DEPENDENCY_TYPES = {"blocks", "related"}
_VALID_ROLES = {"admin", "manager", "member"}
_VALID_APPROVAL_STATUSES = {"pending", "approved", "rejected", "escalated"}
_VALID_FREQUENCIES = {"daily", "weekly", "monthly"}
MANAGER_ROLES = frozenset({"admin", "manager"})


def now_iso() -> str:
    """Get the current UTC timestamp formatted as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()


def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 text into an aware datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Actor:
    """The user performing a mutation, with the role that gates it."""
    id: str
    role: AppRole = "member"

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @classmethod
    def of(cls, actor_id: str, role: Optional[str] = None) -> "Actor":
        raw_role = str(role or "member").strip().lower()
        if raw_role not in _VALID_ROLES:
            raw_role = "member"
        return cls(id=str(actor_id), role=cast(AppRole, raw_role))


@dataclass
class Task:
    """Unit of work tracked on the board and scheduled by the planner."""
    id: str = field(default_factory=lambda: _id("task"))
    title: str = ""
    description: str = ""
    status: TaskStatus = "open"
    priority: Priority = "medium"
    estimated_hours: Optional[float] = None
    deadline: Optional[str] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a task to a dictionary payload."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize and normalize a task from persisted data."""
        status = str(data.get("status") or "open")
        if status not in _VALID_TASK_STATUSES:
            status = "open"
        priority = str(data.get("priority") or "medium")
        if priority not in _VALID_PRIORITIES:
            priority = "medium"
        return cls(
            id=str(data.get("id") or _id("task")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=cast(TaskStatus, status),
            priority=cast(Priority, priority),
            estimated_hours=_optional_float(data.get("estimated_hours")),
            deadline=_optional_str(data.get("deadline")),
            assigned_to=_optional_str(data.get("assigned_to")),
            created_by=_optional_str(data.get("created_by")),
            workspace_id=_optional_str(data.get("workspace_id")),
            project_id=_optional_str(data.get("project_id")),
            skills=[str(item) for item in list(data.get("skills") or [])],
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class TaskDependency:
    """Edge saying ``task_id`` depends on ``depends_on_task_id``."""
    id: str = field(default_factory=lambda: _id("dep"))
    task_id: str = ""
    depends_on_task_id: str = ""
    dependency_type: DependencyType = "blocks"
    created_by: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskDependency":
        dependency_type = str(data.get("dependency_type") or "blocks")
        if dependency_type not in _VALID_DEPENDENCY_TYPES:
            dependency_type = "blocks"
        return cls(
            id=str(data.get("id") or _id("dep")),
            task_id=str(data.get("task_id") or ""),
            depends_on_task_id=str(data.get("depends_on_task_id") or ""),
            dependency_type=cast(DependencyType, dependency_type),
            created_by=_optional_str(data.get("created_by")),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class TaskApproval:
    """Sign-off request opened when a task is submitted for review."""
    id: str = field(default_factory=lambda: _id("appr"))
    task_id: str = ""
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    status: ApprovalStatus = "pending"
    required_approvals: int = 1
    approval_count: int = 0
    approvers: list[str] = field(default_factory=list)
    requested_by: Optional[str] = None
    requested_at: str = field(default_factory=now_iso)
    due_at: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[str] = None
    comments: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskApproval":
        status = str(data.get("status") or "pending")
        if status not in _VALID_APPROVAL_STATUSES:
            status = "pending"
        try:
            required = max(1, int(data.get("required_approvals") or 1))
        except (TypeError, ValueError):
            required = 1
        try:
            count = max(0, int(data.get("approval_count") or 0))
        except (TypeError, ValueError):
            count = 0
        return cls(
            id=str(data.get("id") or _id("appr")),
            task_id=str(data.get("task_id") or ""),
            workspace_id=_optional_str(data.get("workspace_id")),
            project_id=_optional_str(data.get("project_id")),
            status=cast(ApprovalStatus, status),
            required_approvals=required,
            approval_count=count,
            approvers=[str(item) for item in list(data.get("approvers") or [])],
            requested_by=_optional_str(data.get("requested_by")),
            requested_at=str(data.get("requested_at") or now_iso()),
            due_at=_optional_str(data.get("due_at")),
            approved_by=_optional_str(data.get("approved_by")),
            approved_at=_optional_str(data.get("approved_at")),
            rejected_by=_optional_str(data.get("rejected_by")),
            rejected_at=_optional_str(data.get("rejected_at")),
            comments=_optional_str(data.get("comments")),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class TaskTemplate:
    """Reusable task blueprint that managers instantiate into open tasks."""
    id: str = field(default_factory=lambda: _id("tpl"))
    title: str = ""
    description: str = ""
    priority: Priority = "medium"
    estimated_hours: Optional[float] = None
    skills: list[str] = field(default_factory=list)
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskTemplate":
        priority = str(data.get("priority") or "medium")
        if priority not in _VALID_PRIORITIES:
            priority = "medium"
        return cls(
            id=str(data.get("id") or _id("tpl")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            priority=cast(Priority, priority),
            estimated_hours=_optional_float(data.get("estimated_hours")),
            skills=[str(item) for item in list(data.get("skills") or [])],
            workspace_id=_optional_str(data.get("workspace_id")),
            project_id=_optional_str(data.get("project_id")),
            created_by=_optional_str(data.get("created_by")),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class RecurringTask:
    """Schedule that materializes a fresh open task every interval."""
    id: str = field(default_factory=lambda: _id("rec"))
    title: str = ""
    description: str = ""
    frequency: RecurrenceFrequency = "weekly"
    interval_value: int = 1
    next_run_at: str = field(default_factory=now_iso)
    last_run_at: Optional[str] = None
    active: bool = True
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurringTask":
        frequency = str(data.get("frequency") or "weekly")
        if frequency not in _VALID_FREQUENCIES:
            frequency = "weekly"
        try:
            interval_value = max(1, int(data.get("interval_value") or 1))
        except (TypeError, ValueError):
            interval_value = 1
        return cls(
            id=str(data.get("id") or _id("rec")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            frequency=cast(RecurrenceFrequency, frequency),
            interval_value=interval_value,
            next_run_at=str(data.get("next_run_at") or now_iso()),
            last_run_at=_optional_str(data.get("last_run_at")),
            active=bool(data.get("active", True)),
            workspace_id=_optional_str(data.get("workspace_id")),
            project_id=_optional_str(data.get("project_id")),
            created_by=_optional_str(data.get("created_by")),
            created_at=str(data.get("created_at") or now_iso()),
        )
