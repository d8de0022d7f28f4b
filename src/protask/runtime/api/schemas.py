"""Pydantic request schemas for runtime API routes."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class CreateTaskRequest(BaseModel):
    """Payload for creating a new task."""

    title: str
    description: str = ""
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[str] = None
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AssignTaskRequest(BaseModel):
    assignee: str


class RejectTaskRequest(BaseModel):
    comments: Optional[str] = None


class AddDependencyRequest(BaseModel):
    """Payload making the path task depend on ``depends_on_task_id``."""

    depends_on_task_id: str
    dependency_type: Literal["blocks", "related"] = "blocks"


class CreateTemplateRequest(BaseModel):
    title: str
    description: str = ""
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    skills: list[str] = Field(default_factory=list)
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None


class InstantiateTemplateRequest(BaseModel):
    """Overrides applied over template fields; unset fields keep the template value."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high", "critical"]] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[str] = None
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    skills: Optional[list[str]] = None


class CreateRecurringTaskRequest(BaseModel):
    title: str
    description: str = ""
    frequency: Literal["daily", "weekly", "monthly"] = "weekly"
    interval_value: int = Field(default=1, ge=1)
    next_run_at: Optional[str] = None
    active: bool = True
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None


class RunScheduledRequest(BaseModel):
    """Scope and clock for running recurring tasks or approval escalations."""

    workspace_id: Optional[str] = None
    now: Optional[str] = None
