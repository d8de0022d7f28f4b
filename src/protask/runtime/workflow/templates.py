"""Task templates and their instantiation into open tasks."""

from __future__ import annotations

from typing import Any, Optional

from ..domain.errors import AuthorizationError, NotFoundError, StoreWriteError
from ..domain.models import Actor, Task, TaskTemplate
from ..events.bus import EventBus
from ..storage.container import Container
from ..storage.gateway import StoreGateway
from .service import WorkflowService

_TEMPLATE_FIELDS = ("title", "description", "priority", "estimated_hours", "skills", "workspace_id", "project_id")


class TemplateService:
    def __init__(self, container: Container, bus: EventBus, gateway: StoreGateway, workflow: WorkflowService) -> None:
        self.container = container
        self.bus = bus
        self.gateway = gateway
        self.workflow = workflow

    def list(self, workspace_id: Optional[str] = None) -> list[TaskTemplate]:
        templates = self.gateway.call(self.container.templates.list)
        if workspace_id:
            templates = [item for item in templates if item.workspace_id == workspace_id]
        return templates

    def get(self, template_id: str) -> TaskTemplate:
        template = self.gateway.call(self.container.templates.get, template_id)
        if template is None:
            raise NotFoundError(f"Template not found: {template_id}")
        return template

    def create(self, actor: Actor, **fields: Any) -> TaskTemplate:
        if not actor.is_manager:
            raise AuthorizationError("Only managers can create templates")
        data = {key: fields[key] for key in _TEMPLATE_FIELDS if fields.get(key) is not None}
        data["created_by"] = actor.id
        template = TaskTemplate.from_dict(data)
        if not template.title.strip():
            raise ValueError("Template title is required")
        try:
            saved = self.gateway.call(self.container.templates.upsert, template)
        except Exception as exc:
            raise StoreWriteError(f"Failed to save template: {exc}") from exc
        self.bus.emit(channel="templates", event_type="template.created", entity_id=saved.id, payload={"actor_id": actor.id})
        return saved

    def delete(self, actor: Actor, template_id: str) -> None:
        if not actor.is_manager:
            raise AuthorizationError("Only managers can delete templates")
        self.get(template_id)
        try:
            self.gateway.call(self.container.templates.delete, template_id)
        except Exception as exc:
            raise StoreWriteError(f"Failed to delete template {template_id}: {exc}") from exc
        self.bus.emit(channel="templates", event_type="template.deleted", entity_id=template_id, payload={"actor_id": actor.id})

    def instantiate(self, actor: Actor, template_id: str, overrides: Optional[dict[str, Any]] = None) -> Task:
        """Create an ``open`` task from a template; non-null ``overrides`` win over template fields."""
        template = self.get(template_id)
        fields: dict[str, Any] = {key: getattr(template, key) for key in _TEMPLATE_FIELDS}
        fields["skills"] = list(template.skills)
        for key, value in (overrides or {}).items():
            if value is not None:
                fields[key] = value
        fields["metadata"] = {**dict(fields.get("metadata") or {}), "template_id": template.id}
        return self.workflow.create_task(actor, **fields)
