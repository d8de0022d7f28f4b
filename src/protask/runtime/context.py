"""Per-project service wiring shared by the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass

from .events.bus import EventBus
from .planning.service import PlanningService
from .storage.container import Container
from .storage.gateway import StoreGateway
from .workflow.approvals import ApprovalService
from .workflow.dependencies import DependencyService
from .workflow.recurring import RecurringTaskService
from .workflow.service import WorkflowService
from .workflow.templates import TemplateService


@dataclass
class ProjectRuntime:
    """Services bound to one project's store, sharing a bus and gateway."""

    container: Container
    bus: EventBus
    gateway: StoreGateway
    planning: PlanningService
    workflow: WorkflowService
    dependencies: DependencyService
    approvals: ApprovalService
    templates: TemplateService
    recurring: RecurringTaskService

    def close(self) -> None:
        self.gateway.close()


def create_runtime(container: Container, *, bus: EventBus | None = None, gateway: StoreGateway | None = None) -> ProjectRuntime:
    """Build every project service around ``container``.

    Args:
        container (Container): Repositories for the project.
        bus (EventBus | None): Event bus to share; one is created when omitted.
        gateway (StoreGateway | None): Store gateway to share; one is created from
            the project's ``store`` config when omitted.

    Returns:
        ProjectRuntime: Wired services.
    """
    bus = bus or EventBus(container.events, container.project_id)
    gateway = gateway or StoreGateway(container)
    approvals = ApprovalService(container, bus, gateway)
    workflow = WorkflowService(container, bus, gateway, approvals=approvals)
    return ProjectRuntime(
        container=container,
        bus=bus,
        gateway=gateway,
        planning=PlanningService(container, gateway),
        workflow=workflow,
        dependencies=DependencyService(container, bus, gateway),
        approvals=approvals,
        templates=TemplateService(container, bus, gateway, workflow),
        recurring=RecurringTaskService(container, bus, gateway),
    )
