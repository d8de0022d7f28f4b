"""Repository interfaces for the task store abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

from ..domain.models import RecurringTask, Task, TaskApproval, TaskDependency, TaskTemplate


class TaskRepository(ABC):
    """Persistence contract for task records."""
    @abstractmethod
    def list(self) -> List[Task]:
        """List every persisted task record.

        Returns:
            List[Task]: All task records currently stored for the project.
        """
        raise NotImplementedError

    @abstractmethod
    def list_in_scope(self, workspace_id: Optional[str] = None) -> List[Task]:
        """List tasks belonging to one workspace, or every task when unscoped.

        Args:
            workspace_id (Optional[str]): Workspace filter; ``None`` disables filtering.

        Returns:
            List[Task]: Tasks in scope, in storage order.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        """Fetch a task by id, or ``None`` when no record exists.

        Args:
            task_id (str): Identifier for the target task.

        Returns:
            Optional[Task]: Requested value when available; otherwise `None`.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert(self, task: Task) -> Task:
        """Create or update a task record.

        Args:
            task (Task): Task model to persist.

        Returns:
            Task: Persisted task record after the write operation.
        """
        raise NotImplementedError

    @abstractmethod
    def insert_if_absent(self, task: Task) -> bool:
        """Insert a task only when no record with the same id exists.

        Args:
            task (Task): Task model to persist.

        Returns:
            bool: `True` when inserted, `False` when the id was already taken.
        """
        raise NotImplementedError


class DependencyRepository(ABC):
    """Persistence contract for task dependency edges."""
    @abstractmethod
    def list(self) -> List[TaskDependency]:
        """List every dependency row.

        Returns:
            List[TaskDependency]: All dependency rows in storage order.
        """
        raise NotImplementedError

    @abstractmethod
    def for_tasks(self, task_ids: Iterable[str]) -> List[TaskDependency]:
        """List dependency rows whose dependent ``task_id`` is in ``task_ids``.

        Args:
            task_ids (Iterable[str]): Dependent task identifiers in scope.

        Returns:
            List[TaskDependency]: Matching rows in storage order.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, dependency_id: str) -> Optional[TaskDependency]:
        """Fetch a dependency row by id.

        Args:
            dependency_id (str): Dependency row identifier.

        Returns:
            Optional[TaskDependency]: Matching row when present; otherwise `None`.
        """
        raise NotImplementedError

    @abstractmethod
    def add(self, dependency: TaskDependency) -> TaskDependency:
        """Append a dependency row.

        Args:
            dependency (TaskDependency): Edge to persist.

        Returns:
            TaskDependency: Persisted edge.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, dependency_id: str) -> bool:
        """Delete a dependency row by id.

        Args:
            dependency_id (str): Dependency row identifier.

        Returns:
            bool: `True` when a row was removed, otherwise `False`.
        """
        raise NotImplementedError


class ApprovalRepository(ABC):
    """Persistence contract for task approval requests."""
    @abstractmethod
    def list(self) -> List[TaskApproval]:
        """List every approval request, newest first.

        Returns:
            List[TaskApproval]: All approval requests.
        """
        raise NotImplementedError

    @abstractmethod
    def pending_for_task(self, task_id: str) -> Optional[TaskApproval]:
        """Return the open (pending or escalated) approval request for a task, if any.

        Args:
            task_id (str): Identifier for the target task.

        Returns:
            Optional[TaskApproval]: The open request, or `None`.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert(self, approval: TaskApproval) -> TaskApproval:
        """Create or update an approval request.

        Args:
            approval (TaskApproval): Approval record to persist.

        Returns:
            TaskApproval: Persisted approval record.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, approval_id: str) -> bool:
        """Delete an approval request by id.

        Args:
            approval_id (str): Approval request identifier.

        Returns:
            bool: `True` when a request was removed, otherwise `False`.
        """
        raise NotImplementedError


class TemplateRepository(ABC):
    """Persistence contract for task templates."""
    @abstractmethod
    def list(self) -> List[TaskTemplate]:
        """List every template.

        Returns:
            List[TaskTemplate]: All persisted templates.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, template_id: str) -> Optional[TaskTemplate]:
        """Fetch a template by id.

        Args:
            template_id (str): Template identifier.

        Returns:
            Optional[TaskTemplate]: Matching template when present; otherwise `None`.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert(self, template: TaskTemplate) -> TaskTemplate:
        """Create or update a template.

        Args:
            template (TaskTemplate): Template to persist.

        Returns:
            TaskTemplate: Persisted template.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, template_id: str) -> bool:
        """Delete a template by id.

        Args:
            template_id (str): Template identifier.

        Returns:
            bool: `True` when a template was removed, otherwise `False`.
        """
        raise NotImplementedError


class RecurringTaskRepository(ABC):
    """Persistence contract for recurring task schedules."""
    @abstractmethod
    def list(self) -> List[RecurringTask]:
        """List every recurring schedule.

        Returns:
            List[RecurringTask]: All persisted schedules.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert(self, recurring: RecurringTask) -> RecurringTask:
        """Create or update a recurring schedule.

        Args:
            recurring (RecurringTask): Schedule to persist.

        Returns:
            RecurringTask: Persisted schedule.
        """
        raise NotImplementedError


class EventRepository(ABC):
    """Persistence contract for the activity event stream."""
    @abstractmethod
    def append(self, *, channel: str, event_type: str, entity_id: str, payload: dict[str, Any], project_id: str) -> dict[str, Any]:
        """Append an event envelope and return the persisted record.

        Args:
            channel (str): Event channel name (for example ``tasks`` or ``notifications``).
            event_type (str): Event type label within the channel namespace.
            entity_id (str): Identifier for the related entity.
            payload (dict[str, Any]): JSON-serializable event payload.
            project_id (str): Identifier for the related project.

        Returns:
            dict[str, Any]: Persisted event envelope including id and timestamp metadata.
        """
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, limit: int = 100) -> List[dict[str, Any]]:
        """List the most recent events, capped at ``limit`` records.

        Args:
            limit (int): Maximum number of newest event records to return.

        Returns:
            List[dict[str, Any]]: Most recent event envelopes, newest-last by storage order.
        """
        raise NotImplementedError
