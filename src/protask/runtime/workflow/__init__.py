"""Task workflow: transitions, optimistic board, approvals, templates, recurrence."""

from .approvals import ApprovalRule, ApprovalService, resolve_rule
from .board import RollbackToken, TaskBoard
from .dependencies import DependencyService
from .recurring import RecurringTaskService, add_months, next_occurrence, occurrence_task_id
from .service import WorkflowService
from .templates import TemplateService
from .transitions import TRANSITIONS, WORKFLOW_ACTIONS, Transition, allowed_actions, evaluate_transition

__all__ = [
    "ApprovalRule",
    "ApprovalService",
    "DependencyService",
    "RecurringTaskService",
    "RollbackToken",
    "TRANSITIONS",
    "TaskBoard",
    "TemplateService",
    "Transition",
    "WORKFLOW_ACTIONS",
    "WorkflowService",
    "add_months",
    "allowed_actions",
    "evaluate_transition",
    "next_occurrence",
    "occurrence_task_id",
    "resolve_rule",
]
