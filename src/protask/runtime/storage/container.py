"""Dependency container for task store repositories."""

from __future__ import annotations

from pathlib import Path

from .bootstrap import ensure_state_root
from .file_repos import (
    FileApprovalRepository,
    FileConfigRepository,
    FileDependencyRepository,
    FileEventRepository,
    FileRecurringTaskRepository,
    FileTaskRepository,
    FileTemplateRepository,
)


class Container:
    """Wire file-backed repositories and project-scoped runtime settings."""
    def __init__(self, project_dir: Path) -> None:
        """Initialize the Container.

        Args:
            project_dir (Path): Project directory whose state root holds the store files.
        """
        self.project_dir = project_dir.resolve()
        self.state_root = ensure_state_root(self.project_dir)

        self.tasks = FileTaskRepository(self.state_root / "tasks.yaml", self.state_root / "tasks.lock")
        self.dependencies = FileDependencyRepository(
            self.state_root / "dependencies.yaml",
            self.state_root / "dependencies.lock",
        )
        self.approvals = FileApprovalRepository(self.state_root / "approvals.yaml", self.state_root / "approvals.lock")
        self.templates = FileTemplateRepository(self.state_root / "templates.yaml", self.state_root / "templates.lock")
        self.recurring = FileRecurringTaskRepository(
            self.state_root / "recurring_tasks.yaml",
            self.state_root / "recurring_tasks.lock",
        )
        self.events = FileEventRepository(self.state_root / "events.jsonl", self.state_root / "events.lock")
        self.config = FileConfigRepository(self.state_root / "config.yaml", self.state_root / "config.lock")

    @property
    def project_id(self) -> str:
        """Expose the stable project identifier derived from directory name.

        Returns:
            str: Name of the project directory.
        """
        return self.project_dir.name
