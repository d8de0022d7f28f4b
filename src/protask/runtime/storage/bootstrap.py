"""State-root creation and default configuration seeding."""

from __future__ import annotations

from pathlib import Path

from .file_repos import FileConfigRepository


STATE_DIR_NAME = ".protask"
SCHEMA_VERSION = 1

STATE_FILES = {
    "tasks": "tasks.yaml",
    "dependencies": "dependencies.yaml",
    "approvals": "approvals.yaml",
    "templates": "templates.yaml",
    "recurring_tasks": "recurring_tasks.yaml",
    "events": "events.jsonl",
    "config": "config.yaml",
}

DEFAULT_STORE_CONFIG = {"timeout_seconds": 10.0, "retries": 1}
DEFAULT_PLANNING_CONFIG = {"unestimated_hours": 24}
DEFAULT_APPROVALS_CONFIG = {"required_approvals": 1, "sla_hours": 24, "escalate_to": [], "rules": []}


def _ensure_gitignored(project_dir: Path) -> None:
    """Add the state directory to the project's .gitignore if not already present."""
    gitignore = project_dir / ".gitignore"
    entry = f"{STATE_DIR_NAME}/"
    if gitignore.exists():
        content = gitignore.read_text(encoding="utf-8")
        existing = {line.strip() for line in content.splitlines()}
        if entry in existing or entry.rstrip("/") in existing:
            return
        if content and not content.endswith("\n"):
            content += "\n"
        content += f"\n# ProTask runtime data\n{entry}\n"
        gitignore.write_text(content, encoding="utf-8")
    else:
        gitignore.write_text(f"# ProTask runtime data\n{entry}\n", encoding="utf-8")


def ensure_state_root(project_dir: Path) -> Path:
    """Create the state directory, seed empty collections and default config.

    Existing config values are preserved; missing sections are filled with
    defaults and ``schema_version`` is stamped.
    """
    state_root = project_dir / STATE_DIR_NAME
    state_root.mkdir(parents=True, exist_ok=True)
    _ensure_gitignored(project_dir)

    for file_name in STATE_FILES.values():
        target = state_root / file_name
        if file_name.endswith(".yaml") and not target.exists():
            target.write_text(f"version: {SCHEMA_VERSION}\n", encoding="utf-8")
        if file_name.endswith(".jsonl") and not target.exists():
            target.touch()

    config_repo = FileConfigRepository(state_root / "config.yaml", state_root / "config.lock")
    config = config_repo.load()
    config.pop("version", None)
    config["schema_version"] = SCHEMA_VERSION
    config.setdefault("store", dict(DEFAULT_STORE_CONFIG))
    config.setdefault("planning", dict(DEFAULT_PLANNING_CONFIG))
    config.setdefault("approvals", {**DEFAULT_APPROVALS_CONFIG, "escalate_to": [], "rules": []})
    config_repo.save(config)

    return state_root
