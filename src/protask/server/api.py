"""FastAPI app wiring for the task planning service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, cast

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..runtime.api import create_router
from ..runtime.context import ProjectRuntime, create_runtime
from ..runtime.storage import Container
from ..runtime.storage.bootstrap import SCHEMA_VERSION

logger = logging.getLogger(__name__)


def create_app(project_dir: Optional[Path] = None, enable_cors: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir (Optional[Path]): Default project directory used when request-level
            ``project_dir`` query parameters are not provided.
        enable_cors (bool): Whether to install permissive CORS middleware for browser
            clients.

    Returns:
        FastAPI: Configured application instance with router endpoints and a
        per-project runtime cache stored on ``app.state``.
    """
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            runtimes = list(cast(dict[str, ProjectRuntime], app.state.runtimes).values())
            for runtime in runtimes:
                try:
                    runtime.close()
                except Exception:
                    logger.exception("Failed to close runtime for %s", runtime.container.project_dir)
            app.state.runtimes = {}

    app = FastAPI(
        title="ProTask",
        description="Task planning and workflow service",
        version=__version__,
        lifespan=_lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.default_project_dir = project_dir
    app.state.runtimes = {}

    def _resolve_project_dir(project_dir_param: Optional[str] = None) -> Path:
        if project_dir_param:
            return Path(project_dir_param).expanduser().resolve()
        if app.state.default_project_dir:
            return Path(app.state.default_project_dir).resolve()
        return Path.cwd().resolve()

    def _resolve_runtime(project_dir_param: Optional[str] = None) -> ProjectRuntime:
        resolved = _resolve_project_dir(project_dir_param)
        key = str(resolved)
        cache = cast(dict[str, ProjectRuntime], app.state.runtimes)
        if key not in cache:
            cache[key] = create_runtime(Container(resolved))
        return cache[key]

    app.include_router(create_router(_resolve_runtime))

    @app.get("/")
    def root(project_dir: Optional[str] = Query(None)) -> dict[str, object]:
        """Return basic service metadata for the selected project context."""
        container = _resolve_runtime(project_dir).container
        return {
            "name": "ProTask",
            "version": __version__,
            "project": str(container.project_dir),
            "project_id": container.project_id,
            "schema_version": SCHEMA_VERSION,
        }

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        return {"status": "ok", "version": __version__}

    @app.get("/readyz")
    def readyz(project_dir: Optional[str] = Query(None)) -> dict[str, object]:
        """Expose readiness status for the selected project context."""
        container = _resolve_runtime(project_dir).container
        return {
            "status": "ready",
            "project": str(container.project_dir),
            "project_id": container.project_id,
            "runtimes": len(app.state.runtimes),
        }

    return app
