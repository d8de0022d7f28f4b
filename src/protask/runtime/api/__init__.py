"""HTTP routes for the task planning runtime."""

from .router import create_router

__all__ = ["create_router"]
