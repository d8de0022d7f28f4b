"""Shared dependency context for runtime API route registration."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Header, HTTPException

from ..context import ProjectRuntime
from ..domain.errors import (
    AuthorizationError,
    DependencyCycleError,
    NotFoundError,
    StoreTimeoutError,
    StoreWriteError,
)
from ..domain.models import Actor, parse_iso_datetime


@dataclass(frozen=True)
class RouteDeps:
    """Route registration dependency bundle."""

    ctx: Callable[[Optional[str]], ProjectRuntime]


def current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """Resolve the acting user from ``X-Actor-Id`` / ``X-Actor-Role`` headers."""
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(status_code=401, detail="X-Actor-Id header is required")
    return Actor.of(x_actor_id.strip(), x_actor_role)


def parse_clock(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid timestamp: {value}")
    return parsed


@contextmanager
def http_errors() -> Iterator[None]:
    """Translate domain errors raised inside the block into HTTP responses."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AuthorizationError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except DependencyCycleError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (StoreWriteError, StoreTimeoutError, OSError) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
