"""Bounded, retrying access path to the task store.

Every store round-trip goes through :class:`StoreGateway`, which runs the call
on a small thread pool so a hung backend cannot stall the caller past
``timeout_seconds``. Transient failures (``OSError``, timeouts) are retried
``retries`` times; anything else propagates on the first failure.

A timed-out attempt is not interrupted: its worker may still finish after the
retry is submitted. Calls routed through the gateway must therefore be
idempotent. The repositories only expose replace-by-id, insert-if-absent,
delete-by-id and reads, which all satisfy this.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from ..domain.errors import StoreTimeoutError
from .bootstrap import DEFAULT_STORE_CONFIG
from .container import Container

logger = logging.getLogger(__name__)

R = TypeVar("R")

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError, TimeoutError, FutureTimeoutError)


class StoreGateway:
    """Run store calls with a timeout, retry-once and concurrent fan-out."""

    def __init__(
        self,
        container: Container,
        *,
        timeout_seconds: Optional[float] = None,
        retries: Optional[int] = None,
        max_workers: int = 4,
    ) -> None:
        store_cfg = dict(container.config.load().get("store") or {})
        self.container = container
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else store_cfg.get("timeout_seconds", DEFAULT_STORE_CONFIG["timeout_seconds"])
        )
        self.retries = max(0, int(retries if retries is not None else store_cfg.get("retries", DEFAULT_STORE_CONFIG["retries"])))
        self._max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="protask-store")
            return self._pool

    def _await(self, future: Future[R], label: str) -> R:
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise StoreTimeoutError(f"Store call {label} exceeded {self.timeout_seconds:.1f}s") from exc

    def call(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Invoke ``fn`` on the store pool, retrying transient failures.

        ``fn`` must be idempotent; a timed-out attempt may still complete.

        Raises:
            StoreTimeoutError: If every attempt timed out.
            Exception: The last transient error, or the first non-transient one.
        """
        return self._run(self._get_pool().submit(fn, *args, **kwargs), fn, args, kwargs)

    def _run(self, future: Future[R], fn: Callable[..., R], args: tuple[Any, ...], kwargs: dict[str, Any]) -> R:
        label = getattr(fn, "__qualname__", repr(fn))
        attempts = self.retries + 1
        attempt = 1
        while True:
            try:
                return self._await(future, label)
            except _TRANSIENT_ERRORS as exc:
                if attempt >= attempts:
                    raise
                logger.warning("Store call %s failed (attempt %s/%s): %s; retrying", label, attempt, attempts, exc)
            attempt += 1
            future = self._get_pool().submit(fn, *args, **kwargs)

    def gather(self, *calls: Callable[[], Any]) -> list[Any]:
        """Run independent zero-argument reads concurrently and return results in order."""
        pool = self._get_pool()
        futures = [pool.submit(call) for call in calls]
        return [self._run(future, call, (), {}) for future, call in zip(futures, calls)]

    def close(self) -> None:
        with self._pool_lock:
            pool = self._pool
            self._pool = None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)
