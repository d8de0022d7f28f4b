"""Event bus wrapper that persists activity events and notifies listeners."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from ..storage.interfaces import EventRepository

logger = logging.getLogger(__name__)

EventListener = Callable[[dict[str, Any]], None]


class EventBus:
    """Persist activity events and fan them out to in-process subscribers.

    Subscribers stand in for the store's realtime change feed: anything that
    derives state from tasks or dependencies subscribes and recomputes on
    every event. A failing listener never breaks the emitting write.
    """
    def __init__(self, repo: EventRepository, project_id: str) -> None:
        """Initialize the EventBus.

        Args:
            repo (EventRepository): Activity log the events are appended to.
            project_id (str): Identifier for the related project.
        """
        self._repo = repo
        self._project_id = project_id
        self._listeners: list[tuple[frozenset[str], EventListener]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: EventListener, *, channels: set[str] | None = None) -> Callable[[], None]:
        """Register ``listener`` for ``channels`` (all channels when omitted).

        Returns:
            Callable[[], None]: Function that removes the subscription.
        """
        entry = (frozenset(channels or ()), listener)
        with self._lock:
            self._listeners.append(entry)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return _unsubscribe

    def emit(self, *, channel: str, event_type: str, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Append an event to storage and deliver it to matching listeners.

        Args:
            channel (str): Channel for this call.
            event_type (str): Event type for this call.
            entity_id (str): Identifier for the related entity.
            payload (dict[str, Any]): Serialized payload consumed by this operation.

        Returns:
            dict[str, Any]: Persisted event envelope.
        """
        event = self._repo.append(
            channel=channel,
            event_type=event_type,
            entity_id=entity_id,
            payload=payload,
            project_id=self._project_id,
        )
        with self._lock:
            listeners = list(self._listeners)
        for channels, listener in listeners:
            if channels and channel not in channels:
                continue
            try:
                listener(event)
            except Exception:
                logger.debug("Event listener failed for %s", event_type, exc_info=True)
        return event
