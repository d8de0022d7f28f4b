"""Activity event bus exports."""

from .bus import EventBus, EventListener

__all__ = ["EventBus", "EventListener"]
