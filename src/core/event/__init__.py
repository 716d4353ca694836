"""
Event subsystem: in-process async pub/sub used by domain services to
announce committed state changes.
"""

from src.core.event.bus import EventBus
from src.core.event.types import EventListener, EventPayload, ListenerPriority

__all__ = ["EventBus", "EventListener", "EventPayload", "ListenerPriority"]
