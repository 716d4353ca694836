"""
Core event types.

- EventPayload: plain dict, JSON-serializable for logging
- ListenerPriority: lower value runs earlier
- EventListener: registered callback plus its metadata
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

EventPayload = dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Awaitable[Any]],
    Callable[[EventPayload], Any],
]


class ListenerPriority(Enum):
    """
    CRITICAL and HIGH listeners run sequentially and are awaited in order.
    NORMAL and LOW listeners run concurrently after them.
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(slots=True)
class EventListener:
    event_pattern: str
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_pattern: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: str | None = None,
        once: bool = False,
    ) -> "EventListener":
        name = identifier or getattr(callback, "__qualname__", None) or repr(callback)
        return cls(event_pattern, callback, priority, name, once)
