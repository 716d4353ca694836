"""
In-process async publish/subscribe.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to every matching listener (exact name or ``fnmatch``
  wildcard such as ``staff.*``)
- Error isolation: a failing listener is logged and never blocks others

Execution model
---------------
- CRITICAL, HIGH: sequential, in priority order, each awaited
- NORMAL, LOW: concurrent via ``asyncio.gather``

Services publish facts after their database transaction commits
(``staff.hired``, ``job.closed``, ``validation.bypass_requested``); nothing
in the validation pipeline depends on a listener's result.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional

from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_SEQUENTIAL = (ListenerPriority.CRITICAL, ListenerPriority.HIGH)


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("staff.hired", on_staff_hired, priority=ListenerPriority.HIGH)
    >>> await bus.publish("staff.hired", {"guild_id": 1, "user_id": 2})
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []
        self._published: Dict[str, int] = defaultdict(int)
        self._listener_errors: Dict[str, int] = defaultdict(int)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        listener = EventListener.from_callback(event_name, callback, priority, identifier, once)
        if any(
            existing.event_pattern == event_name and existing.identifier == listener.identifier
            for existing in self._listeners
        ):
            logger.debug(
                "Listener already registered; skipping",
                extra={"event": event_name, "listener": listener.identifier},
            )
            return listener

        self._listeners.append(listener)
        self._listeners.sort(key=lambda item: item.priority.value)
        logger.debug(
            "Listener subscribed",
            extra={"event": event_name, "listener": listener.identifier, "priority": priority.name},
        )
        return listener

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [
            item
            for item in self._listeners
            if not (item.event_pattern == event_name and item.identifier == identifier)
        ]
        return len(self._listeners) < before

    def clear(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------ #
    # Publishing
    # ------------------------------------------------------------------ #

    def _matching(self, event_name: str) -> List[EventListener]:
        return [item for item in self._listeners if fnmatchcase(event_name, item.event_pattern)]

    async def _invoke(self, event_name: str, listener: EventListener, data: EventPayload) -> Any:
        try:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self._listener_errors[event_name] += 1
            logger.error(
                f"Event listener failed: {listener.identifier}",
                extra={"event": event_name, "listener": listener.identifier, "error": str(exc)},
                exc_info=True,
            )
            return None

    async def publish(self, event_name: str, data: Optional[EventPayload] = None) -> List[Any]:
        """
        Deliver ``data`` to every matching listener; returns listener results
        (``None`` for listeners that raised).
        """
        payload: EventPayload = dict(data or {})
        payload.setdefault("event_name", event_name)
        self._published[event_name] += 1

        listeners = self._matching(event_name)
        if not listeners:
            return []

        for listener in listeners:
            if listener.once:
                self._listeners.remove(listener)

        results: List[Any] = []
        for listener in (item for item in listeners if item.priority in _SEQUENTIAL):
            results.append(await self._invoke(event_name, listener, payload))

        concurrent = [item for item in listeners if item.priority not in _SEQUENTIAL]
        if concurrent:
            results.extend(
                await asyncio.gather(*(self._invoke(event_name, item, payload) for item in concurrent))
            )

        logger.debug(
            f"Event published: {event_name}",
            extra={"event": event_name, "listener_count": len(listeners)},
        )
        return results

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "listener_count": len(self._listeners),
            "events_published": dict(self._published),
            "listener_errors": dict(self._listener_errors),
        }
