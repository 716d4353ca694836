"""
Time- and size-bounded memo of command validation results.
"""

from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

from cachetools import TTLCache

V = TypeVar("V")


class ValidationResultCache(Generic[V]):
    """
    Entries expire ``ttl_seconds`` after being stored. Storing a new key in a
    full cache first drops the ``evict_batch`` least recently used entries.
    """

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        max_entries: int = 100,
        evict_batch: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.evict_batch = max(1, evict_batch)
        self._entries: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)

    def get(self, key: str) -> Optional[V]:
        return self._entries.get(key)

    def set(self, key: str, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            for _ in range(min(self.evict_batch, len(self._entries))):
                self._entries.popitem()
        self._entries[key] = value

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
