"""
Pending guild-owner bypasses.

When a guild owner's command fails a bypassable rule, the failing
requests and the serialized command context are parked here under an
idempotency token. Confirmation consumes the user's requests and marks
their tokens confirmed; ``replay`` then hands the stored context back
exactly once.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cachetools import TTLCache

from src.modules.validation.types import BypassRequest


@dataclass
class PendingBypass:
    token: str
    user_id: int
    requests: List[BypassRequest]
    context_payload: Dict[str, Any]
    created_at: float
    confirmed: bool = False
    reason: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


class PendingBypassStore:
    """
    Token-keyed, per-user store with a TTL and a size bound.

    Not shared across processes. Two bypass-eligible commands from the same
    user in quick succession each get their own token; confirming consumes
    both. When full, the least recently touched token is dropped.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._by_token: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)

    def purge_expired(self) -> int:
        return len(self._by_token.expire())

    def _entries_for(self, user_id: int) -> List[PendingBypass]:
        return [entry for entry in list(self._by_token.values()) if entry.user_id == user_id and not entry.confirmed]

    def store(self, user_id: int, requests: List[BypassRequest], context_payload: Dict[str, Any]) -> str:
        token = uuid.uuid4().hex
        self._by_token[token] = PendingBypass(
            token=token,
            user_id=user_id,
            requests=list(requests),
            context_payload=dict(context_payload),
            created_at=self._clock(),
        )
        return token

    def get_for_user(self, user_id: int) -> List[BypassRequest]:
        """Unconfirmed requests awaiting this user's confirmation."""
        requests: List[BypassRequest] = []
        for entry in self._entries_for(user_id):
            requests.extend(entry.requests)
        return requests

    def consume_for_user(self, user_id: int, reason: Optional[str] = None) -> List[BypassRequest]:
        """Mark every unconfirmed entry of ``user_id`` confirmed and return their requests."""
        consumed: List[BypassRequest] = []
        for entry in self._entries_for(user_id):
            entry.confirmed = True
            entry.reason = reason
            for request in entry.requests:
                request.bypass_reason = reason
            consumed.extend(entry.requests)
        return consumed

    def replay(self, token: str, user_id: Optional[int] = None) -> Optional[PendingBypass]:
        """Pop a confirmed entry; a second call with the same token returns ``None``."""
        entry = self._by_token.get(token)
        if entry is None or not entry.confirmed:
            return None
        if user_id is not None and entry.user_id != user_id:
            return None
        del self._by_token[token]
        return entry

    def discard(self, token: str) -> Optional[PendingBypass]:
        """Drop ``token`` and return what it held, if it was still live."""
        return self._by_token.pop(token, None)

    def __len__(self) -> int:
        return len(self._by_token)
