"""
Unit tests for ValidationResultCache and PendingBypassStore.

Both take an injectable clock so expiry is tested without sleeping.
"""

import pytest

from src.modules.validation.cache import ValidationResultCache
from src.modules.validation.pending import PendingBypassStore
from src.modules.validation.types import BypassRequest, ValidationResult


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.unit
class TestValidationResultCache:
    """TTL and size-bounded eviction."""

    def test_returns_value_within_ttl(self, clock):
        cache = ValidationResultCache(ttl_seconds=5, clock=clock)
        cache.set("k", "v")
        clock.advance(4.9)

        assert cache.get("k") == "v"

    def test_entry_expires_after_ttl(self, clock):
        cache = ValidationResultCache(ttl_seconds=5, clock=clock)
        cache.set("k", "v")
        clock.advance(5.1)

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_overflow_evicts_oldest_batch(self, clock):
        # Arrange
        cache = ValidationResultCache(ttl_seconds=60, max_entries=100, evict_batch=20, clock=clock)
        for index in range(100):
            cache.set(f"key-{index}", index)
            clock.advance(0.01)

        # Act
        cache.set("newest", 999)

        # Assert
        assert len(cache) == 81
        assert "key-0" not in cache
        assert "key-19" not in cache
        assert cache.get("key-20") == 20
        assert cache.get("newest") == 999

    def test_delete_and_clear(self, clock):
        cache = ValidationResultCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0


def _request(mocker) -> BypassRequest:
    return BypassRequest(
        validation_result=ValidationResult(valid=False, errors=["limit"], bypass_available=True),
        context=mocker.MagicMock(),
        rule_name="role_limit_check",
    )


@pytest.mark.unit
class TestPendingBypassStore:
    """Token lifecycle: store, confirm, replay once."""

    def test_replay_requires_confirmation(self, mocker, clock):
        store = PendingBypassStore(clock=clock)
        token = store.store(1, [_request(mocker)], {"command_name": "staff"})

        assert store.replay(token) is None

    def test_confirmed_token_replays_exactly_once(self, mocker, clock):
        # Arrange
        store = PendingBypassStore(clock=clock)
        token = store.store(1, [_request(mocker)], {"command_name": "staff"})

        # Act
        consumed = store.consume_for_user(1, reason="Seasonal hiring")
        first = store.replay(token)
        second = store.replay(token)

        # Assert
        assert len(consumed) == 1
        assert consumed[0].bypass_reason == "Seasonal hiring"
        assert first is not None
        assert first.context_payload == {"command_name": "staff"}
        assert first.reason == "Seasonal hiring"
        assert second is None

    def test_consume_is_per_user(self, mocker, clock):
        store = PendingBypassStore(clock=clock)
        store.store(1, [_request(mocker)], {})
        store.store(2, [_request(mocker)], {})

        assert len(store.consume_for_user(1)) == 1
        assert store.get_for_user(1) == []
        assert len(store.get_for_user(2)) == 1

    def test_replay_rejects_other_user(self, mocker, clock):
        store = PendingBypassStore(clock=clock)
        token = store.store(1, [_request(mocker)], {})
        store.consume_for_user(1)

        assert store.replay(token, user_id=2) is None
        assert store.replay(token, user_id=1) is not None

    def test_expired_entries_are_dropped(self, mocker, clock):
        store = PendingBypassStore(ttl_seconds=300, clock=clock)
        store.store(1, [_request(mocker)], {})
        clock.advance(301)

        assert store.consume_for_user(1) == []
        assert len(store) == 0

    def test_size_bound_drops_oldest(self, mocker, clock):
        store = PendingBypassStore(max_entries=2, clock=clock)
        first = store.store(1, [_request(mocker)], {})
        store.store(1, [_request(mocker)], {})
        store.store(1, [_request(mocker)], {})

        assert len(store) == 2
        assert store.discard(first) is None

    def test_discard_hands_back_the_entry(self, mocker, clock):
        store = PendingBypassStore(clock=clock)
        token = store.store(1, [_request(mocker)], {"command_name": "staff"})

        discarded = store.discard(token)

        assert discarded is not None
        assert discarded.context_payload == {"command_name": "staff"}
        assert store.get_for_user(1) == []
        assert store.discard(token) is None

    def test_recent_read_survives_overflow(self, clock):
        cache = ValidationResultCache(ttl_seconds=60, max_entries=3, evict_batch=1, clock=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key)

        cache.get("a")
        cache.set("d", "d")

        assert "a" in cache
        assert "b" not in cache
