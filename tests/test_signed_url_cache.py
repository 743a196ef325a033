"""Unit tests for SignedURLCache.

Tests cover:
- Fresh entries are returned, stale ones are reported as misses
- Expiry is computed from the injected clock
- Overflow evicts the oldest entries down to the margin
- evict_expired() removes only stale entries
"""

from datetime import timedelta

import pytest

from tava.services.image_cache import SignedURLCache
from tests.fakes import FakeClock


@pytest.fixture
def cache(clock: FakeClock) -> SignedURLCache:
    return SignedURLCache(ttl=timedelta(minutes=50), clock=clock)


class TestGet:
    """Test lookups against the TTL."""

    def test_fresh_entry_returned(self, cache: SignedURLCache) -> None:
        cache.put("meals/u1/a.jpg", "https://signed/a")
        assert cache.get("meals/u1/a.jpg") == "https://signed/a"

    def test_missing_entry_returns_none(self, cache: SignedURLCache) -> None:
        assert cache.get("meals/u1/missing.jpg") is None

    def test_entry_expires_after_ttl(self, cache: SignedURLCache, clock: FakeClock) -> None:
        """An entry is valid strictly before expires_at and stale from then on."""
        cache.put("meals/u1/a.jpg", "https://signed/a")

        clock.advance(minutes=49, seconds=59)
        assert cache.get("meals/u1/a.jpg") == "https://signed/a"

        clock.advance(seconds=1)
        assert cache.get("meals/u1/a.jpg") is None

    def test_stale_entry_stays_resident(self, cache: SignedURLCache, clock: FakeClock) -> None:
        """Stale entries are not returned but remain until swept."""
        cache.put("meals/u1/a.jpg", "https://signed/a")
        clock.advance(minutes=51)

        assert cache.get("meals/u1/a.jpg") is None
        assert "meals/u1/a.jpg" in cache
        assert len(cache) == 1

    def test_put_sets_expiry_from_clock(self, cache: SignedURLCache, clock: FakeClock) -> None:
        entry = cache.put("meals/u1/a.jpg", "https://signed/a")
        assert entry.created_at == clock.now
        assert entry.expires_at == clock.now + timedelta(minutes=50)

    def test_put_replaces_entry(self, cache: SignedURLCache, clock: FakeClock) -> None:
        cache.put("meals/u1/a.jpg", "https://signed/old")
        clock.advance(minutes=51)
        cache.put("meals/u1/a.jpg", "https://signed/new")

        assert cache.get("meals/u1/a.jpg") == "https://signed/new"
        assert len(cache) == 1


class TestOverflowEviction:
    """Test capacity-driven eviction of the oldest entries."""

    def test_overflow_evicts_down_to_margin(self, clock: FakeClock) -> None:
        """Inserting entry 1001 drops the 100 oldest before adding it."""
        cache = SignedURLCache(
            ttl=timedelta(minutes=50), max_entries=1000, overflow_margin=100, clock=clock
        )
        for i in range(1000):
            cache.put(f"p{i}", f"u{i}")
            clock.advance(seconds=1)
        assert len(cache) == 1000

        cache.put("p1000", "u1000")

        assert len(cache) == 901
        assert "p0" not in cache
        assert "p99" not in cache
        assert "p100" in cache
        assert cache.get("p1000") == "u1000"

    def test_never_exceeds_limit(self, clock: FakeClock) -> None:
        cache = SignedURLCache(
            ttl=timedelta(minutes=50), max_entries=10, overflow_margin=3, clock=clock
        )
        for i in range(57):
            cache.put(f"p{i}", f"u{i}")
            clock.advance(seconds=1)
            assert len(cache) <= 10

    def test_replacing_existing_key_does_not_evict(self, clock: FakeClock) -> None:
        cache = SignedURLCache(
            ttl=timedelta(minutes=50), max_entries=3, overflow_margin=1, clock=clock
        )
        for i in range(3):
            cache.put(f"p{i}", f"u{i}")
            clock.advance(seconds=1)

        cache.put("p0", "u0-refreshed")

        assert len(cache) == 3
        assert cache.get("p0") == "u0-refreshed"


class TestEvictExpired:
    """Test the periodic sweep."""

    def test_removes_only_stale_entries(self, cache: SignedURLCache, clock: FakeClock) -> None:
        cache.put("old", "https://signed/old")
        clock.advance(minutes=30)
        cache.put("new", "https://signed/new")
        clock.advance(minutes=25)

        removed = cache.evict_expired()

        assert removed == 1
        assert "old" not in cache
        assert cache.get("new") == "https://signed/new"

    def test_sweep_is_noop_when_nothing_expired(self, cache: SignedURLCache) -> None:
        cache.put("a", "https://signed/a")
        assert cache.evict_expired() == 0
        assert len(cache) == 1

    def test_clear(self, cache: SignedURLCache) -> None:
        cache.put("a", "https://signed/a")
        cache.put("b", "https://signed/b")
        cache.clear()
        assert len(cache) == 0
