"""Signed-URL cache so a storage path is not re-signed on every image request."""

import threading
from datetime import datetime, timedelta

from tava.services.image_cache.models import SignedURLEntry
from tava.utils.common import Clock, utc_now
from tava.utils.logger import logger


class SignedURLCache:
    """Maps storage paths to signed URLs until shortly before the links expire.

    The TTL must be shorter than the lifetime of the links minted by the object
    store, so a cached URL is always refreshed before the remote link dies.
    Stale entries are never returned but stay resident until ``evict_expired()``
    sweeps them or a capacity eviction removes them.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=50),
        max_entries: int = 1000,
        overflow_margin: int = 100,
        clock: Clock = utc_now,
    ):
        """Initialize the cache.

        Args:
            ttl: How long a minted URL is reused
            max_entries: Maximum number of cached URLs
            overflow_margin: Extra entries removed on overflow so eviction
                does not run on every insert
            clock: Source of the current time
        """
        self._ttl = ttl
        self._max_entries = max_entries
        self._overflow_margin = overflow_margin
        self._clock = clock
        self._entries: dict[str, SignedURLEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, storage_path: object) -> bool:
        return storage_path in self._entries

    def get(self, storage_path: str, now: datetime | None = None) -> str | None:
        """Return the cached URL if it is still valid, None otherwise."""
        entry = self._entries.get(storage_path)
        if entry is None:
            return None
        if not entry.is_valid(now or self._clock()):
            return None
        return entry.url

    def put(self, storage_path: str, url: str, now: datetime | None = None) -> SignedURLEntry:
        """Store a freshly minted URL, evicting the oldest entries on overflow.

        Args:
            storage_path: Bucket-relative storage path
            url: Signed URL
            now: Creation time (defaults to the clock)

        Returns:
            The stored entry
        """
        now = now or self._clock()
        entry = SignedURLEntry(
            storage_path=storage_path,
            url=url,
            created_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            if storage_path not in self._entries and len(self._entries) >= self._max_entries:
                self._evict_oldest()
            self._entries[storage_path] = entry
        return entry

    def _evict_oldest(self) -> int:
        """Drop the oldest entries by created_at (caller holds the lock)."""
        count = len(self._entries) - self._max_entries + self._overflow_margin
        if count <= 0:
            return 0
        oldest = sorted(self._entries.values(), key=lambda e: e.created_at)[:count]
        for entry in oldest:
            del self._entries[entry.storage_path]
        logger.info(f"Removed {len(oldest)} old signed URLs")
        return len(oldest)

    def evict_expired(self, now: datetime | None = None) -> int:
        """Remove every entry with ``expires_at <= now``.

        Returns:
            Number of entries removed
        """
        now = now or self._clock()
        with self._lock:
            expired = [path for path, e in self._entries.items() if not e.is_valid(now)]
            for path in expired:
                del self._entries[path]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired signed URLs")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
