"""Persistent response cache keyed by the exact URL a photo was fetched from.

Read and write failures are logged and degrade to a cache miss; they never
prevent a photo from being returned. Size-bounded eviction is left to
``diskcache`` itself.
"""

import asyncio
import sqlite3
from datetime import timedelta
from pathlib import Path

import diskcache
from pydantic import ValidationError

from tava.services.image_cache.models import DiskResponse, ResponseMetadata
from tava.utils.common import Clock, utc_now
from tava.utils.logger import logger

_DISK_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class DiskResponseCache:
    """Downloaded bytes plus their HTTP envelope, persisted across restarts.

    The key is the signed URL rather than the storage path. Once a new signed
    URL is minted for a path, the blob stored under the old URL is no longer
    reachable and simply ages out.
    """

    def __init__(
        self,
        directory: Path,
        size_limit: int = 200 * 1024 * 1024,
        retention: timedelta = timedelta(days=7),
        clock: Clock = utc_now,
    ):
        """Initialize the cache.

        Args:
            directory: Application-private cache directory
            size_limit: Disk budget in bytes, enforced by diskcache
            retention: Entries are treated as expired after this long
            clock: Source of the ``stored_at`` timestamp
        """
        self._directory = directory
        self._retention = retention
        self._clock = clock
        self._cache = diskcache.Cache(
            str(directory),
            size_limit=size_limit,
            eviction_policy="least-recently-stored",
        )

    @property
    def directory(self) -> Path:
        return self._directory

    def __len__(self) -> int:
        return len(self._cache)

    def lookup(self, fetch_url: str) -> DiskResponse | None:
        """Return the cached response for a URL, or None on miss or read failure."""
        try:
            raw = self._cache.get(fetch_url)
        except _DISK_ERRORS:
            logger.opt(exception=True).warning("Disk cache read failed")
            return None
        if raw is None:
            return None

        try:
            content, metadata_json = raw
            return DiskResponse(
                content=content,
                metadata=ResponseMetadata.model_validate_json(metadata_json),
            )
        except (TypeError, ValueError, ValidationError):
            logger.warning("Discarding unreadable disk cache entry")
            self._cache.delete(fetch_url)
            return None

    def store(
        self,
        fetch_url: str,
        content: bytes,
        content_type: str | None = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> bool:
        """Persist a downloaded response. Non-fatal on failure.

        Returns:
            True if the entry was written
        """
        metadata = ResponseMetadata(
            status_code=status_code,
            content_type=content_type,
            headers=headers or {},
            stored_at=self._clock(),
        )
        try:
            return bool(
                self._cache.set(
                    fetch_url,
                    (content, metadata.model_dump_json()),
                    expire=self._retention.total_seconds(),
                )
            )
        except _DISK_ERRORS:
            logger.opt(exception=True).warning(f"Disk cache write failed ({len(content)} bytes)")
            return False

    def current_usage_bytes(self) -> int:
        """Estimated disk usage reported by the underlying store."""
        return int(self._cache.volume())

    def expire(self) -> int:
        """Drop entries older than the retention window.

        Returns:
            Number of entries removed
        """
        try:
            removed = int(self._cache.expire())
        except _DISK_ERRORS:
            logger.opt(exception=True).warning("Disk cache housekeeping failed")
            return 0
        if removed:
            logger.info(f"Disk cache housekeeping removed {removed} expired responses")
        return removed

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed
        """
        return int(self._cache.clear())

    def close(self) -> None:
        self._cache.close()

    # Async wrappers, blocking disk I/O runs in a worker thread

    async def alookup(self, fetch_url: str) -> DiskResponse | None:
        return await asyncio.to_thread(self.lookup, fetch_url)

    async def astore(
        self,
        fetch_url: str,
        content: bytes,
        content_type: str | None = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> bool:
        return await asyncio.to_thread(
            self.store, fetch_url, content, content_type, status_code, headers
        )

    async def aexpire(self) -> int:
        return await asyncio.to_thread(self.expire)

    async def aclear(self) -> int:
        return await asyncio.to_thread(self.clear)

    async def acurrent_usage_bytes(self) -> int:
        return await asyncio.to_thread(self.current_usage_bytes)
