"""Photo fetch orchestrator used by the feed and profile screens."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Iterable

from tava.exceptions import DecodeError, StorageError
from tava.services.image_cache.decoder import decode_image
from tava.services.image_cache.disk import DiskResponseCache
from tava.services.image_cache.memory import MemoryImageCache
from tava.services.image_cache.models import CacheInfo, CachedImage
from tava.services.image_cache.signed_urls import SignedURLCache
from tava.storage.models import FetchedObject
from tava.storage.protocols import ObjectStore
from tava.utils.logger import logger

DEFAULT_BUCKET = "meal-photos"


class ImageCacheService:
    """Three-layer photo cache: memory, signed URLs, disk, then network.

    Lookup order for ``get_image()``:
    1. Memory hit by storage path -> return immediately
    2. Signed URL from cache, or minted by the object store
    3. Disk hit by signed URL -> decode, store in memory, return
    4. Download -> decode -> store in memory -> return -> background disk write

    Every failure (signing, download, decoding, timeout) is logged and reported
    as ``None`` so the caller renders a placeholder. Failures are never cached.
    """

    def __init__(
        self,
        store: ObjectStore,
        memory_cache: MemoryImageCache,
        signed_url_cache: SignedURLCache,
        disk_cache: DiskResponseCache,
        signed_url_expires_in: int = 3600,
        request_timeout: float = 20.0,
        preload_concurrency: int = 4,
        default_bucket: str = DEFAULT_BUCKET,
    ):
        """Initialize the service.

        Args:
            store: Remote object store used to sign URLs and download bytes
            memory_cache: Decoded images keyed by storage path
            signed_url_cache: Signed URLs keyed by storage path
            disk_cache: Raw responses keyed by signed URL
            signed_url_expires_in: Lifetime requested for minted URLs, in seconds
            request_timeout: Bound on each signing and download call, in seconds
            preload_concurrency: Maximum parallel loads during ``preload_images()``
            default_bucket: Bucket used when callers do not name one
        """
        if signed_url_cache.ttl.total_seconds() >= signed_url_expires_in:
            raise ValueError("Signed URLs must be refreshed before the remote link expires")

        self._store = store
        self._memory_cache = memory_cache
        self._signed_url_cache = signed_url_cache
        self._disk_cache = disk_cache
        self._signed_url_expires_in = signed_url_expires_in
        self._request_timeout = request_timeout
        self._preload_concurrency = preload_concurrency
        self._default_bucket = default_bucket
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._disk_write_tasks: set[asyncio.Task[None]] = set()
        self._preload_tasks: set[asyncio.Task[None]] = set()

    @property
    def memory_cache(self) -> MemoryImageCache:
        return self._memory_cache

    @property
    def signed_url_cache(self) -> SignedURLCache:
        return self._signed_url_cache

    @property
    def disk_cache(self) -> DiskResponseCache:
        return self._disk_cache

    @contextlib.asynccontextmanager
    async def _path_lock(self, storage_path: str) -> AsyncIterator[None]:
        """Hold the per-path lock; it is dropped once no request uses it."""
        lock = self._locks.get(storage_path)
        if lock is None:
            lock = self._locks[storage_path] = asyncio.Lock()
        self._lock_users[storage_path] = self._lock_users.get(storage_path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[storage_path] -= 1
            if self._lock_users[storage_path] == 0:
                del self._lock_users[storage_path]
                del self._locks[storage_path]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_image(self, storage_path: str, bucket: str | None = None) -> CachedImage | None:
        """Return the decoded photo at a storage path, or None if it cannot be loaded.

        Args:
            storage_path: Bucket-relative storage path
            bucket: Bucket name (defaults to the configured photo bucket)

        Returns:
            CachedImage, or None on any failure
        """
        bucket = bucket or self._default_bucket

        # 1. Memory hit
        cached = self._memory_cache.get(storage_path)
        if cached is not None:
            logger.debug(f"Memory hit for {storage_path}")
            return cached

        # Lock to coalesce concurrent misses for the same path
        async with self._path_lock(storage_path):
            cached = self._memory_cache.get(storage_path)
            if cached is not None:
                logger.debug(f"Memory hit for {storage_path} (after lock)")
                return cached

            try:
                return await self._load(storage_path, bucket)
            except StorageError as e:
                logger.warning(f"Failed to load {bucket}/{storage_path}: {e}")
            except DecodeError as e:
                logger.warning(f"Invalid image data for {storage_path}: {e}")
            except TimeoutError:
                logger.warning(
                    f"Timed out after {self._request_timeout}s loading {bucket}/{storage_path}"
                )
            except Exception as e:
                logger.opt(exception=True).error(
                    f"Unexpected error loading {bucket}/{storage_path}: {e}"
                )
            return None

    async def _load(self, storage_path: str, bucket: str) -> CachedImage:
        # 2. Signed URL
        signed_url = await self.get_signed_url(storage_path, bucket)

        # 3. Disk hit
        response = await self._disk_cache.alookup(signed_url)
        if response is not None:
            try:
                image = await asyncio.to_thread(decode_image, response.content)
            except DecodeError:
                logger.warning(f"Cached bytes for {storage_path} are not an image, refetching")
            else:
                logger.debug(f"Disk hit for {storage_path}")
                self._memory_cache.put(storage_path, image)
                return image

        # 4. Download
        fetched = await asyncio.wait_for(
            self._store.fetch_bytes(signed_url), timeout=self._request_timeout
        )
        image = await asyncio.to_thread(decode_image, fetched.content)

        self._memory_cache.put(storage_path, image)
        logger.info(f"Downloaded and cached {storage_path} ({len(fetched.content)} bytes)")
        self._schedule_disk_write(signed_url, fetched)
        return image

    async def get_signed_url(self, storage_path: str, bucket: str | None = None) -> str:
        """Return a valid signed URL for a path, minting a new one when needed.

        Raises:
            SigningError: If the object store refuses or fails to sign
            TimeoutError: If signing exceeds the request timeout
        """
        bucket = bucket or self._default_bucket
        cached = self._signed_url_cache.get(storage_path)
        if cached is not None:
            logger.debug(f"Signed URL cache hit for {storage_path}")
            return cached

        url = await asyncio.wait_for(
            self._store.create_signed_url(bucket, storage_path, self._signed_url_expires_in),
            timeout=self._request_timeout,
        )
        self._signed_url_cache.put(storage_path, url)
        logger.debug(f"Generated new signed URL for {storage_path}")
        return url

    def _schedule_disk_write(self, signed_url: str, fetched: FetchedObject) -> None:
        task = asyncio.create_task(self._write_to_disk_background(signed_url, fetched))
        self._disk_write_tasks.add(task)
        task.add_done_callback(self._disk_write_tasks.discard)

    async def _write_to_disk_background(self, signed_url: str, fetched: FetchedObject) -> None:
        await self._disk_cache.astore(
            signed_url,
            fetched.content,
            content_type=fetched.content_type,
            status_code=fetched.status_code,
            headers=fetched.headers,
        )

    async def flush_pending_writes(self) -> None:
        """Wait until every scheduled disk write has finished."""
        if self._disk_write_tasks:
            await asyncio.gather(*self._disk_write_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Preloading
    # ------------------------------------------------------------------

    def preload_images(
        self, storage_paths: Iterable[str], bucket: str | None = None
    ) -> asyncio.Task[None]:
        """Warm the caches for upcoming photos without waiting for them.

        Must be called from a running event loop. Results and failures are
        discarded; the returned task may be awaited or ignored.

        Args:
            storage_paths: Paths to load in the background
            bucket: Bucket name (defaults to the configured photo bucket)

        Returns:
            The background task performing the loads
        """
        task = asyncio.create_task(self._preload(list(storage_paths), bucket))
        self._preload_tasks.add(task)
        task.add_done_callback(self._preload_tasks.discard)
        return task

    async def _preload(self, storage_paths: list[str], bucket: str | None) -> None:
        semaphore = asyncio.Semaphore(self._preload_concurrency)

        async def load_one(storage_path: str) -> bool:
            async with semaphore:
                return await self.get_image(storage_path, bucket) is not None

        results = await asyncio.gather(
            *(load_one(path) for path in storage_paths), return_exceptions=True
        )
        loaded = sum(1 for result in results if result is True)
        logger.debug(f"Preloaded {loaded}/{len(storage_paths)} images")

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear_all_caches(self) -> None:
        """Drop memory, signed-URL and disk entries."""
        self._memory_cache.clear()
        self._signed_url_cache.clear()
        await self._disk_cache.aclear()
        logger.info("Cleared all image caches")

    def clear_expired_items(self) -> int:
        """Evict stale signed URLs. Memory and disk entries have no expiry of their own.

        Returns:
            Number of signed URLs removed
        """
        return self._signed_url_cache.evict_expired()

    async def housekeep_disk(self) -> int:
        """Let the disk cache drop responses past their retention window."""
        return await self._disk_cache.aexpire()

    async def get_cache_info(self) -> CacheInfo:
        return CacheInfo(
            memory_image_count=len(self._memory_cache),
            memory_bytes=self._memory_cache.current_bytes,
            disk_cache_size_bytes=await self._disk_cache.acurrent_usage_bytes(),
            signed_url_count=len(self._signed_url_cache),
        )

    async def shutdown(self) -> None:
        """Cancel preloads, finish pending disk writes and release the disk cache."""
        pending = list(self._preload_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} pending preloads")
        self._preload_tasks.clear()

        await self.flush_pending_writes()
        self._disk_write_tasks.clear()

        self._memory_cache.clear()
        self._disk_cache.close()
        logger.info("Image cache shutdown complete")
