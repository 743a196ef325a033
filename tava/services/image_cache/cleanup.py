"""Background maintenance for the photo cache."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from tava.services.image_cache.service import ImageCacheService
from tava.settings import settings
from tava.utils.logger import logger

ERROR_RETRY_DELAY = 60


class ImageCacheCleanupService:
    """Periodic sweeps of the photo cache.

    Runs two ``asyncio.Task`` loops: stale signed URLs are evicted every
    ``signed_url_interval`` seconds, and the disk cache drops responses past
    their retention window every ``disk_interval`` seconds.
    """

    def __init__(
        self,
        service: ImageCacheService,
        signed_url_interval: float | None = None,
        disk_interval: float | None = None,
    ):
        """Initialize the cleanup service.

        Args:
            service: The ImageCacheService whose caches are swept
            signed_url_interval: Interval between signed-URL sweeps in seconds
            disk_interval: Interval between disk housekeeping runs in seconds
        """
        self._service = service
        self.signed_url_interval = signed_url_interval or settings.signed_url_cleanup_interval
        self.disk_interval = disk_interval or settings.disk_cleanup_interval
        self.is_running = False
        self._tasks: list[asyncio.Task[None]] = []

    async def start(self) -> None:
        """Start both background loops."""
        if self.is_running:
            logger.warning("Image cache cleanup service already running")
            return

        self.is_running = True
        self._tasks = [
            asyncio.create_task(
                self._loop("signed URL sweep", self._sweep_signed_urls, self.signed_url_interval)
            ),
            asyncio.create_task(
                self._loop("disk housekeeping", self._service.housekeep_disk, self.disk_interval)
            ),
        ]
        logger.info("Image cache cleanup service started")

    async def stop(self) -> None:
        """Stop both background loops."""
        self.is_running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Image cache cleanup service stopped")

    async def _loop(
        self, name: str, action: Callable[[], Awaitable[int]], interval: float
    ) -> None:
        """Run ``action`` every ``interval`` seconds until stopped.

        The first run happens one interval after start.
        """
        while self.is_running:
            try:
                await asyncio.sleep(interval)
                await action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in image cache {name}: {e}")
                await asyncio.sleep(ERROR_RETRY_DELAY)

    async def _sweep_signed_urls(self) -> int:
        return self._service.clear_expired_items()

    async def cleanup_once(self) -> tuple[int, int]:
        """Perform a single run of both passes (for manual / testing use).

        Returns:
            Tuple of (expired_signed_urls, expired_disk_entries)
        """
        expired_urls = await self._sweep_signed_urls()
        expired_disk = await self._service.housekeep_disk()
        logger.info(
            f"Image cache cleanup: removed {expired_urls} signed URLs, "
            f"{expired_disk} disk responses"
        )
        return expired_urls, expired_disk
