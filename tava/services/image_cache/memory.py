"""In-memory cache of decoded photos, bounded by decoded byte size."""

import threading

from cachetools import LRUCache

from tava.services.image_cache.models import CachedImage
from tava.utils.logger import logger


def _image_cost(entry: CachedImage) -> int:
    return entry.cost


class MemoryImageCache:
    """LRU cache of decoded images keyed by storage path.

    Photos at a storage path are immutable once uploaded, so entries never
    expire; they leave only under capacity pressure or on ``clear()``.
    """

    def __init__(self, max_bytes: int = 50 * 1024 * 1024):
        """Initialize the cache.

        Args:
            max_bytes: Budget for the total decoded size of resident images
        """
        self._cache: LRUCache[str, CachedImage] = LRUCache(
            maxsize=max_bytes, getsizeof=_image_cost
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, storage_path: object) -> bool:
        return storage_path in self._cache

    @property
    def current_bytes(self) -> int:
        return int(self._cache.currsize)

    @property
    def max_bytes(self) -> int:
        return int(self._cache.maxsize)

    def get(self, storage_path: str) -> CachedImage | None:
        # LRUCache.get() reorders entries, so reads take the lock too
        with self._lock:
            return self._cache.get(storage_path)

    def put(self, storage_path: str, image: CachedImage) -> bool:
        """Insert or replace an image, evicting least recently used entries as needed.

        Returns:
            False if the image alone exceeds the whole budget and was not cached
        """
        with self._lock:
            try:
                self._cache[storage_path] = image
            except ValueError:
                logger.warning(
                    f"Image {storage_path} ({image.cost} bytes) exceeds memory cache budget"
                )
                return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
