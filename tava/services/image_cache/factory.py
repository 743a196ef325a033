"""Construction of a fully wired ImageCacheService from settings."""

from datetime import timedelta

from tava.exceptions import ConfigError
from tava.services.image_cache.disk import DiskResponseCache
from tava.services.image_cache.memory import MemoryImageCache
from tava.services.image_cache.service import ImageCacheService
from tava.services.image_cache.signed_urls import SignedURLCache
from tava.settings import Settings, get_settings
from tava.storage.client import StorageClient
from tava.storage.protocols import ObjectStore
from tava.utils.common import Clock, utc_now


def create_image_cache_service(
    config: Settings | None = None,
    store: ObjectStore | None = None,
    clock: Clock = utc_now,
) -> ImageCacheService:
    """Build the photo cache and its three layers.

    Args:
        config: Settings to use (defaults to the global settings)
        store: Object store client (defaults to a StorageClient for the configured project)
        clock: Time source shared by the expiring caches

    Returns:
        Ready-to-use ImageCacheService

    Raises:
        ConfigError: If the cache directory cannot be created
    """
    config = config or get_settings()
    cache_dir = config.get_cache_dir()
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create image cache directory {cache_dir}: {e}") from e

    if store is None:
        store = StorageClient(
            base_url=config.supabase_url,
            api_key=config.supabase_key,
            timeout=config.request_timeout,
        )

    return ImageCacheService(
        store=store,
        memory_cache=MemoryImageCache(max_bytes=config.memory_cache_bytes),
        signed_url_cache=SignedURLCache(
            ttl=timedelta(seconds=config.signed_url_cache_ttl),
            max_entries=config.signed_url_cache_limit,
            overflow_margin=config.signed_url_overflow_margin,
            clock=clock,
        ),
        disk_cache=DiskResponseCache(
            directory=cache_dir,
            size_limit=config.disk_cache_bytes,
            retention=timedelta(days=config.disk_cache_retention_days),
            clock=clock,
        ),
        signed_url_expires_in=config.signed_url_remote_ttl,
        request_timeout=config.request_timeout,
        preload_concurrency=config.preload_concurrency,
        default_bucket=config.default_bucket,
    )
