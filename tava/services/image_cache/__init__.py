"""Photo cache: memory, signed-URL and disk layers in front of the object store."""

from tava.services.image_cache.cleanup import ImageCacheCleanupService
from tava.services.image_cache.decoder import decode_image
from tava.services.image_cache.disk import DiskResponseCache
from tava.services.image_cache.factory import create_image_cache_service
from tava.services.image_cache.memory import MemoryImageCache
from tava.services.image_cache.models import (
    CachedImage,
    CacheInfo,
    DiskResponse,
    ResponseMetadata,
    SignedURLEntry,
)
from tava.services.image_cache.service import DEFAULT_BUCKET, ImageCacheService
from tava.services.image_cache.signed_urls import SignedURLCache

__all__ = [
    "DEFAULT_BUCKET",
    "CacheInfo",
    "CachedImage",
    "DiskResponse",
    "DiskResponseCache",
    "ImageCacheCleanupService",
    "ImageCacheService",
    "MemoryImageCache",
    "ResponseMetadata",
    "SignedURLCache",
    "SignedURLEntry",
    "create_image_cache_service",
    "decode_image",
]
