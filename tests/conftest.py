"""Shared fixtures for photo cache tests."""

from datetime import timedelta
from pathlib import Path

import pytest

from tava.services.image_cache import (
    DiskResponseCache,
    ImageCacheService,
    MemoryImageCache,
    SignedURLCache,
)
from tests.fakes import FakeClock, FakeObjectStore, make_image_bytes


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def store(png_bytes: bytes) -> FakeObjectStore:
    store = FakeObjectStore()
    store.add("meal-photos", "meals/u1/photo1.jpg", png_bytes)
    store.add("meal-photos", "meals/u1/photo2.jpg", make_image_bytes(color="green"))
    store.add("meal-photos", "meals/u1/photo3.jpg", make_image_bytes(color="blue"))
    return store


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for the disk cache."""
    return tmp_path / "image_cache"


@pytest.fixture
def disk_cache(tmp_cache_dir: Path, clock: FakeClock):
    cache = DiskResponseCache(directory=tmp_cache_dir, size_limit=10 * 1024 * 1024, clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def service(
    store: FakeObjectStore, disk_cache: DiskResponseCache, clock: FakeClock
) -> ImageCacheService:
    """ImageCacheService wired to the fake store and clock."""
    return ImageCacheService(
        store=store,
        memory_cache=MemoryImageCache(max_bytes=1024 * 1024),
        signed_url_cache=SignedURLCache(ttl=timedelta(minutes=50), clock=clock),
        disk_cache=disk_cache,
        signed_url_expires_in=3600,
        request_timeout=1.0,
    )
