#!/usr/bin/env python3
"""Tava CLI - inspect and manage the local photo cache."""

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from uuid import UUID

from tava.exceptions import ConfigError, TavaError
from tava.services.image_cache import (
    ImageCacheCleanupService,
    ImageCacheService,
    create_image_cache_service,
)
from tava.settings import settings
from tava.storage.client import StorageClient
from tava.utils.logger import logger


async def _with_service(action: Callable[[ImageCacheService], Awaitable[int]]) -> int:
    """Build a service against the configured project, run ``action`` and clean up."""
    store = StorageClient(timeout=settings.request_timeout)
    try:
        service = create_image_cache_service(settings, store=store)
    except ConfigError as e:
        logger.error(str(e))
        await store.close()
        return 1
    try:
        return int(await action(service))
    finally:
        await service.shutdown()
        await store.close()


async def show_info(service: ImageCacheService) -> int:
    info = await service.get_cache_info()
    print(info.describe())
    print(f"Cache directory: {service.disk_cache.directory}")
    return 0


async def clear_caches(service: ImageCacheService) -> int:
    await service.clear_all_caches()
    return 0


async def run_cleanup(service: ImageCacheService) -> int:
    cleanup = ImageCacheCleanupService(service)
    expired_urls, expired_disk = await cleanup.cleanup_once()
    print(f"Removed {expired_urls} signed URLs and {expired_disk} disk responses")
    return 0


async def fetch_image(
    service: ImageCacheService, storage_path: str, bucket: str, output: str | None
) -> int:
    cached = await service.get_image(storage_path, bucket)
    if cached is None:
        logger.error(f"Could not load {bucket}/{storage_path}")
        return 1

    print(f"{storage_path}: {cached.width}x{cached.height} {cached.format or 'unknown'}")
    if output:
        await asyncio.to_thread(cached.image.save, output)
        logger.info(f"Saved image to {output}")
    return 0


async def preload(service: ImageCacheService, storage_paths: list[str], bucket: str) -> int:
    await service.preload_images(storage_paths, bucket)
    info = await service.get_cache_info()
    print(info.describe())
    return 0


async def upload_photo(path: str, user_id: str, meal_id: str | None, bucket: str) -> int:
    from tava.services.photos import PhotoUploader

    content = Path(path).read_bytes()
    async with StorageClient(timeout=settings.request_timeout) as client:
        uploader = PhotoUploader(client, bucket=bucket)
        try:
            photo = await uploader.upload(
                content, user_id=user_id, meal_id=UUID(meal_id) if meal_id else None
            )
        except TavaError as e:
            logger.error(f"Upload failed: {e}")
            return 1
    print(f"{photo.storage_path} -> {photo.url}")
    return 0


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog="tava-cache", description="Tava photo cache utility")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("info", help="Show cache statistics")
    subparsers.add_parser("clear", help="Clear all caches")
    subparsers.add_parser("cleanup", help="Evict expired signed URLs and disk responses")

    get_parser = subparsers.add_parser("get", help="Load a photo through the cache")
    get_parser.add_argument("path", help="Storage path of the photo")
    get_parser.add_argument("--bucket", default=settings.default_bucket, help="Bucket name")
    get_parser.add_argument("--output", default=None, help="Write the decoded image to a file")

    preload_parser = subparsers.add_parser("preload", help="Warm the cache for several photos")
    preload_parser.add_argument("paths", nargs="+", help="Storage paths to preload")
    preload_parser.add_argument("--bucket", default=settings.default_bucket, help="Bucket name")

    upload_parser = subparsers.add_parser("upload", help="Compress and upload a meal photo")
    upload_parser.add_argument("file", help="Image file to upload")
    upload_parser.add_argument("--user-id", required=True, help="Owner user ID")
    upload_parser.add_argument("--meal-id", default=None, help="Meal ID the photo belongs to")
    upload_parser.add_argument("--bucket", default=settings.default_bucket, help="Bucket name")

    args = parser.parse_args()

    if args.command == "info":
        code = asyncio.run(_with_service(show_info))
    elif args.command == "clear":
        code = asyncio.run(_with_service(clear_caches))
    elif args.command == "cleanup":
        code = asyncio.run(_with_service(run_cleanup))
    elif args.command == "get":
        code = asyncio.run(
            _with_service(lambda s: fetch_image(s, args.path, args.bucket, args.output))
        )
    elif args.command == "preload":
        code = asyncio.run(_with_service(lambda s: preload(s, args.paths, args.bucket)))
    elif args.command == "upload":
        code = asyncio.run(upload_photo(args.file, args.user_id, args.meal_id, args.bucket))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
