"""
Photo preparation and upload.

Meal photos are downscaled, re-encoded as WebP and stored under a per-user
prefix in the photo bucket before the meal row references them.
"""

import io
import time
from uuid import UUID

from PIL import Image

from tava.exceptions import DecodeError
from tava.services.image_cache.decoder import decode_image
from tava.settings import settings
from tava.storage.client import StorageClient
from tava.storage.models import UploadedPhoto
from tava.utils.logger import logger


def resize_to_fit(image: Image.Image, max_dimension: int = 1920) -> Image.Image:
    """Scale an image down so its longest side is at most ``max_dimension``.

    Images that already fit are returned unchanged; nothing is ever upscaled.
    """
    width, height = image.size
    longest = max(width, height)
    if longest <= max_dimension:
        return image

    ratio = max_dimension / longest
    new_size = (max(1, round(width * ratio)), max(1, round(height * ratio)))
    return image.resize(new_size, Image.Resampling.LANCZOS)


def compress_image(
    image: Image.Image | bytes,
    quality: int = 70,
    max_dimension: int = 1920,
) -> tuple[bytes, str]:
    """Resize and encode a photo for upload.

    Args:
        image: PIL image or encoded image bytes
        quality: Lossy compression quality (0-100)
        max_dimension: Longest allowed side in pixels

    Returns:
        Tuple of (encoded bytes, content type). WebP is preferred; JPEG is used
        when the Pillow build cannot encode WebP.

    Raises:
        DecodeError: If ``image`` is bytes that cannot be decoded
    """
    if isinstance(image, bytes):
        image = decode_image(image).image

    resized = resize_to_fit(image, max_dimension)
    if resized.mode not in ("RGB", "RGBA"):
        resized = resized.convert("RGB")

    buffer = io.BytesIO()
    try:
        resized.save(buffer, format="WEBP", quality=quality)
        return buffer.getvalue(), "image/webp"
    except (KeyError, OSError):
        logger.warning("WebP encoding unavailable, falling back to JPEG")

    buffer = io.BytesIO()
    resized.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue(), "image/jpeg"


def photo_storage_path(
    user_id: UUID | str,
    meal_id: UUID | None = None,
    collaborative_meal_id: UUID | None = None,
    timestamp: int | None = None,
    extension: str = "webp",
) -> str:
    """Build the bucket-relative path for a new meal photo.

    Format: ``meals/{user_id}/meal_{first 8 chars of meal id}_{unix timestamp}.{ext}``
    """
    meal = meal_id or collaborative_meal_id
    meal_identifier = str(meal).upper()[:8] if meal else "unknown"
    ts = timestamp if timestamp is not None else int(time.time())
    return f"meals/{user_id}/meal_{meal_identifier}_{ts}.{extension}"


class PhotoUploader:
    """Compresses meal photos and stores them in the photo bucket."""

    def __init__(
        self,
        client: StorageClient,
        bucket: str | None = None,
        quality: int | None = None,
        max_dimension: int | None = None,
    ):
        self._client = client
        self.bucket = bucket or settings.default_bucket
        self.quality = quality or settings.photo_quality
        self.max_dimension = max_dimension or settings.photo_max_dimension

    async def upload(
        self,
        image: Image.Image | bytes,
        user_id: UUID | str,
        meal_id: UUID | None = None,
        collaborative_meal_id: UUID | None = None,
    ) -> UploadedPhoto:
        """Compress and upload a photo.

        Returns:
            UploadedPhoto with the storage path and public URL

        Raises:
            DecodeError: If the photo bytes cannot be decoded
            AuthorizationError: If the bucket rejects the upload
            UploadError: On any other upload failure
        """
        try:
            content, content_type = compress_image(image, self.quality, self.max_dimension)
        except DecodeError as e:
            raise e.with_context(f"Failed to convert photo for upload: {e}")

        extension = "webp" if content_type == "image/webp" else "jpg"
        path = photo_storage_path(
            user_id,
            meal_id=meal_id,
            collaborative_meal_id=collaborative_meal_id,
            extension=extension,
        )
        url = await self._client.upload_object(self.bucket, path, content, content_type)
        return UploadedPhoto(storage_path=path, url=url)

    async def delete(self, storage_path: str) -> None:
        await self._client.delete_objects(self.bucket, [storage_path])
