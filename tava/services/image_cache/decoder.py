"""Decoding of downloaded photo bytes with Pillow."""

import io
import struct

from PIL import Image, UnidentifiedImageError

from tava.exceptions import DecodeError
from tava.services.image_cache.models import CachedImage


def decode_image(content: bytes) -> CachedImage:
    """Decode raw bytes into an image ready for display.

    Args:
        content: Encoded image bytes (JPEG, PNG, WebP, ...)

    Returns:
        CachedImage with the fully loaded PIL image and its decoded size

    Raises:
        DecodeError: If the bytes are empty or not a decodable image
    """
    if not content:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(content)) as opened:
            fmt = opened.format
            opened.load()
            image = opened.copy()
    except (
        UnidentifiedImageError,
        OSError,
        ValueError,
        SyntaxError,
        EOFError,
        struct.error,
        Image.DecompressionBombError,
    ) as e:
        raise DecodeError(f"Invalid image data: {e!s}") from e

    return CachedImage(
        image=image,
        width=image.width,
        height=image.height,
        format=fmt,
        cost=image.width * image.height * len(image.getbands()),
    )
