"""Models for the photo cache."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


@dataclass(frozen=True, slots=True)
class SignedURLEntry:
    """A signed URL minted for a storage path.

    Replaced wholesale on refresh, never mutated.
    """

    storage_path: str
    url: str
    created_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(slots=True)
class CachedImage:
    """Decoded photo kept in the in-memory cache.

    Not a Pydantic model because PIL images are not serializable.
    """

    image: Any = field(repr=False)
    width: int
    height: int
    format: str | None
    cost: int  # Decoded size in bytes, used for memory accounting


class ResponseMetadata(BaseModel):
    """HTTP envelope stored next to the raw bytes on disk."""

    status_code: int = 200
    content_type: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    stored_at: datetime


class DiskResponse(BaseModel):
    """Downloaded bytes plus the envelope needed to replay the response."""

    content: bytes = Field(repr=False)
    metadata: ResponseMetadata


class CacheInfo(BaseModel):
    """Cache statistics for diagnostics."""

    memory_image_count: int
    memory_bytes: int
    disk_cache_size_bytes: int
    signed_url_count: int

    def describe(self) -> str:
        return (
            "Cache Info:\n"
            f"- Memory Images: {self.memory_image_count} ({_format_bytes(self.memory_bytes)})\n"
            f"- Disk Cache: {_format_bytes(self.disk_cache_size_bytes)}\n"
            f"- Signed URLs: {self.signed_url_count}"
        )


def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("bytes", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "bytes" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} bytes"
