"""Pydantic models for remote object store operations."""

from pydantic import BaseModel, Field


class FetchedObject(BaseModel):
    """Bytes downloaded from a signed or public object URL."""

    content: bytes = Field(repr=False)
    content_type: str | None = None
    status_code: int = 200
    headers: dict[str, str] = Field(default_factory=dict)


class UploadedPhoto(BaseModel):
    """Result of a successful photo upload."""

    storage_path: str
    url: str
