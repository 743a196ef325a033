"""
Domain exceptions for the photo storage and caching layer.

Storage and decoding errors are raised by the storage client and the decoder
and are absorbed at the image cache boundary, where they become "no image".
"""

from typing import Self


class TavaError(Exception):
    """Base exception for all Tava-specific errors."""

    def with_context(self, detail: str) -> Self:
        """Add context information to the exception.

        Args:
            detail: Additional details about the error

        Returns:
            Self with updated message
        """
        self.args = (detail,)
        return self


class ConfigError(TavaError):
    """Error related to configuration issues."""

    pass


# Remote object store
class StorageError(TavaError):
    """Base exception for remote object store failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SigningError(StorageError):
    """Raised when the object store cannot produce a signed URL."""

    pass


class AuthorizationError(SigningError):
    """Raised when the bucket policy denies access to an object."""

    pass


class NotFoundError(SigningError):
    """Raised when the requested storage path does not exist."""

    def __init__(self, bucket: str, path: str) -> None:
        self.bucket = bucket
        self.path = path
        super().__init__(f"Object '{path}' not found in bucket '{bucket}'", status_code=404)


class FetchError(StorageError):
    """Raised on a network error or non-success status while downloading bytes."""

    pass


class UploadError(StorageError):
    """Raised when an object cannot be uploaded or removed."""

    pass


# Images
class DecodeError(TavaError):
    """Raised when downloaded bytes are not a decodable image."""

    pass
