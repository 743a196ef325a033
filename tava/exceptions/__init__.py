from tava.exceptions.domain import (
    AuthorizationError,
    ConfigError,
    DecodeError,
    FetchError,
    NotFoundError,
    SigningError,
    StorageError,
    TavaError,
    UploadError,
)

__all__ = [
    "AuthorizationError",
    "ConfigError",
    "DecodeError",
    "FetchError",
    "NotFoundError",
    "SigningError",
    "StorageError",
    "TavaError",
    "UploadError",
]
