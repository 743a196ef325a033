"""Remote object store access: Supabase Storage REST client and protocol."""

from tava.storage.client import StorageClient
from tava.storage.models import FetchedObject, UploadedPhoto
from tava.storage.protocols import ObjectStore

__all__ = [
    "FetchedObject",
    "ObjectStore",
    "StorageClient",
    "UploadedPhoto",
]
