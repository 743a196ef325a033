"""Protocol for the remote object store consumed by the image cache."""

from typing import Protocol

from tava.storage.models import FetchedObject


class ObjectStore(Protocol):
    """
    Remote object store holding photo bytes at bucket-relative storage paths.

    Implementations must raise:
    - ``AuthorizationError`` when the bucket policy denies access
    - ``NotFoundError`` when the storage path does not exist
    - ``SigningError`` for any other signing failure
    - ``FetchError`` for transport failures or non-200 responses when fetching
    """

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        """
        Mint a time-limited URL granting read access to a private object.

        Args:
            bucket: Bucket name
            path: Storage path inside the bucket
            expires_in: Link lifetime in seconds

        Returns:
            Absolute signed URL
        """
        ...

    async def fetch_bytes(self, url: str) -> FetchedObject:
        """
        Download an object with ordinary HTTP GET semantics.

        Args:
            url: Absolute URL to fetch

        Returns:
            Downloaded bytes with content type and status code
        """
        ...
