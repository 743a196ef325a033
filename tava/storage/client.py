"""
Supabase Storage client.

This module provides an async client for the Supabase Storage REST API, covering
the operations the photo cache needs (signed URLs, byte downloads) and the
upload/removal calls used when a meal photo is published.
"""

from typing import Any
from urllib.parse import quote

import httpx

from tava.exceptions import (
    AuthorizationError,
    FetchError,
    NotFoundError,
    SigningError,
    UploadError,
)
from tava.settings import settings
from tava.storage.models import FetchedObject
from tava.utils.logger import logger


def _quote_path(path: str) -> str:
    return quote(path.lstrip("/"), safe="/")


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_not_found(response: httpx.Response, detail: Any) -> bool:
    # Storage reports missing objects either as a 404 or as a 400 whose body says 404
    if response.status_code == 404:
        return True
    if isinstance(detail, dict):
        return str(detail.get("statusCode")) == "404" or detail.get("error") == "not_found"
    return False


class StorageClient:
    """Client for the Supabase Storage API.

    Implements the ``ObjectStore`` protocol used by the image cache.

    Example:
        ```python
        async with StorageClient("https://xyz.supabase.co", api_key="anon-key") as storage:
            url = await storage.create_signed_url("meal-photos", "meals/u1/photo1.jpg", 3600)
            photo = await storage.fetch_bytes(url)
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        log_requests: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the storage client.

        Args:
            base_url: Supabase project URL (e.g., "https://xyz.supabase.co")
            api_key: Project API key sent as ``apikey``
            access_token: User JWT; the API key is used as bearer token when omitted
            timeout: Per-request timeout in seconds
            log_requests: Enable request/response logging (default: False)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.storage_url = f"{self.base_url}/storage/v1"
        self.api_key = api_key if api_key is not None else settings.supabase_key
        self.log_requests = log_requests

        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
        }
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=timeout or settings.request_timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "StorageClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def set_access_token(self, access_token: str) -> None:
        """Switch the bearer token, e.g. after the user signs in."""
        self.client.headers["Authorization"] = f"Bearer {access_token}"

    def _log_request(self, method: str, url: str) -> None:
        if self.log_requests:
            logger.debug(f"Storage request: {method} {url}")

    def _log_response(self, response: httpx.Response) -> None:
        if self.log_requests:
            logger.debug(f"Storage response: {response.status_code} {response.url}")

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def create_signed_url(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        """Mint a signed URL for a private object.

        Args:
            bucket: Bucket name
            path: Storage path inside the bucket
            expires_in: Link lifetime in seconds

        Returns:
            Absolute signed URL

        Raises:
            AuthorizationError: If the bucket policy denies access
            NotFoundError: If the object does not exist
            SigningError: On any other failure, including timeouts
        """
        url = f"{self.storage_url}/object/sign/{bucket}/{_quote_path(path)}"
        self._log_request("POST", url)

        try:
            response = await self.client.post(url, json={"expiresIn": expires_in})
        except httpx.HTTPError as e:
            raise SigningError(f"Signing request failed for {bucket}/{path}: {e!s}") from e
        self._log_response(response)

        if response.status_code >= 400:
            detail = _error_detail(response)
            if _is_not_found(response, detail):
                raise NotFoundError(bucket, path)
            if response.status_code in (401, 403):
                raise AuthorizationError(
                    f"Access to {bucket}/{path} denied", status_code=response.status_code
                )
            raise SigningError(
                f"Signing failed for {bucket}/{path}: {detail}", status_code=response.status_code
            )

        try:
            signed = response.json()["signedURL"]
        except (ValueError, KeyError, TypeError) as e:
            raise SigningError(f"Malformed signing response for {bucket}/{path}") from e
        if not isinstance(signed, str) or not signed:
            raise SigningError(f"Signing response for {bucket}/{path} has no signedURL")

        if signed.startswith("http"):
            return signed
        return f"{self.storage_url}/{signed.lstrip('/')}"

    async def fetch_bytes(self, url: str) -> FetchedObject:
        """Download an object.

        Args:
            url: Absolute signed or public URL

        Returns:
            FetchedObject with content, content type and status code

        Raises:
            FetchError: On transport errors, timeouts or non-200 responses
        """
        self._log_request("GET", url)
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"Download failed: {e!s}") from e
        self._log_response(response)

        if response.status_code != 200:
            raise FetchError(
                f"Download returned HTTP {response.status_code}", status_code=response.status_code
            )

        return FetchedObject(
            content=response.content,
            content_type=response.headers.get("content-type"),
            status_code=response.status_code,
            headers=dict(response.headers),
        )

    def get_public_url(self, bucket: str, path: str) -> str:
        """Build the permanent URL of an object in a public bucket."""
        return f"{self.storage_url}/object/public/{bucket}/{_quote_path(path)}"

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def upload_object(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "image/webp",
        upsert: bool = False,
    ) -> str:
        """Upload an object and return its public URL.

        Raises:
            AuthorizationError: If row-level security rejects the upload
            UploadError: On any other failure
        """
        url = f"{self.storage_url}/object/{bucket}/{_quote_path(path)}"
        self._log_request("POST", url)

        try:
            response = await self.client.post(
                url,
                content=content,
                headers={"content-type": content_type, "x-upsert": str(upsert).lower()},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Upload failed for {bucket}/{path}: {e!s}") from e
        self._log_response(response)

        if response.status_code >= 400:
            detail = _error_detail(response)
            if response.status_code in (401, 403) or "row-level security" in str(detail):
                raise AuthorizationError(
                    "Photo upload not authorized - storage permissions need configuration",
                    status_code=403,
                )
            raise UploadError(
                f"Upload failed for {bucket}/{path}: {detail}", status_code=response.status_code
            )

        logger.info(f"Uploaded {len(content)} bytes to {bucket}/{path}")
        return self.get_public_url(bucket, path)

    async def delete_objects(self, bucket: str, paths: list[str]) -> None:
        """Remove objects from a bucket.

        Raises:
            UploadError: If the removal request fails
        """
        url = f"{self.storage_url}/object/{bucket}"
        self._log_request("DELETE", url)

        try:
            response = await self.client.request("DELETE", url, json={"prefixes": paths})
        except httpx.HTTPError as e:
            raise UploadError(f"Delete failed for {bucket}: {e!s}") from e
        self._log_response(response)

        if response.status_code >= 400:
            raise UploadError(
                f"Delete failed for {bucket}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        logger.info(f"Removed {len(paths)} objects from {bucket}")
