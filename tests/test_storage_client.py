"""Unit tests for StorageClient against a mocked Supabase Storage API."""

import json

import httpx
import pytest
import respx

from tava.exceptions import (
    AuthorizationError,
    FetchError,
    NotFoundError,
    SigningError,
    UploadError,
)
from tava.storage import StorageClient

BASE = "https://project.supabase.test"
STORAGE = f"{BASE}/storage/v1"
SIGN_URL = f"{STORAGE}/object/sign/meal-photos/meals/u1/photo1.jpg"


@pytest.fixture
def client() -> StorageClient:
    return StorageClient(base_url=BASE, api_key="anon-key", timeout=5)


class TestCreateSignedURL:
    @pytest.mark.asyncio
    async def test_relative_signed_url_made_absolute(self, client: StorageClient) -> None:
        with respx.mock:
            route = respx.post(SIGN_URL).mock(
                return_value=httpx.Response(
                    200,
                    json={"signedURL": "/object/sign/meal-photos/meals/u1/photo1.jpg?token=t1"},
                )
            )
            url = await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg", 3600)

        assert url == f"{STORAGE}/object/sign/meal-photos/meals/u1/photo1.jpg?token=t1"
        request = route.calls.last.request
        assert json.loads(request.content) == {"expiresIn": 3600}
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_path_is_quoted(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(f"{STORAGE}/object/sign/meal-photos/meals/u1/my%20photo.jpg").mock(
                return_value=httpx.Response(200, json={"signedURL": "/object/sign/x?token=t"})
            )
            url = await client.create_signed_url("meal-photos", "meals/u1/my photo.jpg")

        assert url == f"{STORAGE}/object/sign/x?token=t"

    @pytest.mark.asyncio
    async def test_not_found_status(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(return_value=httpx.Response(404))
            with pytest.raises(NotFoundError) as exc_info:
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

        assert exc_info.value.path == "meals/u1/photo1.jpg"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_not_found_in_error_body(self, client: StorageClient) -> None:
        """Storage reports missing objects as a 400 with statusCode 404 in the body."""
        with respx.mock:
            respx.post(SIGN_URL).mock(
                return_value=httpx.Response(
                    400,
                    json={"statusCode": "404", "error": "not_found", "message": "Object not found"},
                )
            )
            with pytest.raises(NotFoundError):
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

    @pytest.mark.asyncio
    async def test_forbidden(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(return_value=httpx.Response(403, json={"error": "denied"}))
            with pytest.raises(AuthorizationError):
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

    @pytest.mark.asyncio
    async def test_server_error(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(return_value=httpx.Response(500, text="boom"))
            with pytest.raises(SigningError) as exc_info:
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

        assert not isinstance(exc_info.value, (AuthorizationError, NotFoundError))
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(side_effect=httpx.ConnectError("Connection refused"))
            with pytest.raises(SigningError):
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

    @pytest.mark.asyncio
    async def test_malformed_response(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(return_value=httpx.Response(200, json={"unexpected": 1}))
            with pytest.raises(SigningError):
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

    @pytest.mark.asyncio
    async def test_null_signed_url(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(SIGN_URL).mock(return_value=httpx.Response(200, json={"signedURL": None}))
            with pytest.raises(SigningError):
                await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")


class TestFetchBytes:
    @pytest.mark.asyncio
    async def test_successful_fetch(self, client: StorageClient) -> None:
        url = f"{STORAGE}/object/sign/meal-photos/a.jpg?token=t1"
        with respx.mock:
            respx.get(url).mock(
                return_value=httpx.Response(
                    200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"}
                )
            )
            fetched = await client.fetch_bytes(url)

        assert fetched.content == b"\xff\xd8jpeg"
        assert fetched.content_type == "image/jpeg"
        assert fetched.status_code == 200

    @pytest.mark.asyncio
    async def test_non_200_raises(self, client: StorageClient) -> None:
        url = f"{STORAGE}/object/sign/meal-photos/a.jpg?token=expired"
        with respx.mock:
            respx.get(url).mock(return_value=httpx.Response(400))
            with pytest.raises(FetchError) as exc_info:
                await client.fetch_bytes(url)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_timeout_raises(self, client: StorageClient) -> None:
        url = f"{STORAGE}/object/sign/meal-photos/a.jpg?token=t1"
        with respx.mock:
            respx.get(url).mock(side_effect=httpx.ReadTimeout("timed out"))
            with pytest.raises(FetchError):
                await client.fetch_bytes(url)


class TestWritePath:
    def test_public_url(self, client: StorageClient) -> None:
        assert (
            client.get_public_url("meal-photos", "meals/u1/a.webp")
            == f"{STORAGE}/object/public/meal-photos/meals/u1/a.webp"
        )

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, client: StorageClient) -> None:
        with respx.mock:
            route = respx.post(f"{STORAGE}/object/meal-photos/meals/u1/a.webp").mock(
                return_value=httpx.Response(200, json={"Key": "meal-photos/meals/u1/a.webp"})
            )
            url = await client.upload_object("meal-photos", "meals/u1/a.webp", b"webp")

        assert url == f"{STORAGE}/object/public/meal-photos/meals/u1/a.webp"
        request = route.calls.last.request
        assert request.content == b"webp"
        assert request.headers["content-type"] == "image/webp"
        assert request.headers["x-upsert"] == "false"

    @pytest.mark.asyncio
    async def test_upload_rls_denied(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(f"{STORAGE}/object/meal-photos/meals/u1/a.webp").mock(
                return_value=httpx.Response(
                    400,
                    json={"message": "new row violates row-level security policy"},
                )
            )
            with pytest.raises(AuthorizationError):
                await client.upload_object("meal-photos", "meals/u1/a.webp", b"webp")

    @pytest.mark.asyncio
    async def test_upload_failure(self, client: StorageClient) -> None:
        with respx.mock:
            respx.post(f"{STORAGE}/object/meal-photos/meals/u1/a.webp").mock(
                return_value=httpx.Response(500)
            )
            with pytest.raises(UploadError):
                await client.upload_object("meal-photos", "meals/u1/a.webp", b"webp")

    @pytest.mark.asyncio
    async def test_delete_sends_prefixes(self, client: StorageClient) -> None:
        with respx.mock:
            route = respx.delete(f"{STORAGE}/object/meal-photos").mock(
                return_value=httpx.Response(200, json=[])
            )
            await client.delete_objects("meal-photos", ["meals/u1/a.webp"])

        assert json.loads(route.calls.last.request.content) == {"prefixes": ["meals/u1/a.webp"]}

    @pytest.mark.asyncio
    async def test_set_access_token(self, client: StorageClient) -> None:
        client.set_access_token("user-jwt")
        with respx.mock:
            route = respx.post(SIGN_URL).mock(
                return_value=httpx.Response(200, json={"signedURL": "/object/sign/x?token=t"})
            )
            await client.create_signed_url("meal-photos", "meals/u1/photo1.jpg")

        assert route.calls.last.request.headers["authorization"] == "Bearer user-jwt"
