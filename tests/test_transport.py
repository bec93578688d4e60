"""Tests for HttpTransport against httpx.MockTransport (no network)."""

from __future__ import annotations

import httpx
import pytest

from upqueue.models import UploadConfig
from upqueue.upload.exceptions import TransportError
from upqueue.upload.transport import HttpTransport

URL = "https://upload.example/bucket/object"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpTransport:
    async def test_put_returns_text_body(self):
        received = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received["method"] = request.method
            received["body"] = request.content
            received["headers"] = request.headers
            return httpx.Response(200, text=str(request.url))

        async with _client(handler) as client:
            transport = HttpTransport(UploadConfig(chunk_size=4), client=client)
            data = await transport.upload(b"0123456789", URL, lambda loaded, total: None)

        assert data == URL
        assert received["method"] == "PUT"
        assert received["body"] == b"0123456789"
        assert received["headers"]["content-length"] == "10"
        assert received["headers"]["content-type"] == "application/octet-stream"
        assert "authorization" not in received["headers"]

    async def test_json_response_is_parsed(self):
        def handler(request):
            return httpx.Response(200, json={"etag": "abc"})

        async with _client(handler) as client:
            data = await HttpTransport(client=client).upload(b"x", URL, lambda *a: None)

        assert data == {"etag": "abc"}

    async def test_progress_is_reported_per_block(self):
        progress: list[tuple[int, int]] = []

        def handler(request):
            return httpx.Response(200, text="ok")

        async with _client(handler) as client:
            transport = HttpTransport(UploadConfig(chunk_size=4), client=client)
            await transport.upload(b"0123456789", URL, lambda *a: progress.append(a))

        assert progress == [(4, 10), (8, 10), (10, 10)]

    async def test_zero_byte_upload_reports_completion(self):
        progress: list[tuple[int, int]] = []

        def handler(request):
            return httpx.Response(201, text="")

        async with _client(handler) as client:
            await HttpTransport(client=client).upload(b"", URL, lambda *a: progress.append(a))

        assert progress == [(0, 0)]

    async def test_token_and_extra_headers(self):
        received = {}

        def handler(request):
            received.update(request.headers)
            return httpx.Response(200, text="ok")

        config = UploadConfig(auth_token="s3cret", headers={"x-amz-acl": "private"})
        async with _client(handler) as client:
            await HttpTransport(config, client=client).upload(b"abc", URL, lambda *a: None)

        assert received["authorization"] == "Bearer s3cret"
        assert received["x-amz-acl"] == "private"

    async def test_http_error_raises_transport_error(self):
        def handler(request):
            return httpx.Response(400, text="error")

        async with _client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpTransport(client=client).upload(b"abc", URL, lambda *a: None)

        assert exc_info.value.status_code == 400
        assert exc_info.value.destination == URL

    async def test_network_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpTransport(client=client).upload(b"abc", URL, lambda *a: None)

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_injected_client_is_left_open(self):
        client = _client(lambda request: httpx.Response(200))
        async with HttpTransport(client=client):
            pass
        assert not client.is_closed
        await client.aclose()

    async def test_owned_client_is_closed(self):
        transport = HttpTransport()
        await transport.close()
        assert transport._client.is_closed
