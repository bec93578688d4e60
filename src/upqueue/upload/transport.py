"""Transport capability consumed by the orchestrator, plus an httpx PUT client.

The orchestrator only needs something with an ``upload`` coroutine method.
Test doubles and real network clients both satisfy :class:`Transport`.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, Protocol

import httpx

from upqueue.models import UploadConfig
from upqueue.upload.exceptions import TransportError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Transport(Protocol):
    """Moves one chunk of bytes to one destination.

    Compatibility contract: ``on_progress(loaded, total)`` must be called
    with *absolute*, non-decreasing byte counts for the chunk being sent.
    Aggregated progress of partitioned uploads is only monotonic when every
    transport honours this.  Failures are signalled by raising.
    """

    async def upload(
        self, chunk: bytes, destination: str, on_progress: ProgressCallback
    ) -> Any: ...


class HttpTransport:
    """HTTP PUT transport built on ``httpx.AsyncClient``.

    The chunk is streamed in ``config.chunk_size`` blocks; progress is
    reported as each block is handed to the connection.

    Usage::

        async with HttpTransport(config) as transport:
            data = await transport.upload(payload, "https://...", print)

    Args:
        config: Upload configuration (block size, timeout, headers, token).
        client: Optional pre-built client.  An injected client is not
            closed by this transport.
    """

    def __init__(
        self,
        config: UploadConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or UploadConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def _build_headers(self, size: int) -> dict[str, str]:
        headers = {
            "Content-Type": "application/octet-stream",
            **self._config.headers,
            "Content-Length": str(size),
        }
        if self._config.auth_token:
            headers["Authorization"] = f"Bearer {self._config.auth_token}"
        return headers

    async def _stream(
        self, chunk: bytes, on_progress: ProgressCallback
    ) -> AsyncIterator[bytes]:
        view = memoryview(chunk)
        total = len(view)
        block = self._config.chunk_size
        sent = 0
        while sent < total:
            piece = bytes(view[sent : sent + block])
            yield piece
            sent += len(piece)
            on_progress(sent, total)

    async def upload(
        self, chunk: bytes, destination: str, on_progress: ProgressCallback
    ) -> Any:
        """PUT *chunk* to *destination* and return the decoded response body.

        JSON responses are parsed; anything else is returned as text.

        Raises:
            TransportError: On a non-2xx response or a network failure.
        """
        size = len(chunk)
        logger.debug("PUT %s (%d bytes)", destination, size)

        try:
            response = await self._client.put(
                destination,
                content=self._stream(chunk, on_progress),
                headers=self._build_headers(size),
            )
        except httpx.HTTPError as exc:
            raise TransportError(
                f"PUT {destination} failed: {exc}", destination
            ) from exc

        if response.is_error:
            raise TransportError(
                f"PUT {destination} returned HTTP {response.status_code}",
                destination,
                status_code=response.status_code,
            )

        if size == 0:
            on_progress(0, 0)

        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            return response.json()
        return response.text
