"""Shared pytest fixtures for upqueue tests.

Provides a scripted in-memory transport that records how many uploads are
in flight, plus payload fixtures used across the orchestrator tests.
"""

from __future__ import annotations

import asyncio

import pytest

from upqueue.models import UploadConfig
from upqueue.upload.exceptions import TransportError

TEN_MIB = 10 * 1024 * 1024


class FakeTransport:
    """In-memory transport that echoes the destination URL back.

    Reports progress in ``steps`` increments with ``delay`` seconds between
    them.  Destinations containing ``error`` (or listed in *fail_on*) fail
    with an HTTP 400 ``TransportError`` after reporting their progress.

    Tracks ``active`` / ``max_active`` so tests can check concurrency caps.
    """

    def __init__(
        self,
        *,
        delay: float = 0.005,
        steps: int = 4,
        fail_on: tuple[str, ...] = (),
        delays: dict[str, float] | None = None,
    ) -> None:
        self.delay = delay
        self.steps = steps
        self.fail_on = set(fail_on)
        self.delays = dict(delays or {})
        self.active = 0
        self.max_active = 0
        self.calls: list[tuple[str, int]] = []

    async def __aenter__(self) -> FakeTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def upload(self, chunk, destination, on_progress):
        self.calls.append((destination, len(chunk)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            total = len(chunk)
            delay = self.delays.get(destination, self.delay)
            for step in range(1, self.steps + 1):
                await asyncio.sleep(delay)
                on_progress(total * step // self.steps, total)
            if destination in self.fail_on or "error" in destination:
                raise TransportError(
                    f"PUT {destination} returned HTTP 400", destination, status_code=400
                )
            return destination
        finally:
            self.active -= 1


@pytest.fixture
def transport() -> FakeTransport:
    """A fresh scripted transport."""
    return FakeTransport()


@pytest.fixture
def payload() -> bytes:
    """10 MiB of zero bytes, the size the upload scenarios are written against."""
    return bytes(TEN_MIB)


@pytest.fixture
def config() -> UploadConfig:
    """Default upload configuration (threads=5)."""
    return UploadConfig()
