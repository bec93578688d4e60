"""Data models and enums for the upload queue."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class UploadStatus(str, Enum):
    """Lifecycle status of an upload request."""

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStatus.COMPLETED, UploadStatus.ERRORED)


@dataclass(frozen=True)
class UploadRequest:
    """One logical transfer of a payload to one or more destinations.

    A single destination is a simple upload. Two or more destinations split
    the payload into contiguous parts, one per destination.
    """

    payload: bytes
    destinations: tuple[str, ...]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    name: str | None = None

    def __post_init__(self) -> None:
        # Accept a bare URL or any sequence of URLs
        if isinstance(self.destinations, str):
            object.__setattr__(self, "destinations", (self.destinations,))
        else:
            object.__setattr__(self, "destinations", tuple(self.destinations))

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def is_partitioned(self) -> bool:
        return len(self.destinations) > 1

    @property
    def label(self) -> str:
        """Display name: explicit name, else the first destination."""
        if self.name:
            return self.name
        return self.destinations[0] if self.destinations else self.id


@dataclass(frozen=True)
class Part:
    """Half-open byte range ``[start, end)`` of a payload bound to one destination."""

    index: int
    start: int
    end: int
    destination: str

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class UploadRecord:
    """Observable state of one request, owned by the uploader state."""

    status: UploadStatus = UploadStatus.QUEUED
    is_uploading: bool = False
    progress: float = 0.0
    loaded: int = 0
    total: int = 0
    data: Any = None
    error: BaseException | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class UploadOutcome:
    """Settled result of a request: exactly one of ``data``/``error`` is meaningful."""

    data: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadConfig:
    """Configuration for the upload engine and the HTTP transport.

    Controls how many requests (and parts of one request) run at once,
    the streaming block size and timeout of the HTTP transport, and the
    headers sent with every PUT.
    """

    threads: int = 5
    chunk_size: int = 64 * 1024
    timeout_seconds: float = 300.0
    headers: dict[str, str] = field(default_factory=dict)
    auth_token: str | None = None

    def __post_init__(self) -> None:
        if self.threads <= 0:
            raise ValueError(f"threads must be a positive integer, got {self.threads!r}")
        if self.chunk_size <= 0:
            raise ValueError(
                f"chunk_size must be a positive integer, got {self.chunk_size!r}"
            )
