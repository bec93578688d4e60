"""Exceptions raised by the upload engine."""

from __future__ import annotations


class UploadError(Exception):
    """Base class for upload engine errors."""


class InvalidRequestError(UploadError, ValueError):
    """Raised when a request cannot be submitted (e.g. no destinations)."""


class DuplicateRequestError(UploadError):
    """Raised when a request id is submitted more than once."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Request {request_id!r} has already been submitted")
        self.request_id = request_id


class UnknownRequestError(UploadError, KeyError):
    """Raised when an event targets a request id that was never submitted."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Unknown request {request_id!r}")
        self.request_id = request_id

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidTransitionError(UploadError):
    """Raised when an event is not legal in the record's current status."""

    def __init__(self, request_id: str, status: str, event: str) -> None:
        super().__init__(
            f"Cannot apply {event!r} to request {request_id!r} in status {status!r}"
        )
        self.request_id = request_id
        self.status = status
        self.event = event


class TransportError(UploadError):
    """Raised by the HTTP transport when a PUT fails.

    ``status_code`` is ``None`` for network-level failures (connection
    refused, timeout) where no response was received.
    """

    def __init__(
        self, message: str, destination: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.destination = destination
        self.status_code = status_code
