"""Canonical uploader state and its pure transition function.

:class:`UploaderState` is an immutable value: every event produces a new
state through :func:`apply_event` and the previous one is left untouched.
All I/O (transport calls, futures, listeners) lives in the orchestrator;
this module only decides what the next state is and whether the event is
legal.

Queue invariant: a request id is in ``queue`` iff its record is neither
completed nor errored.  The id is removed exactly once, by whichever
terminal event is applied first -- a second terminal event is an illegal
transition.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Union

from statemachine.exceptions import TransitionNotAllowed

from upqueue.models import UploadRecord, UploadStatus
from upqueue.upload.exceptions import (
    DuplicateRequestError,
    InvalidTransitionError,
    UnknownRequestError,
)
from upqueue.upload.fsm import create_fsm


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestSubmitted:
    request_id: str
    total: int


@dataclass(frozen=True)
class UploadStarted:
    request_id: str


@dataclass(frozen=True)
class UploadProgressed:
    request_id: str
    loaded: int
    total: int


@dataclass(frozen=True)
class UploadCompleted:
    request_id: str
    data: Any = None


@dataclass(frozen=True)
class UploadFailed:
    request_id: str
    error: BaseException


UploadEvent = Union[
    RequestSubmitted, UploadStarted, UploadProgressed, UploadCompleted, UploadFailed
]

# Event class -> FSM event name
_TRIGGERS: dict[type, str] = {
    UploadStarted: "start",
    UploadProgressed: "progress",
    UploadCompleted: "complete",
    UploadFailed: "fail",
}


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploaderSnapshot:
    """Read-only view handed to the binding layer."""

    is_uploading: bool
    records: Mapping[str, UploadRecord]


@dataclass(frozen=True)
class UploaderState:
    """Every request's record plus the ids that have not settled yet."""

    records: Mapping[str, UploadRecord] = field(default_factory=dict)
    queue: tuple[str, ...] = ()

    @property
    def is_uploading(self) -> bool:
        return len(self.queue) > 0

    def get(self, request_id: str) -> UploadRecord:
        try:
            return self.records[request_id]
        except KeyError:
            raise UnknownRequestError(request_id) from None

    def snapshot(self) -> UploaderSnapshot:
        return UploaderSnapshot(
            is_uploading=self.is_uploading,
            records=MappingProxyType(dict(self.records)),
        )


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


def _progress_ratio(loaded: int, total: int) -> float:
    if total == 0:
        return 0.0
    return min(loaded / total, 1.0)


def _next_status(request_id: str, record: UploadRecord, event: UploadEvent) -> UploadStatus:
    """Validate *event* against the lifecycle FSM and return the new status."""
    trigger = _TRIGGERS.get(type(event))
    if trigger is None:
        raise TypeError(f"Unsupported event type: {type(event).__name__}")
    fsm = create_fsm(record.status.value)
    try:
        fsm.send(trigger)
    except TransitionNotAllowed as exc:
        raise InvalidTransitionError(request_id, record.status.value, trigger) from exc
    return UploadStatus(fsm.current_state.value)


def _replace_record(
    state: UploaderState,
    request_id: str,
    record: UploadRecord,
    *,
    dequeue: bool = False,
) -> UploaderState:
    records = dict(state.records)
    records[request_id] = record
    queue = state.queue
    if dequeue:
        queue = tuple(rid for rid in queue if rid != request_id)
    return UploaderState(records=records, queue=queue)


def apply_event(state: UploaderState, event: UploadEvent) -> UploaderState:
    """Return the state that results from applying *event* to *state*.

    Raises:
        DuplicateRequestError: ``RequestSubmitted`` for an id already known.
        UnknownRequestError: Any other event for an id never submitted.
        InvalidTransitionError: The event is not legal in the record's
            current status (including any event on a terminal record).
    """
    request_id = event.request_id

    if isinstance(event, RequestSubmitted):
        if request_id in state.records:
            raise DuplicateRequestError(request_id)
        records = dict(state.records)
        records[request_id] = UploadRecord(total=event.total)
        return UploaderState(records=records, queue=state.queue + (request_id,))

    record = state.get(request_id)
    status = _next_status(request_id, record, event)

    if isinstance(event, UploadStarted):
        new_record = dataclasses.replace(record, status=status, is_uploading=True)
        return _replace_record(state, request_id, new_record)

    if isinstance(event, UploadProgressed):
        new_record = dataclasses.replace(
            record,
            status=status,
            is_uploading=True,
            loaded=event.loaded,
            total=event.total,
            progress=_progress_ratio(event.loaded, event.total),
        )
        return _replace_record(state, request_id, new_record)

    if isinstance(event, UploadCompleted):
        new_record = dataclasses.replace(
            record,
            status=status,
            is_uploading=False,
            progress=1.0,
            loaded=record.total,
            data=event.data,
            error=None,
        )
        return _replace_record(state, request_id, new_record, dequeue=True)

    if isinstance(event, UploadFailed):
        new_record = dataclasses.replace(
            record,
            status=status,
            is_uploading=False,
            data=None,
            error=event.error,
        )
        return _replace_record(state, request_id, new_record, dequeue=True)

    raise AssertionError(f"Unhandled event {event!r}")
