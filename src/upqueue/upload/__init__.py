"""Bounded-concurrency upload engine.

Public API
----------
.. autoclass:: UploadOrchestrator
.. autoclass:: HttpTransport
.. autoclass:: Transport
.. autoclass:: UploaderState
.. autofunction:: apply_event
.. autofunction:: run_jobs
.. autofunction:: plan_parts
.. autoclass:: ProgressAggregator
.. autoclass:: UploadProgressTracker
"""

from upqueue.upload.aggregator import ProgressAggregator
from upqueue.upload.exceptions import (
    DuplicateRequestError,
    InvalidRequestError,
    InvalidTransitionError,
    TransportError,
    UnknownRequestError,
    UploadError,
)
from upqueue.upload.fsm import UploadLifecycleSM, create_fsm
from upqueue.upload.orchestrator import UploadOrchestrator
from upqueue.upload.planner import plan_parts
from upqueue.upload.pool import Settlement, run_jobs
from upqueue.upload.progress import UploadProgressTracker
from upqueue.upload.state import (
    RequestSubmitted,
    UploadCompleted,
    UploaderSnapshot,
    UploaderState,
    UploadFailed,
    UploadProgressed,
    UploadStarted,
    apply_event,
)
from upqueue.upload.transport import HttpTransport, ProgressCallback, Transport

__all__ = [
    "DuplicateRequestError",
    "HttpTransport",
    "InvalidRequestError",
    "InvalidTransitionError",
    "ProgressAggregator",
    "ProgressCallback",
    "RequestSubmitted",
    "Settlement",
    "Transport",
    "TransportError",
    "UnknownRequestError",
    "UploadCompleted",
    "UploadError",
    "UploadFailed",
    "UploadLifecycleSM",
    "UploadOrchestrator",
    "UploadProgressTracker",
    "UploadProgressed",
    "UploadStarted",
    "UploaderSnapshot",
    "UploaderState",
    "apply_event",
    "create_fsm",
    "plan_parts",
    "run_jobs",
]
