"""Concurrent uploads with per-request progress tracking."""

__version__ = "0.1.0"

from upqueue.models import (
    Part,
    UploadConfig,
    UploadOutcome,
    UploadRecord,
    UploadRequest,
    UploadStatus,
)

__all__ = [
    "Part",
    "UploadConfig",
    "UploadOutcome",
    "UploadRecord",
    "UploadRequest",
    "UploadStatus",
    "__version__",
]
