"""Split one payload into contiguous byte ranges, one per destination."""

from __future__ import annotations

import math
from typing import Sequence

from upqueue.models import Part
from upqueue.upload.exceptions import InvalidRequestError


def plan_parts(total_size: int, destinations: Sequence[str]) -> list[Part]:
    """Compute the parts of a partitioned upload.

    Every part but the last spans ``ceil(total_size / len(destinations))``
    bytes; the last part ends exactly at *total_size*.  When there are
    fewer bytes than destinations the trailing parts are empty ranges
    positioned at *total_size*, so the result stays index-aligned with
    *destinations*.

    Args:
        total_size: Payload size in bytes.
        destinations: Ordered endpoints, at least one.

    Returns:
        Parts covering ``[0, total_size)`` exactly once, in destination order.
    """
    if not destinations:
        raise InvalidRequestError("At least one destination is required")
    if total_size < 0:
        raise ValueError(f"total_size must be >= 0, got {total_size!r}")

    chunk = math.ceil(total_size / len(destinations))
    parts = []
    for index, destination in enumerate(destinations):
        start = min(index * chunk, total_size)
        end = min((index + 1) * chunk, total_size)
        parts.append(Part(index=index, start=start, end=end, destination=destination))
    return parts
