"""Bounded-concurrency job pool.

Runs a backlog of zero-argument coroutine functions with at most
``max_concurrent`` of them in flight.  Workers claim jobs first-come
first-served from a shared backlog; settlements are reported at each job's
submission index regardless of the order jobs finish in.
"""

from __future__ import annotations

import asyncio
import collections
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class Settlement:
    """Outcome of one job.

    Attributes:
        index: Position of the job in the submitted sequence.
        value: Return value when the job succeeded.
        error: Exception raised by the job, or ``None``.
        sequence: Arrival order of this settlement (0 = first to finish).
    """

    index: int
    value: Any = None
    error: BaseException | None = None
    sequence: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_jobs(jobs: Sequence[Job], max_concurrent: int) -> list[Settlement]:
    """Run *jobs* with at most *max_concurrent* in flight.

    A failing job does not cancel its siblings and this function never
    raises for job failures: each failure is captured in the job's
    :class:`Settlement`.

    Args:
        jobs: Zero-argument async callables, in submission order.
        max_concurrent: Positive cap on simultaneously running jobs.

    Returns:
        One settlement per job, in submission order.

    Raises:
        ValueError: If *max_concurrent* is not positive.
    """
    if max_concurrent <= 0:
        raise ValueError(
            f"max_concurrent must be a positive integer, got {max_concurrent!r}"
        )
    if not jobs:
        return []

    backlog = collections.deque(enumerate(jobs))
    results: list[Settlement | None] = [None] * len(jobs)
    arrivals = itertools.count()

    async def worker(worker_id: int) -> None:
        while backlog:
            index, job = backlog.popleft()
            try:
                value = await job()
            except Exception as exc:
                logger.debug("Job %d failed on worker %d: %s", index, worker_id, exc)
                results[index] = Settlement(
                    index=index, error=exc, sequence=next(arrivals)
                )
            else:
                results[index] = Settlement(
                    index=index, value=value, sequence=next(arrivals)
                )

    worker_count = min(max_concurrent, len(jobs))
    logger.debug("Running %d jobs on %d workers", len(jobs), worker_count)
    await asyncio.gather(*(worker(i) for i in range(worker_count)))

    return [settlement for settlement in results if settlement is not None]
