"""Tests for the bounded-concurrency job pool."""

from __future__ import annotations

import asyncio

import pytest

from upqueue.upload.pool import Settlement, run_jobs


def _value_job(value, delay=0.0):
    async def job():
        await asyncio.sleep(delay)
        return value

    return job


class TestRunJobs:
    """Tests for run_jobs ordering, limits and failure capture."""

    async def test_results_in_submission_order(self):
        """Results follow submission order even when later jobs finish first."""
        delays = [0.05, 0.01, 0.04, 0.0, 0.02, 0.03, 0.0, 0.01, 0.02]
        jobs = [_value_job(i + 1, d) for i, d in enumerate(delays)]

        settlements = await run_jobs(jobs, 10)

        assert [s.value for s in settlements] == [1, 2, 3, 4, 5, 6, 7, 8, 9]
        assert [s.index for s in settlements] == list(range(9))
        assert all(s.ok for s in settlements)

    async def test_does_not_exceed_limit(self):
        """At most max_concurrent jobs run at once."""
        active = 0
        peak = 0

        def make_job(delay):
            async def job():
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(delay)
                active -= 1
                return delay

            return job

        jobs = [make_job(0.01 * (i % 3 + 1)) for i in range(7)]
        settlements = await run_jobs(jobs, 2)

        assert peak == 2
        assert len(settlements) == 7

    async def test_next_job_starts_only_when_a_slot_frees(self):
        """Jobs beyond the limit wait for an earlier job to finish."""
        gates = [asyncio.Event() for _ in range(4)]
        started: list[int] = []

        def make_job(i):
            async def job():
                started.append(i)
                await gates[i].wait()
                return i

            return job

        run = asyncio.create_task(run_jobs([make_job(i) for i in range(4)], 2))
        for _ in range(3):
            await asyncio.sleep(0)
        assert started == [0, 1]

        gates[0].set()
        for _ in range(3):
            await asyncio.sleep(0)
        assert started == [0, 1, 2]

        gates[1].set()
        gates[2].set()
        gates[3].set()
        settlements = await run
        assert started == [0, 1, 2, 3]
        assert [s.value for s in settlements] == [0, 1, 2, 3]

    async def test_spawns_min_of_limit_and_job_count(self):
        """With more slots than jobs, every job runs at once."""
        active = 0
        peak = 0

        async def job():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await run_jobs([job, job, job], 10)
        assert peak == 3

    async def test_failure_is_captured_and_siblings_finish(self):
        """A failing job does not cancel siblings and run_jobs does not raise."""

        async def boom():
            raise RuntimeError("boom")

        jobs = [_value_job("a", 0.01), boom, _value_job("c", 0.02)]
        settlements = await run_jobs(jobs, 3)

        assert settlements[0].value == "a"
        assert isinstance(settlements[1].error, RuntimeError)
        assert not settlements[1].ok
        assert settlements[1].value is None
        assert settlements[2].value == "c"

    async def test_sequence_records_arrival_order(self):
        """sequence numbers follow completion, not submission."""
        jobs = [_value_job("slow", 0.03), _value_job("fast", 0.0)]
        settlements = await run_jobs(jobs, 2)

        assert settlements[1].sequence == 0
        assert settlements[0].sequence == 1

    async def test_empty_backlog(self):
        """No jobs returns an empty list immediately."""
        assert await run_jobs([], 3) == []

    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit_rejected(self, limit):
        """max_concurrent <= 0 raises ValueError."""
        with pytest.raises(ValueError, match="positive"):
            await run_jobs([_value_job(1)], limit)


def test_settlement_ok_flag():
    """Settlement.ok reflects the presence of an error."""
    assert Settlement(index=0, value=1).ok
    assert not Settlement(index=0, error=ValueError("x")).ok
