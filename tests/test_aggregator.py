"""Tests for ProgressAggregator."""

from __future__ import annotations

import pytest

from upqueue.upload.aggregator import ProgressAggregator


class TestProgressAggregator:
    """Per-part slots are overwritten and summed."""

    def test_starts_at_zero(self):
        agg = ProgressAggregator(3, 300)
        assert agg.loaded == 0
        assert agg.total == 300
        assert agg.progress == 0.0

    def test_sums_slots(self):
        agg = ProgressAggregator(3, 300)
        agg.update(0, 50)
        agg.update(2, 100)
        assert agg.update(1, 25) == (175, 300)
        assert agg.progress == pytest.approx(175 / 300)

    def test_reports_overwrite_not_accumulate(self):
        """Loaded counts are absolute per part."""
        agg = ProgressAggregator(2, 200)
        agg.update(0, 40)
        agg.update(0, 80)
        assert agg.loaded == 80

    def test_regression_is_reflected(self):
        """A transport reporting a lower count shows up as a dip."""
        agg = ProgressAggregator(2, 200)
        agg.update(0, 80)
        agg.update(0, 30)
        assert agg.loaded == 30

    def test_full_completion(self):
        agg = ProgressAggregator(2, 10)
        agg.update(0, 5)
        agg.update(1, 5)
        assert agg.progress == 1.0

    def test_zero_total_progress_is_zero(self):
        """No division by zero for empty payloads."""
        agg = ProgressAggregator(2, 0)
        agg.update(0, 0)
        assert agg.progress == 0.0

    def test_unknown_part_index(self):
        agg = ProgressAggregator(2, 10)
        with pytest.raises(IndexError):
            agg.update(5, 1)
