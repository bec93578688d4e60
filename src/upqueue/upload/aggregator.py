"""Combine per-part byte counters into one logical progress value."""

from __future__ import annotations


class ProgressAggregator:
    """Tracks bytes loaded per part of a partitioned upload.

    Each slot holds the absolute count last reported for that part; the
    aggregate is the sum of the slots.  Slots are overwritten, never
    accumulated, so the aggregate is non-decreasing as long as the
    transport reports non-decreasing counts per part.  A transport that
    reports a smaller count than before shows up as a dip: nothing here
    clamps against regression.
    """

    def __init__(self, part_count: int, total: int) -> None:
        self._slots = [0] * part_count
        self._total = total

    def update(self, index: int, loaded: int) -> tuple[int, int]:
        """Record *loaded* bytes for part *index* and return ``(loaded, total)``."""
        self._slots[index] = loaded
        return self.loaded, self._total

    @property
    def loaded(self) -> int:
        return sum(self._slots)

    @property
    def total(self) -> int:
        return self._total

    @property
    def progress(self) -> float:
        if self._total == 0:
            return 0.0
        return self.loaded / self._total
