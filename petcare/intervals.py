"""Half-open time interval helpers shared by slot search and booking checks.

All intervals are ``[start, end)``: an appointment ending at 11:00 does not
collide with one starting at 11:00.
"""
from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta

DEFAULT_STEP = timedelta(minutes=15)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Return True when [a_start, a_end) and [b_start, b_end) share an instant."""
    return a_start < b_end and b_start < a_end


def contains_interval(
    block_start: datetime, block_end: datetime, start: datetime, end: datetime
) -> bool:
    """Return True when [start, end) lies entirely inside the block."""
    return start >= block_start and end <= block_end


class CandidateStarts:
    """Evenly spaced start times inside a block that leave room for ``duration``.

    The sequence is lazy and can be iterated any number of times. An optional
    window (usually the requested day) clips the block on both sides.
    """

    def __init__(
        self,
        block_start: datetime,
        block_end: datetime,
        duration: timedelta,
        step: timedelta = DEFAULT_STEP,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> None:
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        if duration <= timedelta(0):
            raise ValueError("duration must be positive")
        self.start = max(block_start, window_start) if window_start is not None else block_start
        self.end = min(block_end, window_end) if window_end is not None else block_end
        self.duration = duration
        self.step = step

    def __iter__(self) -> Iterator[datetime]:
        current = self.start
        while current + self.duration <= self.end:
            yield current
            current += self.step


def generate_candidate_starts(
    block_start: datetime,
    block_end: datetime,
    duration: timedelta,
    step: timedelta = DEFAULT_STEP,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> CandidateStarts:
    return CandidateStarts(block_start, block_end, duration, step, window_start, window_end)
