# src/segment_scheduler/segments/errors.py

"""
Error taxonomy of the segment engine.

Every error is raised synchronously for caller input or data state; none of
them is transient, so nothing here is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TimeSegmentRange


class SegmentError(Exception):
    """Base class for all segment engine errors."""


class InvalidPeriod(SegmentError, ValueError):
    def __init__(self, period: int, window: int | None = None) -> None:
        self.period = period
        self.window = window
        if window is None:
            msg = f"period must be > 0, got {period}"
        else:
            msg = f"window must satisfy 0 < window <= period, got window={window} period={period}"
        super().__init__(msg)


class InvalidRange(SegmentError, ValueError):
    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"range requires start < end, got start={start} end={end}")


class OverlapConflict(SegmentError):
    def __init__(self, segment_id: int, start: int, end: int, existing: TimeSegmentRange) -> None:
        self.segment_id = segment_id
        self.start = start
        self.end = end
        self.existing = existing
        super().__init__(
            f"override [{start}, {end}) for segment {segment_id} overlaps "
            f"[{existing.start}, {existing.end}) of segment {existing.segment_id}"
        )


class UnknownSegment(SegmentError, LookupError):
    def __init__(self, segment_id: int) -> None:
        self.segment_id = segment_id
        super().__init__(f"unknown segment id={segment_id}")


class SegmentInUse(SegmentError):
    def __init__(self, segment_id: int, *, ranges: int, tasks: int) -> None:
        self.segment_id = segment_id
        self.ranges = ranges
        self.tasks = tasks
        super().__init__(
            f"segment {segment_id} is still referenced by {ranges} override range(s) "
            f"and {tasks} task(s)"
        )


class AmbiguousSchedule(SegmentError):
    """Two or more recurring segments claim the same instant."""

    def __init__(self, candidates: tuple[int, ...], instant: int | None = None) -> None:
        self.candidates = tuple(candidates)
        self.instant = instant
        ids = ", ".join(str(c) for c in self.candidates)
        where = "" if instant is None else f" at {instant}"
        super().__init__(f"ambiguous schedule{where}: segments {ids} overlap")


class InvalidSegment(SegmentError, LookupError):
    def __init__(self, segment_id: int) -> None:
        self.segment_id = segment_id
        super().__init__(f"time_segment_id={segment_id} does not refer to an existing segment")


class NotFound(SegmentError, LookupError):
    def __init__(self, segment_id: int, start: int, end: int) -> None:
        self.segment_id = segment_id
        self.start = start
        self.end = end
        super().__init__(f"no override [{start}, {end}) for segment {segment_id}")


class RangeTooLarge(SegmentError):
    def __init__(self, lo: int, hi: int, limit: int) -> None:
        self.lo = lo
        self.hi = hi
        self.limit = limit
        super().__init__(f"[{lo}, {hi}) spans more than {limit} recurrence instances")
