# src/segment_scheduler/segments/recurrence.py

"""
Recurrence evaluation.

All answers are computed arithmetically from (start, period, window); nothing
here walks the timeline instance by instance outside the queried window.

Boundary rule used everywhere: an instance is closed on the left and open on
the right, so an instant equal to an instance end belongs to the next one.
"""

from __future__ import annotations

import math
from collections.abc import Iterator

from .errors import InvalidPeriod, InvalidRange
from .models import TimeSegment


def validate_recurrence(period: int, window: int | None = None) -> None:
    if period <= 0:
        raise InvalidPeriod(period)
    if window is not None and not (0 < window <= period):
        raise InvalidPeriod(period, window)


def instance_index(segment: TimeSegment, instant: int) -> int | None:
    """Index of the period containing instant, or None before the origin."""
    if instant < segment.start:
        return None
    return (instant - segment.start) // segment.period


def instance_bounds(segment: TimeSegment, index: int) -> tuple[int, int]:
    begin = segment.start + index * segment.period
    return begin, begin + segment.active_window


def covers(segment: TimeSegment, instant: int) -> bool:
    index = instance_index(segment, instant)
    if index is None:
        return False
    return instant < instance_bounds(segment, index)[1]


def index_span(segment: TimeSegment, lo: int, hi: int) -> range:
    """Indices of the instances intersecting [lo, hi)."""
    if hi <= lo:
        raise InvalidRange(lo, hi)
    # instance k intersects iff start + k*period < hi and start + k*period + window > lo
    first = max(0, (lo - segment.start - segment.active_window) // segment.period + 1)
    last = -((segment.start - hi) // segment.period) - 1  # ceil((hi - start) / period) - 1
    return range(first, max(first, last + 1))


def instances_overlapping(segment: TimeSegment, lo: int, hi: int) -> Iterator[tuple[int, int]]:
    """Lazily yield [instance_start, instance_end) for every instance meeting [lo, hi)."""
    for index in index_span(segment, lo, hi):
        yield instance_bounds(segment, index)


def coverage(segment: TimeSegment, lo: int, hi: int) -> Iterator[tuple[int, int]]:
    """
    Covered parts of [lo, hi), clipped and merged.

    Tiling segments (window == period) collapse to a single interval without
    enumerating instances.
    """
    if hi <= lo:
        raise InvalidRange(lo, hi)
    if segment.active_window == segment.period:
        begin = max(lo, segment.start)
        if begin < hi:
            yield begin, hi
        return

    for begin, end in instances_overlapping(segment, lo, hi):
        yield max(begin, lo), min(end, hi)


def count_instances(segment: TimeSegment, lo: int, hi: int) -> int:
    """How many instances coverage() would enumerate for [lo, hi)."""
    if segment.active_window == segment.period:
        return 1 if max(lo, segment.start) < hi else 0
    return len(index_span(segment, lo, hi))


def recurrences_collide(a: TimeSegment, b: TimeSegment) -> bool:
    """
    True if some instant is covered by both recurrences.

    With g = gcd(pa, pb), the offsets between an instance start of b and one
    of a, taken over all instances past both origins, are exactly the
    integers congruent to (sb - sa) mod g. Two windows intersect iff such an
    offset lies strictly inside (-wb, wa).
    """
    g = math.gcd(a.period, b.period)
    r = (b.start - a.start) % g
    return r < a.active_window or g - r < b.active_window
