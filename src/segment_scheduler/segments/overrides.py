# src/segment_scheduler/segments/overrides.py

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Iterator

from .errors import InvalidRange, NotFound, OverlapConflict
from .models import TimeSegmentRange

logger = logging.getLogger(__name__)


class OverrideStore:
    """
    Override ranges kept as a sorted list of disjoint [start, end) intervals.

    Ranges of different segments never overlap (enforced on insert). Ranges of
    the same segment that overlap or touch are coalesced, so every stored
    range is disjoint from every other one and lookups are a single bisect.

    Not thread-safe on its own; SegmentResolver serializes access.
    """

    def __init__(self, ranges: Iterable[TimeSegmentRange] = ()) -> None:
        self._ranges: list[TimeSegmentRange] = []
        self._starts: list[int] = []
        for r in ranges:
            self.add(r.segment_id, r.start, r.end)

    def __len__(self) -> int:
        return len(self._ranges)

    def __iter__(self) -> Iterator[TimeSegmentRange]:
        return iter(list(self._ranges))

    # ---- lookups ----

    def override_at(self, instant: int) -> TimeSegmentRange | None:
        i = bisect.bisect_right(self._starts, instant) - 1
        if i >= 0 and self._ranges[i].contains(instant):
            return self._ranges[i]
        return None

    def overrides_at(self, instant: int) -> int | None:
        hit = self.override_at(instant)
        return None if hit is None else hit.segment_id

    def overrides_overlapping(self, lo: int, hi: int) -> list[TimeSegmentRange]:
        """Ranges meeting [lo, hi), sorted by start."""
        if hi <= lo:
            raise InvalidRange(lo, hi)
        i = max(0, bisect.bisect_right(self._starts, lo) - 1)
        j = bisect.bisect_left(self._starts, hi)
        return [r for r in self._ranges[i:j] if r.overlaps(lo, hi)]

    def ranges_for(self, segment_id: int) -> list[TimeSegmentRange]:
        return [r for r in self._ranges if r.segment_id == segment_id]

    # ---- mutations ----

    def check_insert(self, segment_id: int, start: int, end: int) -> None:
        """Raise if add() would be rejected; never mutates."""
        if end <= start:
            raise InvalidRange(start, end)
        for existing in self.overrides_overlapping(start, end):
            if existing.segment_id != segment_id:
                raise OverlapConflict(segment_id, start, end, existing)

    def plan_add(
        self, segment_id: int, start: int, end: int
    ) -> tuple[list[TimeSegmentRange], TimeSegmentRange]:
        """
        Work out what add() would do without mutating anything.

        Returns (stored ranges that get absorbed, the range that replaces them).
        """
        self.check_insert(segment_id, start, end)

        # Same-segment neighbours that overlap or touch get merged in.
        i = max(0, bisect.bisect_right(self._starts, start) - 1)
        j = bisect.bisect_right(self._starts, end)
        merged_start, merged_end = start, end
        absorbed: list[TimeSegmentRange] = []
        for r in self._ranges[i:j]:
            if r.segment_id == segment_id and r.start <= end and start <= r.end:
                merged_start = min(merged_start, r.start)
                merged_end = max(merged_end, r.end)
                absorbed.append(r)
        return absorbed, TimeSegmentRange(segment_id, merged_start, merged_end)

    def add(self, segment_id: int, start: int, end: int) -> TimeSegmentRange:
        """Insert [start, end) and return the stored (possibly coalesced) range."""
        absorbed, stored = self.plan_add(segment_id, start, end)
        self.apply(remove=absorbed, add=[stored])
        if absorbed:
            logger.debug(
                "Coalesced %d override(s) into segment=%s [%s, %s)",
                len(absorbed),
                segment_id,
                stored.start,
                stored.end,
            )
        return stored

    def plan_remove(
        self, segment_id: int, start: int, end: int
    ) -> tuple[TimeSegmentRange, list[TimeSegmentRange]]:
        """
        Locate the stored range of segment_id that fully contains [start, end).

        Returns (that range, what is left of it once [start, end) is carved out).
        """
        if end <= start:
            raise InvalidRange(start, end)
        hit = self.override_at(start)
        if hit is None or hit.segment_id != segment_id or end > hit.end:
            raise NotFound(segment_id, start, end)

        rest: list[TimeSegmentRange] = []
        if hit.start < start:
            rest.append(TimeSegmentRange(segment_id, hit.start, start))
        if end < hit.end:
            rest.append(TimeSegmentRange(segment_id, end, hit.end))
        return hit, rest

    def remove(self, segment_id: int, start: int, end: int) -> list[TimeSegmentRange]:
        """Carve [start, end) out of segment_id's overrides; returns the leftovers."""
        hit, rest = self.plan_remove(segment_id, start, end)
        self.apply(remove=[hit], add=rest)
        return rest

    def apply(
        self,
        *,
        remove: Iterable[TimeSegmentRange] = (),
        add: Iterable[TimeSegmentRange] = (),
    ) -> None:
        """Swap stored ranges; callers pass the output of plan_add / plan_remove."""
        for r in remove:
            pos = bisect.bisect_left(self._starts, r.start)
            if pos == len(self._ranges) or self._ranges[pos] != r:
                raise RuntimeError(f"override {r} is not stored")
            del self._ranges[pos]
            del self._starts[pos]
        for r in add:
            pos = bisect.bisect_left(self._starts, r.start)
            self._ranges.insert(pos, r)
            self._starts.insert(pos, r.start)
