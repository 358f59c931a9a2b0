# src/segment_scheduler/segments/resolver.py

"""
Segment resolution.

SegmentResolver owns the full set of segments and override ranges and is
the only place where they are consulted together:

- resolve(t): an override covering t wins; otherwise the single recurring
  segment covering t; otherwise UNASSIGNED.
- Two recurrences covering the same instant are a configuration defect. It
  is rejected when a segment is created or redefined (strict mode) and
  raised again as AmbiguousSchedule at resolution time. There is no
  precedence rule (lowest id, newest, ...) that would pick one silently.

Mutations validate first and then write through the optional SegmentRepo,
all under the write lock, so readers never observe a half-applied change and
a rejected mutation leaves memory and storage untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from itertools import combinations, pairwise

from ..core.locking import ReadWriteLock
from ..core.ports import SegmentRepo, TaskBindingRepo
from . import recurrence
from .binding import validate_binding
from .errors import (
    AmbiguousSchedule,
    InvalidRange,
    RangeTooLarge,
    SegmentInUse,
    UnknownSegment,
)
from .models import UNASSIGNED, Conflict, Resolution, ResolvedSpan, TimeSegment, TimeSegmentRange
from .overrides import OverrideStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_RANGE_INSTANCES = 100_000


class SegmentResolver:
    def __init__(
        self,
        segments: Iterable[TimeSegment] = (),
        ranges: Iterable[TimeSegmentRange] = (),
        *,
        repo: SegmentRepo | None = None,
        tasks: TaskBindingRepo | None = None,
        strict: bool = True,
        max_range_instances: int = DEFAULT_MAX_RANGE_INSTANCES,
    ) -> None:
        self._repo = repo
        self._tasks = tasks
        self._strict = bool(strict)
        self._max_range_instances = max(1, int(max_range_instances))
        self._lock = ReadWriteLock()
        self._segments: dict[int, TimeSegment] = {}
        self._overrides = OverrideStore()
        self._next_id = 1

        segments = list(segments)
        ranges = list(ranges)
        if repo is not None and not segments and not ranges:
            segments = repo.load_segments()
            ranges = repo.load_ranges()
        self.load(segments, ranges)

    @property
    def strict(self) -> bool:
        return self._strict

    def load(self, segments: Iterable[TimeSegment], ranges: Iterable[TimeSegmentRange]) -> None:
        """
        Replace the whole state with a persisted snapshot.

        No ambiguity validation happens here: conflicting recurrences that
        already exist in storage surface through resolve() / validate_all().
        Invalid periods, dangling or overlapping override ranges are rejected.
        """
        by_id: dict[int, TimeSegment] = {}
        for seg in segments:
            recurrence.validate_recurrence(seg.period, seg.window)
            by_id[int(seg.id)] = seg

        overrides = OverrideStore()
        for r in ranges:
            if r.segment_id not in by_id:
                raise UnknownSegment(r.segment_id)
            overrides.add(r.segment_id, r.start, r.end)

        with self._lock.write():
            self._segments = dict(sorted(by_id.items()))
            self._overrides = overrides
            self._next_id = max(by_id, default=0) + 1

        logger.info("Resolver loaded segments=%d overrides=%d", len(by_id), len(overrides))

    # ---- read accessors ----

    def get_segment(self, segment_id: int) -> TimeSegment | None:
        with self._lock.read():
            return self._segments.get(segment_id)

    def has_segment(self, segment_id: int) -> bool:
        with self._lock.read():
            return segment_id in self._segments

    def segments(self) -> list[TimeSegment]:
        with self._lock.read():
            return list(self._segments.values())

    def ranges(self) -> list[TimeSegmentRange]:
        with self._lock.read():
            return list(self._overrides)

    # ---- segment lifecycle ----

    def _check_name(self, name: str) -> str:
        if not name or not name.strip():
            raise ValueError("name is required")
        return name.strip()

    def _colliding(self, candidate: TimeSegment) -> tuple[int, ...]:
        return tuple(
            seg.id
            for seg in self._segments.values()
            if seg.id != candidate.id and recurrence.recurrences_collide(seg, candidate)
        )

    def create_segment(self, name: str, start: int, period: int, window: int | None = None) -> int:
        name = self._check_name(name)
        start, period = int(start), int(period)
        window = None if window is None else int(window)
        recurrence.validate_recurrence(period, window)

        with self._lock.write():
            draft = TimeSegment(id=UNASSIGNED, name=name, start=start, period=period, window=window)
            if self._strict:
                colliding = self._colliding(draft)
                if colliding:
                    logger.warning(
                        "Rejected segment name=%r start=%s period=%s: overlaps %s",
                        name,
                        start,
                        period,
                        colliding,
                    )
                    raise AmbiguousSchedule(colliding)

            if self._repo is not None:
                segment_id = self._repo.insert_segment(
                    name=name, start=start, period=period, window=window
                )
            else:
                segment_id = self._next_id

            self._segments[segment_id] = TimeSegment(
                id=segment_id, name=name, start=start, period=period, window=window
            )
            self._next_id = max(self._next_id, segment_id + 1)

        logger.info(
            "Segment created id=%s name=%r start=%s period=%s window=%s",
            segment_id,
            name,
            start,
            period,
            window,
        )
        return segment_id

    def redefine_segment(
        self,
        segment_id: int,
        start: int,
        period: int,
        window: int | None = None,
        *,
        name: str | None = None,
    ) -> TimeSegment:
        """
        Change a segment's recurrence in place.

        History is not versioned: instants already resolved through the old
        recurrence resolve differently afterwards. Pin them with override
        ranges first if that matters.
        """
        start, period = int(start), int(period)
        window = None if window is None else int(window)
        recurrence.validate_recurrence(period, window)

        with self._lock.write():
            current = self._segments.get(segment_id)
            if current is None:
                raise UnknownSegment(segment_id)
            updated = TimeSegment(
                id=segment_id,
                name=current.name if name is None else self._check_name(name),
                start=start,
                period=period,
                window=window,
            )
            if self._strict:
                colliding = self._colliding(updated)
                if colliding:
                    logger.warning("Rejected redefinition of segment %s: overlaps %s", segment_id, colliding)
                    raise AmbiguousSchedule((segment_id, *colliding))

            if self._repo is not None:
                self._repo.update_segment(updated)
            self._segments[segment_id] = updated

        logger.info("Segment redefined id=%s start=%s period=%s window=%s", segment_id, start, period, window)
        return updated

    def delete_segment(self, segment_id: int) -> None:
        with self._lock.write():
            if segment_id not in self._segments:
                raise UnknownSegment(segment_id)
            n_ranges = len(self._overrides.ranges_for(segment_id))
            n_tasks = self._tasks.count_tasks_for_segment(segment_id) if self._tasks is not None else 0
            if n_ranges or n_tasks:
                logger.warning(
                    "Refused to delete segment %s (ranges=%s tasks=%s)", segment_id, n_ranges, n_tasks
                )
                raise SegmentInUse(segment_id, ranges=n_ranges, tasks=n_tasks)

            if self._repo is not None:
                self._repo.delete_segment(segment_id)
            del self._segments[segment_id]

        logger.info("Segment deleted id=%s", segment_id)

    # ---- overrides ----

    def add_override_range(self, segment_id: int, start: int, end: int) -> TimeSegmentRange:
        """
        Pin [start, end) to segment_id. Returns the stored range, which is
        wider than requested when it was coalesced with the segment's
        neighbouring overrides.
        """
        start, end = int(start), int(end)
        if end <= start:
            raise InvalidRange(start, end)

        with self._lock.write():
            if segment_id not in self._segments:
                raise UnknownSegment(segment_id)
            absorbed, stored = self._overrides.plan_add(segment_id, start, end)
            if self._repo is not None:
                self._repo.replace_ranges(segment_id, remove=absorbed, add=[stored])
            self._overrides.apply(remove=absorbed, add=[stored])

        logger.info("Override added segment=%s [%s, %s)", segment_id, stored.start, stored.end)
        return stored

    def remove_override_range(self, segment_id: int, start: int, end: int) -> None:
        start, end = int(start), int(end)
        with self._lock.write():
            hit, rest = self._overrides.plan_remove(segment_id, start, end)
            if self._repo is not None:
                self._repo.replace_ranges(segment_id, remove=[hit], add=rest)
            self._overrides.apply(remove=[hit], add=rest)

        logger.info("Override removed segment=%s [%s, %s)", segment_id, start, end)

    # ---- resolution ----

    def resolve(self, instant: int) -> int:
        """Segment id governing instant, or UNASSIGNED."""
        instant = int(instant)
        with self._lock.read():
            pinned = self._overrides.overrides_at(instant)
            if pinned is not None:
                return pinned

            candidates = tuple(
                sorted(seg.id for seg in self._segments.values() if recurrence.covers(seg, instant))
            )

        if not candidates:
            return UNASSIGNED
        if len(candidates) > 1:
            logger.warning("Ambiguous schedule at %s: segments %s", instant, candidates)
            raise AmbiguousSchedule(candidates, instant)
        return candidates[0]

    def resolve_range(self, lo: int, hi: int) -> list[ResolvedSpan]:
        """
        Timetable for [lo, hi): contiguous, maximal spans of constant resolution.

        Conflicting recurrences are reported per span as Conflict instead of
        raising, so a scheduler sees every defect in the window at once.
        """
        lo, hi = int(lo), int(hi)
        if hi <= lo:
            raise InvalidRange(lo, hi)

        spans: list[ResolvedSpan] = []
        with self._lock.read():
            budget = self._max_range_instances
            cursor = lo
            for r in self._overrides.overrides_overlapping(lo, hi):
                begin, end = max(r.start, lo), min(r.end, hi)
                if cursor < begin:
                    budget = self._recurrence_spans(cursor, begin, spans, budget, (lo, hi))
                spans.append(ResolvedSpan(begin, end, r.segment_id))
                cursor = end
            if cursor < hi:
                self._recurrence_spans(cursor, hi, spans, budget, (lo, hi))

        merged = _merge(spans)
        n_conflicts = sum(1 for s in merged if s.is_conflict)
        if n_conflicts:
            logger.warning("Ambiguous schedule in [%s, %s): %d conflicting span(s)", lo, hi, n_conflicts)
        logger.debug("resolve_range [%s, %s) -> %d span(s)", lo, hi, len(merged))
        return merged

    def _recurrence_spans(
        self,
        lo: int,
        hi: int,
        out: list[ResolvedSpan],
        budget: int,
        window: tuple[int, int],
    ) -> int:
        # Caller holds the read lock.
        for seg in self._segments.values():
            budget -= recurrence.count_instances(seg, lo, hi)
            if budget < 0:
                raise RangeTooLarge(window[0], window[1], self._max_range_instances)

        opens: dict[int, list[int]] = defaultdict(list)
        closes: dict[int, list[int]] = defaultdict(list)
        for seg in self._segments.values():
            for begin, end in recurrence.coverage(seg, lo, hi):
                opens[begin].append(seg.id)
                closes[end].append(seg.id)

        active: set[int] = set()
        points = sorted({lo, hi, *opens, *closes})
        for begin, end in pairwise(points):
            active.difference_update(closes.get(begin, ()))
            active.update(opens.get(begin, ()))
            out.append(ResolvedSpan(begin, end, _resolution(active)))
        return budget

    # ---- administrative checks ----

    def validate_all(self) -> list[tuple[int, int]]:
        """Every pair of segments whose recurrences claim a common instant."""
        with self._lock.read():
            segs = list(self._segments.values())
        return [
            (a.id, b.id) for a, b in combinations(segs, 2) if recurrence.recurrences_collide(a, b)
        ]

    def validate_binding(self, time_segment_id: int) -> None:
        validate_binding(self, time_segment_id)


def _resolution(active: set[int]) -> Resolution:
    if not active:
        return UNASSIGNED
    if len(active) == 1:
        return next(iter(active))
    return Conflict(tuple(sorted(active)))


def _merge(spans: list[ResolvedSpan]) -> list[ResolvedSpan]:
    out: list[ResolvedSpan] = []
    for span in spans:
        if out and out[-1].end == span.start and out[-1].resolution == span.resolution:
            out[-1] = ResolvedSpan(out[-1].start, span.end, span.resolution)
        else:
            out.append(span)
    return out
