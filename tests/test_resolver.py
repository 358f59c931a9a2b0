# tests/test_resolver.py

from __future__ import annotations

import pytest

from segment_scheduler.segments.errors import (
    AmbiguousSchedule,
    InvalidPeriod,
    InvalidRange,
    NotFound,
    OverlapConflict,
    RangeTooLarge,
    SegmentInUse,
    UnknownSegment,
)
from segment_scheduler.segments.models import (
    UNASSIGNED,
    Conflict,
    ResolvedSpan,
    TimeSegment,
    TimeSegmentRange,
)
from segment_scheduler.segments.resolver import SegmentResolver

from .fakes import FakeSegmentRepo

DAY = 86_400
SHIFT = 8 * 3600


def _assert_partition(spans: list[ResolvedSpan], lo: int, hi: int) -> None:
    assert spans[0].start == lo
    assert spans[-1].end == hi
    for a, b in zip(spans, spans[1:]):
        assert a.end == b.start
        assert a.start < a.end
        assert a.resolution != b.resolution


# ---- point resolution ----


def test_hourly_segment_resolution(resolver: SegmentResolver) -> None:
    sid = resolver.create_segment("hourly", 1000, 3600)

    assert sid == 1
    assert resolver.resolve(1000) == 1
    assert resolver.resolve(4599) == 1
    assert resolver.resolve(4600) == 1
    assert resolver.resolve(999) == UNASSIGNED


def test_resolution_follows_instance_arithmetic(resolver: SegmentResolver) -> None:
    sid = resolver.create_segment("cycle", 17, 13)
    for t in range(17, 5000, 37):
        assert resolver.resolve(t) == sid
    assert resolver.resolve(16) == UNASSIGNED


def test_override_wins_over_recurrence(lenient: SegmentResolver) -> None:
    lenient.create_segment("hourly", 1000, 3600)
    lenient.create_segment("far future", 10**9, 3600)
    lenient.add_override_range(2, 2000, 2500)

    assert lenient.resolve(2200) == 2
    assert lenient.resolve(2000) == 2
    assert lenient.resolve(2500) == 1
    assert lenient.resolve(2600) == 1


def test_strict_creation_rejects_overlapping_recurrence(resolver: SegmentResolver) -> None:
    resolver.create_segment("x", 0, 10)

    with pytest.raises(AmbiguousSchedule) as exc:
        resolver.create_segment("y", 5, 10)

    assert exc.value.candidates == (1,)
    assert [s.id for s in resolver.segments()] == [1]


def test_resolution_time_ambiguity_is_an_error(lenient: SegmentResolver) -> None:
    lenient.create_segment("x", 0, 10)
    lenient.create_segment("y", 5, 10)

    assert lenient.resolve(3) == 1
    with pytest.raises(AmbiguousSchedule) as exc:
        lenient.resolve(5)
    assert exc.value.candidates == (1, 2)
    assert exc.value.instant == 5

    # An override settles it for its span only.
    lenient.add_override_range(2, 0, 100)
    assert lenient.resolve(5) == 2
    with pytest.raises(AmbiguousSchedule):
        lenient.resolve(100)


def test_loaded_conflicts_surface_at_resolution() -> None:
    r = SegmentResolver([TimeSegment(1, "a", 0, 10), TimeSegment(2, "b", 5, 10)])

    assert r.strict
    assert r.validate_all() == [(1, 2)]
    with pytest.raises(AmbiguousSchedule):
        r.resolve(7)
    r.add_override_range(1, 0, 1000)
    assert r.resolve(7) == 1


def test_shifts_coexist_in_strict_mode(resolver: SegmentResolver) -> None:
    day = resolver.create_segment("day", 0, DAY, SHIFT)
    evening = resolver.create_segment("evening", SHIFT, DAY, SHIFT)
    night = resolver.create_segment("night", 2 * SHIFT, DAY, SHIFT)

    assert resolver.resolve(0) == day
    assert resolver.resolve(SHIFT - 1) == day
    assert resolver.resolve(SHIFT) == evening
    assert resolver.resolve(2 * SHIFT) == night
    assert resolver.resolve(DAY) == day
    assert resolver.resolve(DAY + SHIFT + 1) == evening
    assert resolver.validate_all() == []

    with pytest.raises(AmbiguousSchedule) as exc:
        resolver.create_segment("standup", 3600, DAY, 3600)
    assert exc.value.candidates == (day,)


def test_gaps_between_windows_are_unassigned(resolver: SegmentResolver) -> None:
    resolver.create_segment("am", 0, 100, 30)
    assert resolver.resolve(10) == 1
    assert resolver.resolve(50) == UNASSIGNED


# ---- segment lifecycle ----


def test_invalid_segment_definitions(resolver: SegmentResolver) -> None:
    with pytest.raises(InvalidPeriod):
        resolver.create_segment("zero", 0, 0)
    with pytest.raises(InvalidPeriod):
        resolver.create_segment("negative", 0, -5)
    with pytest.raises(InvalidPeriod):
        resolver.create_segment("wide", 0, 10, 20)
    with pytest.raises(ValueError):
        resolver.create_segment("   ", 0, 10)
    assert resolver.segments() == []


def test_redefine_segment(resolver: SegmentResolver) -> None:
    a = resolver.create_segment("a", 0, 100, 30)
    b = resolver.create_segment("b", 50, 100, 30)

    with pytest.raises(AmbiguousSchedule) as exc:
        resolver.redefine_segment(b, 10, 100, 30)
    assert exc.value.candidates == (b, a)
    assert resolver.get_segment(b) == TimeSegment(b, "b", 50, 100, 30)

    updated = resolver.redefine_segment(b, 40, 100, 30, name="b2")
    assert updated == TimeSegment(b, "b2", 40, 100, 30)
    assert resolver.resolve(45) == b

    with pytest.raises(UnknownSegment):
        resolver.redefine_segment(99, 0, 10)


def test_delete_segment_requires_no_dependents() -> None:
    repo = FakeSegmentRepo()
    r = SegmentResolver(repo=repo, tasks=repo)
    sid = r.create_segment("hourly", 0, 3600)
    r.add_override_range(sid, 0, 10)

    with pytest.raises(SegmentInUse) as exc:
        r.delete_segment(sid)
    assert (exc.value.ranges, exc.value.tasks) == (1, 0)

    r.remove_override_range(sid, 0, 10)
    repo.task_counts[sid] = 2
    with pytest.raises(SegmentInUse) as exc:
        r.delete_segment(sid)
    assert (exc.value.ranges, exc.value.tasks) == (0, 2)

    repo.task_counts[sid] = 0
    r.delete_segment(sid)
    assert r.get_segment(sid) is None
    assert repo.segments == {}

    with pytest.raises(UnknownSegment):
        r.delete_segment(sid)


# ---- overrides through the resolver ----


def test_override_errors_leave_state_unchanged(lenient: SegmentResolver) -> None:
    lenient.create_segment("a", 0, 10)
    lenient.create_segment("b", 10**9, 10)
    lenient.add_override_range(1, 100, 200)

    with pytest.raises(UnknownSegment):
        lenient.add_override_range(99, 0, 10)
    with pytest.raises(InvalidRange):
        lenient.add_override_range(1, 10, 10)
    with pytest.raises(OverlapConflict):
        lenient.add_override_range(2, 150, 250)
    with pytest.raises(NotFound):
        lenient.remove_override_range(2, 100, 200)

    assert lenient.ranges() == [TimeSegmentRange(1, 100, 200)]


# ---- range resolution ----


def test_resolve_range_timetable(lenient: SegmentResolver) -> None:
    lenient.create_segment("hourly", 1000, 3600)
    lenient.create_segment("far future", 10**9, 3600)
    lenient.add_override_range(2, 2000, 2500)

    spans = lenient.resolve_range(0, 10_000)

    assert spans == [
        ResolvedSpan(0, 1000, UNASSIGNED),
        ResolvedSpan(1000, 2000, 1),
        ResolvedSpan(2000, 2500, 2),
        ResolvedSpan(2500, 10_000, 1),
    ]
    _assert_partition(spans, 0, 10_000)


def test_resolve_range_merges_override_into_same_segment(resolver: SegmentResolver) -> None:
    resolver.create_segment("hourly", 1000, 3600)
    resolver.add_override_range(1, 2000, 2500)

    assert resolver.resolve_range(1000, 5000) == [ResolvedSpan(1000, 5000, 1)]


def test_resolve_range_reports_conflicts(lenient: SegmentResolver) -> None:
    lenient.create_segment("x", 0, 10)
    lenient.create_segment("y", 5, 10)

    spans = lenient.resolve_range(0, 100)

    assert spans == [ResolvedSpan(0, 5, 1), ResolvedSpan(5, 100, Conflict((1, 2)))]
    assert spans[1].is_conflict
    assert spans[1].segment_id is None
    assert spans[0].segment_id == 1


def test_resolve_range_with_windows(resolver: SegmentResolver) -> None:
    resolver.create_segment("am", 0, 100, 30)

    spans = resolver.resolve_range(0, 250)

    assert [(s.start, s.end, s.resolution) for s in spans] == [
        (0, 30, 1),
        (30, 100, UNASSIGNED),
        (100, 130, 1),
        (130, 200, UNASSIGNED),
        (200, 230, 1),
        (230, 250, UNASSIGNED),
    ]
    _assert_partition(spans, 0, 250)


def test_resolve_range_partition_with_mixed_sources(resolver: SegmentResolver) -> None:
    resolver.create_segment("day", 0, DAY, SHIFT)
    resolver.create_segment("evening", SHIFT, DAY, SHIFT)
    resolver.add_override_range(2, 1000, 2000)
    resolver.add_override_range(1, 2 * SHIFT + 10, 2 * SHIFT + 20)

    lo, hi = 500, 3 * DAY + 17
    spans = resolver.resolve_range(lo, hi)

    _assert_partition(spans, lo, hi)
    assert sum(s.end - s.start for s in spans) == hi - lo
    assert spans[0] == ResolvedSpan(500, 1000, 1)
    assert spans[1] == ResolvedSpan(1000, 2000, 2)


def test_resolve_range_is_bounded() -> None:
    r = SegmentResolver(max_range_instances=10)
    r.create_segment("blink", 0, 10, 5)

    with pytest.raises(RangeTooLarge):
        r.resolve_range(0, 1000)
    assert len(r.resolve_range(0, 50)) == 10


def test_resolve_range_on_tiling_segment_is_cheap() -> None:
    r = SegmentResolver(max_range_instances=1)
    r.create_segment("tick", 0, 1)

    assert r.resolve_range(-5, 10**15) == [ResolvedSpan(-5, 0, UNASSIGNED), ResolvedSpan(0, 10**15, 1)]


def test_resolve_range_rejects_empty_window(resolver: SegmentResolver) -> None:
    with pytest.raises(InvalidRange):
        resolver.resolve_range(5, 5)


# ---- write-through ----


def test_mutations_write_through_repo() -> None:
    repo = FakeSegmentRepo()
    r = SegmentResolver(repo=repo)

    sid = r.create_segment("hourly", 0, 3600)
    assert sid == 100
    assert repo.segments[sid] == TimeSegment(sid, "hourly", 0, 3600)

    r.add_override_range(sid, 100, 200)
    r.add_override_range(sid, 200, 300)
    assert repo.ranges == [TimeSegmentRange(sid, 100, 300)]

    r.remove_override_range(sid, 150, 160)
    assert repo.ranges == [TimeSegmentRange(sid, 100, 150), TimeSegmentRange(sid, 160, 300)]

    reloaded = SegmentResolver(repo=repo)
    assert reloaded.segments() == r.segments()
    assert reloaded.ranges() == r.ranges()


def test_failed_write_leaves_resolver_unchanged() -> None:
    repo = FakeSegmentRepo()
    r = SegmentResolver(repo=repo)
    sid = r.create_segment("hourly", 0, 3600)
    r.add_override_range(sid, 0, 10)

    repo.fail = True
    with pytest.raises(RuntimeError):
        r.add_override_range(sid, 10, 20)
    with pytest.raises(RuntimeError):
        r.redefine_segment(sid, 5, 3600)

    assert r.ranges() == [TimeSegmentRange(sid, 0, 10)]
    assert r.get_segment(sid) == TimeSegment(sid, "hourly", 0, 3600)
