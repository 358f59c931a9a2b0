# src/segment_scheduler/segments/models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

UNASSIGNED: Final = 0
# Same sentinel as tasks.time_segment_id: "no segment".


@dataclass(frozen=True, slots=True)
class TimeSegment:
    """
    A named recurrence.

    Instance k covers [start + k*period, start + k*period + window).
    window defaults to period, in which case consecutive instances tile the
    timeline from start onwards.
    """

    id: int
    name: str
    start: int
    period: int
    window: int | None = None

    @property
    def active_window(self) -> int:
        return self.period if self.window is None else self.window


@dataclass(frozen=True, slots=True)
class TimeSegmentRange:
    """Override: [start, end) belongs to segment_id regardless of any recurrence."""

    segment_id: int
    start: int
    end: int

    def contains(self, instant: int) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, lo: int, hi: int) -> bool:
        return self.start < hi and lo < self.end


@dataclass(frozen=True, slots=True)
class Conflict:
    """Several recurring segments claim the same span."""

    candidates: tuple[int, ...]


Resolution = int | Conflict


@dataclass(frozen=True, slots=True)
class ResolvedSpan:
    start: int
    end: int
    resolution: Resolution

    @property
    def is_conflict(self) -> bool:
        return isinstance(self.resolution, Conflict)

    @property
    def segment_id(self) -> int | None:
        """Resolved segment id, UNASSIGNED, or None for a conflict."""
        if isinstance(self.resolution, Conflict):
            return None
        return self.resolution


@dataclass(slots=True)
class Task:
    """The slice of a task row this package cares about."""

    id: int
    description: str
    created_at: float
    time_segment_id: int = UNASSIGNED
