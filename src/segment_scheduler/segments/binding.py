# src/segment_scheduler/segments/binding.py

from __future__ import annotations

from typing import Protocol

from .errors import InvalidSegment
from .models import UNASSIGNED


class SegmentLookup(Protocol):
    def has_segment(self, segment_id: int) -> bool: ...


def validate_binding(segments: SegmentLookup, time_segment_id: int) -> None:
    """
    Check a task's time_segment_id.

    0 (unassigned) is always fine; anything else must name an existing
    segment or InvalidSegment is raised. Advisory only: task rows are never
    touched here.
    """
    if time_segment_id == UNASSIGNED:
        return
    if not segments.has_segment(time_segment_id):
        raise InvalidSegment(time_segment_id)


def is_valid_binding(segments: SegmentLookup, time_segment_id: int) -> bool:
    try:
        validate_binding(segments, time_segment_id)
    except InvalidSegment:
        return False
    return True
