# src/segment_scheduler/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The resolver depends on Protocols instead of concrete storage. Persistence is
a synchronous load/save collaborator; SegmentStore (SQLite) is the default
implementation and tests use in-memory fakes.
"""

from collections.abc import Iterable
from typing import Protocol

from ..segments.models import TimeSegment, TimeSegmentRange


class SegmentRepo(Protocol):
    def load_segments(self) -> list[TimeSegment]: ...
    def load_ranges(self) -> list[TimeSegmentRange]: ...

    def insert_segment(
            self,
            *,
            name: str,
            start: int,
            period: int,
            window: int | None = None,
    ) -> int: ...

    def update_segment(self, segment: TimeSegment) -> None: ...
    def delete_segment(self, segment_id: int) -> None: ...

    def replace_ranges(
            self,
            segment_id: int,
            *,
            remove: Iterable[TimeSegmentRange],
            add: Iterable[TimeSegmentRange],
    ) -> None:
        """Drop every stored row of the segment inside each `remove` range, then store `add`."""
        ...


class TaskBindingRepo(Protocol):
    """Read-only view of the task table: who points at a segment."""
    def count_tasks_for_segment(self, segment_id: int) -> int: ...
