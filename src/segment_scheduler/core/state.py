# src/segment_scheduler/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..segments.resolver import SegmentResolver
from ..segments.store import SegmentStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    store: SegmentStore
    resolver: SegmentResolver
