# src/segment_scheduler/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires SegmentStore and SegmentResolver into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..segments.resolver import SegmentResolver
from ..segments.store import SegmentStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = SegmentStore(settings.db_path)
    resolver = SegmentResolver(
        repo=store,
        tasks=store,
        strict=settings.strict_schedules,
        max_range_instances=settings.max_range_instances,
    )

    conflicts = resolver.validate_all()
    if conflicts:
        logger.warning("Stored schedule has overlapping recurrences: %s", conflicts)

    return AppState(settings=settings, store=store, resolver=resolver)
