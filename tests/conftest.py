# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from segment_scheduler.cli.bootstrap import create_initial_state
from segment_scheduler.core.state import AppState
from segment_scheduler.segments.resolver import SegmentResolver
from segment_scheduler.segments.store import SegmentStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        db_path=tmp_path / "segments.sqlite3",
        strict_schedules=True,
        max_range_instances=10_000,
    )


@pytest.fixture()
def store(tmp_path: Path) -> SegmentStore:
    return SegmentStore(tmp_path / "store.sqlite3")


@pytest.fixture()
def resolver() -> SegmentResolver:
    """Strict, in-memory resolver."""
    return SegmentResolver()


@pytest.fixture()
def lenient() -> SegmentResolver:
    """In-memory resolver that lets overlapping recurrences through creation."""
    return SegmentResolver(strict=False)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real bootstrap.

    NOTE: We keep the real SQLite store here because write-through is part of
    what we want to test.
    """
    return create_initial_state(settings=settings)
