# src/segment_scheduler/segments/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path

from .models import UNASSIGNED, Task, TimeSegment, TimeSegmentRange

logger = logging.getLogger(__name__)


class SegmentStore:
    """
    SQLite persistence for segments, override ranges and task bindings.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Override ranges have no identity of their own: a row is its
    (segment_id, start, end) value. Rows may be duplicated or touch each
    other; the resolver works on their coalesced union, so removing a range
    deletes every row of that segment lying inside it.

    This class stores what it is given. Validation (periods, overlaps,
    ambiguity) belongs to SegmentResolver.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "segments.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_segments()
        except sqlite3.Error:
            total = -1
        logger.info("SegmentStore ready db=%s segments=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS time_segments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
                    name TEXT NOT NULL,
                    start INTEGER NOT NULL,
                    period INTEGER NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS time_segment_ranges (
                    segment_id INTEGER NOT NULL,
                    start INTEGER NOT NULL,
                    "end" INTEGER NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    description TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL DEFAULT 0
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SegmentStore migration: added column %s.%s", table, name)

            # Older databases predate shift windows and task binding.
            add_col("time_segments", "window_length", "INTEGER")
            add_col("tasks", "description", "TEXT NOT NULL DEFAULT ''")
            add_col("tasks", "created_at", "REAL NOT NULL DEFAULT 0")
            add_col("tasks", "time_segment_id", f"INTEGER NOT NULL DEFAULT {UNASSIGNED}")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_ranges_segment ON time_segment_ranges(segment_id, start)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_segment ON tasks(time_segment_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_segment(row: sqlite3.Row) -> TimeSegment:
        window = row["window_length"]
        return TimeSegment(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            start=int(row["start"]),
            period=int(row["period"]),
            window=int(window) if window is not None else None,
        )

    @staticmethod
    def _row_to_range(row: sqlite3.Row) -> TimeSegmentRange:
        return TimeSegmentRange(
            segment_id=int(row["segment_id"]),
            start=int(row["start"]),
            end=int(row["end"]),
        )

    @staticmethod
    def _delete_covered_ranges(cur: sqlite3.Cursor, rng: TimeSegmentRange) -> int:
        cur.execute(
            """
            DELETE FROM time_segment_ranges
            WHERE segment_id = ? AND start >= ? AND "end" <= ?
            """,
            (int(rng.segment_id), int(rng.start), int(rng.end)),
        )
        return cur.rowcount

    @staticmethod
    def _insert_one_range(cur: sqlite3.Cursor, rng: TimeSegmentRange) -> None:
        cur.execute(
            'INSERT INTO time_segment_ranges(segment_id, start, "end") VALUES (?, ?, ?)',
            (int(rng.segment_id), int(rng.start), int(rng.end)),
        )

    # ---- segments ----

    def count_segments(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM time_segments").fetchone()
            return int(n)
        finally:
            conn.close()

    def load_segments(self) -> list[TimeSegment]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM time_segments ORDER BY id ASC").fetchall()
            return [self._row_to_segment(r) for r in rows]
        finally:
            conn.close()

    def insert_segment(
        self,
        *,
        name: str,
        start: int,
        period: int,
        window: int | None = None,
    ) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO time_segments(name, start, period, window_length) VALUES (?, ?, ?, ?)",
                (name, int(start), int(period), window),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for time_segments insert")
            segment_id = int(rowid)
            logger.debug("Segment row inserted id=%s", segment_id)
            return segment_id
        finally:
            conn.close()

    def update_segment(self, segment: TimeSegment) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE time_segments
                SET name = ?, start = ?, period = ?, window_length = ?
                WHERE id = ?
                """,
                (segment.name, int(segment.start), int(segment.period), segment.window, int(segment.id)),
            )
            conn.commit()
        finally:
            conn.close()

    def delete_segment(self, segment_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM time_segments WHERE id = ?", (int(segment_id),))
            conn.commit()
        finally:
            conn.close()

    # ---- override ranges ----

    def load_ranges(self) -> list[TimeSegmentRange]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                'SELECT segment_id, start, "end" FROM time_segment_ranges ORDER BY start ASC'
            ).fetchall()
            return [self._row_to_range(r) for r in rows]
        finally:
            conn.close()

    def replace_ranges(
        self,
        segment_id: int,
        *,
        remove: Iterable[TimeSegmentRange],
        add: Iterable[TimeSegmentRange],
    ) -> None:
        """
        Delete the rows covered by each `remove` range, then insert `add`, in
        one transaction.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            for rng in remove:
                if self._delete_covered_ranges(cur, rng) == 0:
                    logger.warning("No override rows matched %s for removal", rng)
            for rng in add:
                self._insert_one_range(cur, rng)
            conn.commit()
            logger.debug("Override rows replaced for segment=%s", segment_id)
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---- tasks (binding only) ----

    def add_task(self, description: str, *, time_segment_id: int = UNASSIGNED) -> int:
        if not description or not description.strip():
            raise ValueError("description is required")

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO tasks(description, created_at, time_segment_id) VALUES (?, ?, ?)",
                (description.strip(), time.time(), int(time_segment_id)),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            return int(rowid)
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT id, description, created_at, time_segment_id FROM tasks WHERE id = ?",
                (int(task_id),),
            ).fetchone()
            if row is None:
                return None
            return Task(
                id=int(row["id"]),
                description=str(row["description"] or ""),
                created_at=float(row["created_at"] or 0.0),
                time_segment_id=int(row["time_segment_id"] or UNASSIGNED),
            )
        finally:
            conn.close()

    def count_tasks_for_segment(self, segment_id: int) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE time_segment_id = ?", (int(segment_id),)
            ).fetchone()
            return int(n)
        finally:
            conn.close()
