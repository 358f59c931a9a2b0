# src/segment_scheduler/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Lowest level a record must reach to be shown on the console, by logger
# prefix. The most specific prefix wins; the file log keeps everything.
CONSOLE_FLOORS: dict[str, int] = {
    "segment_scheduler": logging.DEBUG,
    # one record per resolve_range / coalesce: file only
    "segment_scheduler.segments.resolver": logging.INFO,
    "segment_scheduler.segments.overrides": logging.INFO,
    # readiness, migrations, row counts
    "segment_scheduler.segments.store": logging.WARNING,
    "py.warnings": logging.ERROR,
}
THIRD_PARTY_FLOOR = logging.ERROR


def console_floor(name: str, floors: dict[str, int] = CONSOLE_FLOORS) -> int:
    best, best_len = THIRD_PARTY_FLOOR, -1
    for prefix, level in floors.items():
        if (name == prefix or name.startswith(prefix + ".")) and len(prefix) > best_len:
            best, best_len = level, len(prefix)
    return best


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive prompt readable even at DEBUG.

    Per-query resolution chatter and SQLite housekeeping go to the file log
    only; ambiguity and storage warnings still reach the console.
    """

    def __init__(self, floors: dict[str, int] | None = None) -> None:
        super().__init__()
        self._floors = dict(CONSOLE_FLOORS if floors is None else floors)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_floor(record.name, self._floors)


def setup_logging(
    *,
    log_dir: str | Path = ".local/segsched",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console (stderr, filtered) plus segsched.log in log_dir (unfiltered).

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "segsched.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
