# src/segment_scheduler/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Core classes never read it implicitly; the CLI composition root passes
  values into SegmentResolver / SegmentStore.

Environment:
- SEGSCHED_APP_NAME              display name (default: segsched)
- SEGSCHED_LOG_LEVEL             console log level (default: INFO)
- SEGSCHED_DATA_DIR              local data + log directory (default: .local/segsched)
- SEGSCHED_DB_PATH               SQLite file (default: <data_dir>/segments.sqlite3)
- SEGSCHED_STRICT_SCHEDULES      reject overlapping recurrences on create/redefine (default: true)
- SEGSCHED_MAX_RANGE_INSTANCES   cap on recurrence instances per timetable query (default: 100000)
- SEGSCHED_CONSOLE_ENABLED       run the console loop (default: true)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "SEGSCHED"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Engine tuning ----
    strict_schedules: bool
    max_range_instances: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "segsched").strip() or "segsched"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/segsched"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "segments.sqlite3")

        strict_schedules = _env_bool(_k("STRICT_SCHEDULES"), True)
        max_range_instances = max(1, _env_int(_k("MAX_RANGE_INSTANCES"), 100_000))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            strict_schedules=strict_schedules,
            max_range_instances=max_range_instances,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
