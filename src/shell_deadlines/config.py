# src/shell_deadlines/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole job.
- No secrets required at import time; backends validate what they need.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

ENV_PREFIX = "SHELLS"

BACKEND_SQLITE = "sqlite"
BACKEND_SUPABASE = "supabase"
BACKENDS = (BACKEND_SQLITE, BACKEND_SUPABASE)

logger = logging.getLogger(__name__)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
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

    # ---- Storage backend ----
    backend: str
    data_dir: Path
    tasks_db_path: Path
    supabase_url: str
    supabase_service_role_key: str | None

    # ---- Notification transport ----
    webhook_url: str
    webhook_timeout_seconds: float

    # ---- Scan tuning ----
    timezone_name: str
    reminder_minutes: int
    overdue_grace_minutes: int
    scan_interval_seconds: float

    @property
    def tz(self) -> tzinfo:
        try:
            return ZoneInfo(self.timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC", self.timezone_name)
            return ZoneInfo("UTC")

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "shell-deadlines")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        backend = _env(_k("BACKEND"), BACKEND_SQLITE).strip().lower()
        if backend not in BACKENDS:
            backend = BACKEND_SQLITE

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/shells"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_service_role_key = _first_env(
            _k("SUPABASE_SERVICE_ROLE_KEY"), "SUPABASE_SERVICE_ROLE_KEY", default=None
        )

        webhook_url = _env(_k("WEBHOOK_URL"), "").strip()
        webhook_timeout_seconds = _env_float(_k("WEBHOOK_TIMEOUT_SECONDS"), 10.0)

        timezone_name = _env(_k("TIMEZONE"), "UTC").strip() or "UTC"
        reminder_minutes = max(1, _env_int(_k("REMINDER_MINUTES"), 15))
        overdue_grace_minutes = max(1, _env_int(_k("OVERDUE_GRACE_MINUTES"), 2))
        scan_interval_seconds = _env_float(_k("SCAN_INTERVAL_SECONDS"), 60.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            backend=backend,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            supabase_url=supabase_url,
            supabase_service_role_key=supabase_service_role_key,
            webhook_url=webhook_url,
            webhook_timeout_seconds=webhook_timeout_seconds,
            timezone_name=timezone_name,
            reminder_minutes=reminder_minutes,
            overdue_grace_minutes=overdue_grace_minutes,
            scan_interval_seconds=scan_interval_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load .env (without overriding the real environment) and cache Settings."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
