# src/dagenda/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time; every value has a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DAGENDA"


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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Agenda ----
    lookahead_minutes: int
    notify_interval_seconds: float

    # ---- Connector flags ----
    console_enabled: bool
    notifier_enabled: bool

    @property
    def lookahead_ms(self) -> int:
        return self.lookahead_minutes * 60 * 1000

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dagenda"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "dagenda"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=data_dir,
            tasks_db_path=_env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3"),
            lookahead_minutes=max(0, _env_int(_k("LOOKAHEAD_MINUTES"), 24 * 60)),
            notify_interval_seconds=max(1.0, _env_float(_k("NOTIFY_INTERVAL_SECONDS"), 30.0)),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            notifier_enabled=_env_bool(_k("NOTIFIER_ENABLED"), False),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load settings once (reading a local .env first, never overriding real env vars)."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
