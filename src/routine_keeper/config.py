# src/routine_keeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing but .env loading happens at import time.
- Every component receives Settings explicitly; get_settings() is only for the CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "ROUTINE"

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

    # ---- Storage ----
    data_dir: Path
    db_path: Path
    db_timeout_seconds: float

    # ---- Sweep ----
    sweep_period_seconds: int
    sweep_catch_up: bool
    sweep_on_start: bool

    # ---- Webhooks ----
    webhooks_enabled: bool
    webhook_timeout_seconds: float

    # ---- Console ----
    console_enabled: bool
    user_email: str
    default_timezone: str

    @property
    def sweep_period_ms(self) -> int:
        return int(self.sweep_period_seconds) * 1000

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "routine-keeper").strip() or "routine-keeper"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/routine"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "routine.sqlite3")
        db_timeout_seconds = _env_float(_k("DB_TIMEOUT_SECONDS"), 30.0)

        # Hourly in the reference deployment.
        sweep_period_seconds = max(1, _env_int(_k("SWEEP_PERIOD_SECONDS"), 3600))
        sweep_catch_up = _env_bool(_k("SWEEP_CATCH_UP"), False)
        sweep_on_start = _env_bool(_k("SWEEP_ON_START"), True)

        webhooks_enabled = _env_bool(_k("WEBHOOKS_ENABLED"), True)
        webhook_timeout_seconds = _env_float(_k("WEBHOOK_TIMEOUT_SECONDS"), 10.0)

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        user_email = _env(_k("USER_EMAIL"), "admin@example.com").strip().lower()
        default_timezone = _env(_k("DEFAULT_TIMEZONE"), "UTC").strip() or "UTC"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            db_timeout_seconds=db_timeout_seconds,
            sweep_period_seconds=sweep_period_seconds,
            sweep_catch_up=sweep_catch_up,
            sweep_on_start=sweep_on_start,
            webhooks_enabled=webhooks_enabled,
            webhook_timeout_seconds=webhook_timeout_seconds,
            console_enabled=console_enabled,
            user_email=user_email,
            default_timezone=default_timezone,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
