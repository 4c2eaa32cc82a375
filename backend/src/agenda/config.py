from __future__ import annotations

from dataclasses import dataclass
from os import environ as os_environ
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///agenda.db"
DEFAULT_TIME_ZONE = "America/Sao_Paulo"

_TRUTHY = ("1", "true", "yes", "on")


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    time_zone: str = DEFAULT_TIME_ZONE
    log_level: str = "INFO"
    sql_echo: bool = False
    sync_url: Optional[str] = None
    sync_timeout: float = 10.0
    sync_workers: int = 2
    default_window_days: int = 30

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        AGENDA_DATABASE_URL falls back to DATABASE_URL, then to a local
        SQLite file. AGENDA_SYNC_URL left unset disables external sync.
        """
        if environ is None:
            environ = os_environ

        time_zone = environ.get("AGENDA_TIME_ZONE") or DEFAULT_TIME_ZONE
        try:
            ZoneInfo(time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"AGENDA_TIME_ZONE is not a known time zone: {time_zone!r}")

        return cls(
            database_url=(
                environ.get("AGENDA_DATABASE_URL")
                or environ.get("DATABASE_URL")
                or DEFAULT_DATABASE_URL
            ),
            time_zone=time_zone,
            log_level=(environ.get("AGENDA_LOG_LEVEL") or "INFO").upper(),
            sql_echo=(environ.get("AGENDA_SQL_ECHO") or "").strip().lower() in _TRUTHY,
            sync_url=environ.get("AGENDA_SYNC_URL") or None,
            sync_timeout=_read_float(environ, "AGENDA_SYNC_TIMEOUT", 10.0),
            sync_workers=_read_int(environ, "AGENDA_SYNC_WORKERS", 2),
            default_window_days=_read_int(environ, "AGENDA_DEFAULT_WINDOW_DAYS", 30),
        )


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Load a .env file (if any) into the process environment, then read settings."""
    load_dotenv(dotenv_path)
    return Settings.from_environ()
