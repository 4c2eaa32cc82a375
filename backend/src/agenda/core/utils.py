# Utility functions for the recurring event engine
# ID generation, instant parsing/formatting, civil-time conversion, clocks

import base64
import uuid
from datetime import datetime, timezone, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dateutil import parser as date_parser

from .errors import ValidationError


# ============================================================================
# ID GENERATION
# ============================================================================


def generate_event_id() -> str:
    """
    Generate an event ID.

    UUID v4 encoded as lowercase base32hex: characters a-v and 0-9 only.
    The alphabet never contains the occurrence id separator, so occurrence
    ids built from generated event ids always decode unambiguously.
    """
    raw = uuid.uuid4().bytes
    return base64.b32hexencode(raw).decode("ascii").lower().rstrip("=")


# ============================================================================
# INSTANTS
# ============================================================================


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an ISO-8601 / RFC3339 instant into an aware UTC datetime.

    Supports:
    - 2026-01-15T10:30:00Z
    - 2026-01-15T10:30:00.000Z
    - 2026-01-15T10:30:00-03:00
    """
    return ensure_utc(date_parser.isoparse(value))


def format_iso_millis(dt: datetime) -> str:
    """
    Canonical instant form used in occurrence ids and exception keys.

    Always UTC, millisecond precision, trailing Z:
    2026-01-20T13:00:00.000Z
    """
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


# ============================================================================
# CIVIL TIME
# ============================================================================


def get_zone(zone_id: str) -> ZoneInfo:
    """Resolve an IANA zone identifier, raising ValidationError if unknown."""
    try:
        return ZoneInfo(zone_id)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {zone_id}", field="timeZone")


def to_civil(instant: datetime, zone_id: str) -> datetime:
    """
    Convert an absolute instant to naive civil (wall clock) time in zone_id.

    >>> to_civil(datetime(2026, 1, 1, 16, 0, tzinfo=timezone.utc), "America/Sao_Paulo")
    datetime.datetime(2026, 1, 1, 13, 0)
    """
    return ensure_utc(instant).astimezone(get_zone(zone_id)).replace(tzinfo=None)


def from_civil(civil: datetime, zone_id: str) -> datetime:
    """
    Convert naive civil time in zone_id back to an aware UTC instant.

    Wall-clock times skipped by a DST transition resolve with fold=0, so they
    land on the offset in effect before the gap.
    """
    if civil.tzinfo is not None:
        civil = civil.replace(tzinfo=None)
    return civil.replace(tzinfo=get_zone(zone_id)).astimezone(timezone.utc)


# ============================================================================
# CLOCKS
# ============================================================================


class Clock:
    """Source of the current instant."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; advance() moves it forward."""

    def __init__(self, instant: Optional[datetime] = None):
        self._instant = ensure_utc(instant or datetime(2026, 1, 1, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta
