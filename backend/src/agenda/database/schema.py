# Schema for the recurring event engine
# One table: masters, standalone exceptions and plain events share agenda_events.

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional
from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Index,
    TypeDecorator,
)
from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column
from .base import Base


# ============================================================================
# TYPES
# ============================================================================


class UTCDateTime(TypeDecorator):
    """
    Timestamp stored as naive UTC and loaded back as aware UTC.

    SQLite has no timezone support, so the column never relies on the
    backend to keep offsets.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================


class EventType(PyEnum):
    """Event classification."""

    DEMO = "DEMO"
    MEETING = "MEETING"
    CALL = "CALL"
    FOLLOWUP = "FOLLOWUP"
    SUPPORT = "SUPPORT"
    INTERNAL = "INTERNAL"


class UpdateScope(PyEnum):
    """Which part of a recurring series an edit or delete applies to."""

    THIS_ONLY = "THIS_ONLY"
    ALL_FUTURE = "ALL_FUTURE"


# ============================================================================
# MODELS
# ============================================================================


class Event(Base):
    """
    Persisted event.

    A row is one of:
    - a plain event (is_recurring False, parent_event_id None)
    - a recurring master (is_recurring True, recurrence_rule set)
    - a standalone exception carved out of a series (parent_event_id set)
    """

    __tablename__ = "agenda_events"
    __table_args__ = (
        Index("ix_agenda_event_owner", "owner_id"),
        Index("ix_agenda_event_owner_start", "owner_id", "start_at"),
        Index("ix_agenda_event_parent", "parent_event_id"),
        Index("ix_agenda_event_deleted", "deleted_at"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Display fields
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, name="agenda_event_type_enum"),
        default=EventType.MEETING,
        nullable=False,
    )
    location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    meeting_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    attendees_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    reminder_minutes: Mapped[list[int]] = mapped_column(JSON, default=lambda: [30])

    # Associations (owned by other services)
    lead_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timing
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    time_zone: Mapped[str] = mapped_column(String(64), nullable=False)

    # Recurrence
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_rule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recurrence_end: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    # Canonical ISO instants (see core.utils.format_iso_millis); append-only
    exception_dates: Mapped[list[str]] = mapped_column(JSON, default=list)
    parent_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def duration(self):
        return self.end_at - self.start_at

    def __repr__(self) -> str:
        return f"<Event {self.id} {self.title!r} {self.start_at.isoformat()}>"
