# Database operations for the recurring event engine
# Session-level CRUD over agenda_events. Callers own the transaction.

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session
from sqlalchemy import select, and_, or_, func

from .schema import Event, EventType
from ..core.utils import ensure_utc, format_iso_millis, generate_event_id
from ..core.errors import EventNotFoundError

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# READS
# ============================================================================


def find_event(
    session: Session,
    owner_id: str,
    event_id: str,
    include_deleted: bool = False,
) -> Optional[Event]:
    """Stored event of owner_id by id, or None."""
    event = session.get(Event, event_id)
    if event is None or event.owner_id != owner_id:
        return None
    if event.deleted and not include_deleted:
        return None
    return event


def get_event(
    session: Session,
    owner_id: str,
    event_id: str,
) -> Event:
    """
    Get a live stored event.

    Raises:
        EventNotFoundError: unknown id, another owner's event, or soft-deleted
    """
    event = find_event(session, owner_id, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    return event


def list_events_in_window(
    session: Session,
    owner_id: str,
    window_start: datetime,
    window_end: datetime,
    event_type: Optional[EventType] = None,
    lead_id: Optional[str] = None,
    client_id: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Event]:
    """
    Live events of owner_id that can show up in [window_start, window_end].

    Returns non-recurring events intersecting the window plus every recurring
    master whose series has started by window_end and has not ended before
    window_start.
    """
    window_start = ensure_utc(window_start)
    window_end = ensure_utc(window_end)

    single = and_(
        Event.is_recurring.is_(False),
        Event.start_at < window_end,
        Event.end_at > window_start,
    )
    series = and_(
        Event.is_recurring.is_(True),
        Event.start_at <= window_end,
        or_(Event.recurrence_end.is_(None), Event.recurrence_end >= window_start),
    )

    query = (
        select(Event)
        .where(Event.owner_id == owner_id)
        .where(Event.deleted_at.is_(None))
        .where(or_(single, series))
    )
    if event_type is not None:
        query = query.where(Event.event_type == event_type)
    if lead_id:
        query = query.where(Event.lead_id == lead_id)
    if client_id:
        query = query.where(Event.client_id == client_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Event.title).like(pattern),
                func.lower(func.coalesce(Event.description, "")).like(pattern),
            )
        )

    query = query.order_by(Event.start_at, Event.id)
    return list(session.execute(query).scalars().all())


def list_overlapping_events(
    session: Session,
    owner_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> list[Event]:
    """Live stored rows of owner_id whose [start_at, end_at) meets [start, end)."""
    query = (
        select(Event)
        .where(Event.owner_id == owner_id)
        .where(Event.deleted_at.is_(None))
        .where(Event.start_at < ensure_utc(end))
        .where(Event.end_at > ensure_utc(start))
    )
    if exclude_id:
        query = query.where(Event.id != exclude_id)
    query = query.order_by(Event.start_at, Event.id)
    return list(session.execute(query).scalars().all())


# ============================================================================
# WRITES
# ============================================================================


def create_event(
    session: Session,
    owner_id: str,
    title: str,
    start_at: datetime,
    end_at: datetime,
    time_zone: str,
    event_id: Optional[str] = None,
    **fields: Any,
) -> Event:
    """Insert an event and flush so defaults are populated."""
    now = _now()
    event = Event(
        id=event_id or generate_event_id(),
        owner_id=owner_id,
        title=title,
        start_at=ensure_utc(start_at),
        end_at=ensure_utc(end_at),
        time_zone=time_zone,
        created_at=now,
        updated_at=now,
        **fields,
    )
    session.add(event)
    session.flush()
    logger.info("Created event %s for owner %s", event.id, owner_id)
    return event


def update_event(
    session: Session,
    event: Event,
    changes: dict[str, Any],
) -> Event:
    """Apply attribute changes to a stored event."""
    for key, value in changes.items():
        if key in ("id", "owner_id", "exception_dates", "created_at", "deleted_at"):
            continue
        setattr(event, key, value)
    event.updated_at = _now()
    session.flush()
    logger.info("Updated event %s (%s)", event.id, ", ".join(sorted(changes)) or "no fields")
    return event


def soft_delete_event(session: Session, event: Event) -> Event:
    """Mark an event deleted. Rows are never physically removed."""
    if event.deleted_at is None:
        event.deleted_at = _now()
        event.updated_at = event.deleted_at
        session.flush()
        logger.info("Soft-deleted event %s", event.id)
    return event


def append_exception_date(
    session: Session,
    owner_id: str,
    event_id: str,
    instant: datetime,
) -> Event:
    """
    Add an exception date to a master under a row lock.

    The list is append-only and the append is idempotent. The row is locked
    with SELECT ... FOR UPDATE where the backend supports it so concurrent
    appends cannot drop each other's entries.

    Raises:
        EventNotFoundError: no live master with that id for owner_id
    """
    event = session.execute(
        select(Event)
        .where(Event.id == event_id)
        .where(Event.owner_id == owner_id)
        .where(Event.deleted_at.is_(None))
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().first()
    if event is None:
        raise EventNotFoundError(event_id)

    key = format_iso_millis(instant)
    current = list(event.exception_dates or [])
    if key not in current:
        # Reassign so the JSON column is flagged dirty
        event.exception_dates = current + [key]
        event.updated_at = _now()
        session.flush()
        logger.info("Excluded %s from series %s", key, event_id)
    return event
