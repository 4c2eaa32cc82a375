from .base import Base
from .db import SessionManager, build_engine
from .operations import (
    append_exception_date,
    create_event,
    find_event,
    get_event,
    list_events_in_window,
    list_overlapping_events,
    soft_delete_event,
    update_event,
)
from .pydantic_schemas import EventSchema
from .schema import Event, EventType, UpdateScope, UTCDateTime
from .store import EventStore

__all__ = [
    "Base",
    "SessionManager",
    "build_engine",
    "append_exception_date",
    "create_event",
    "find_event",
    "get_event",
    "list_events_in_window",
    "list_overlapping_events",
    "soft_delete_event",
    "update_event",
    "EventSchema",
    "Event",
    "EventType",
    "UpdateScope",
    "UTCDateTime",
    "EventStore",
]
