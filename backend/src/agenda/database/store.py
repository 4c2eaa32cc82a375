"""
Typed store wrapper for the recurring event engine.

This module provides a class-based API over the session-level operations,
so the service layer depends on one object instead of a session plus a set
of functions.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from . import operations as ops
from .locks import lock_owner
from .pydantic_schemas import EventSchema
from .schema import Event, EventType


class EventStore:
    """
    Persistence collaborator bound to one session.

    Example usage:
        store = EventStore(session)

        event = store.create(
            owner_id="user-1",
            title="Weekly sync",
            start_at=datetime(2026, 1, 5, 13, 0, tzinfo=timezone.utc),
            end_at=datetime(2026, 1, 5, 14, 0, tzinfo=timezone.utc),
            time_zone="America/Sao_Paulo",
        )
        store.append_exception_date("user-1", event.id, occurrence_start)
    """

    def __init__(self, session: Session):
        self.session = session

    def find(self, owner_id: str, event_id: str) -> Optional[Event]:
        return ops.find_event(self.session, owner_id, event_id)

    def get(self, owner_id: str, event_id: str) -> Event:
        return ops.get_event(self.session, owner_id, event_id)

    def list_in_window(
        self,
        owner_id: str,
        window_start: datetime,
        window_end: datetime,
        event_type: Optional[EventType] = None,
        lead_id: Optional[str] = None,
        client_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Event]:
        return ops.list_events_in_window(
            self.session,
            owner_id,
            window_start,
            window_end,
            event_type=event_type,
            lead_id=lead_id,
            client_id=client_id,
            search=search,
        )

    def list_overlapping(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> list[Event]:
        return ops.list_overlapping_events(
            self.session, owner_id, start, end, exclude_id=exclude_id
        )

    def create(self, **fields: Any) -> Event:
        return ops.create_event(self.session, **fields)

    def update(self, event: Event, changes: dict[str, Any]) -> Event:
        return ops.update_event(self.session, event, changes)

    def soft_delete(self, event: Event) -> Event:
        return ops.soft_delete_event(self.session, event)

    def append_exception_date(self, owner_id: str, event_id: str, instant: datetime) -> Event:
        return ops.append_exception_date(self.session, owner_id, event_id, instant)

    def lock_owner(self, owner_id: str) -> None:
        lock_owner(self.session, owner_id)

    @staticmethod
    def snapshot(event: Event) -> EventSchema:
        """Detached copy safe to hand to other threads after commit."""
        return EventSchema.model_validate(event)
