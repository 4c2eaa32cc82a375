from datetime import datetime

from pydantic import BaseModel, ConfigDict

from .schema import EventType


class EventSchema(BaseModel):
    """Detached, immutable snapshot of a persisted event."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    owner_id: str
    title: str
    description: str | None = None
    event_type: EventType = EventType.MEETING
    location: str | None = None
    meeting_url: str | None = None
    attendees_count: int = 1
    reminder_minutes: list[int] = [30]
    lead_id: str | None = None
    client_id: str | None = None
    start_at: datetime
    end_at: datetime
    is_all_day: bool = False
    time_zone: str
    is_recurring: bool = False
    recurrence_rule: str | None = None
    recurrence_end: datetime | None = None
    exception_dates: list[str] = []
    parent_event_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
