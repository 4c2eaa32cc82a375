# Response serializers
# Converts events and occurrences to camelCase JSON bodies

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from .expander import Occurrence


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as RFC3339 string."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _enum_value(val: Any) -> Any:
    if isinstance(val, Enum):
        return val.value
    return val


def _display(source) -> dict[str, Any]:
    return {
        "title": source.title,
        "description": source.description,
        "type": _enum_value(source.event_type),
        "location": source.location,
        "meetingUrl": source.meeting_url,
        "attendeesCount": source.attendees_count,
        "reminderMinutes": list(source.reminder_minutes or []),
        "leadId": source.lead_id,
        "clientId": source.client_id,
        "isAllDay": source.is_all_day,
        "timeZone": source.time_zone,
    }


# ============================================================================
# EVENT SERIALIZER
# ============================================================================


def serialize_event(event) -> dict[str, Any]:
    """
    Serialize a stored event (ORM row or EventSchema snapshot).

    Response format:
    {
        "id": "...",
        "ownerId": "...",
        "title": "...",
        "startAt": "2026-01-01T16:00:00+00:00",
        "endAt": "...",
        "isRecurring": true,
        "recurrenceRule": "RRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR",
        "exceptionDates": ["2026-01-05T16:00:00.000Z"],
        "parentEventId": null,
        ...
    }
    """
    result: dict[str, Any] = {
        "id": event.id,
        "ownerId": event.owner_id,
        **_display(event),
        "startAt": _format_datetime(event.start_at),
        "endAt": _format_datetime(event.end_at),
        "isRecurring": event.is_recurring,
        "recurrenceRule": event.recurrence_rule,
        "recurrenceEnd": _format_datetime(event.recurrence_end),
        "exceptionDates": list(event.exception_dates or []),
        "parentEventId": event.parent_event_id,
        "isVirtual": False,
        "createdAt": _format_datetime(event.created_at),
        "updatedAt": _format_datetime(event.updated_at),
    }
    return result


# ============================================================================
# OCCURRENCE SERIALIZER
# ============================================================================


def serialize_occurrence(occurrence: Occurrence) -> dict[str, Any]:
    """Serialize an expanded occurrence; virtual ones carry their encoded id."""
    return {
        "id": occurrence.id,
        "ownerId": occurrence.owner_id,
        **_display(occurrence),
        "startAt": _format_datetime(occurrence.start_at),
        "endAt": _format_datetime(occurrence.end_at),
        "isRecurring": occurrence.is_recurring,
        "isVirtual": occurrence.is_virtual,
        "masterId": occurrence.master_id,
        "parentEventId": occurrence.parent_event_id,
    }


def serialize_occurrence_list(occurrences: Iterable[Occurrence]) -> dict[str, Any]:
    items = [serialize_occurrence(o) for o in occurrences]
    return {"items": items, "total": len(items)}


def serialize_result(value) -> dict[str, Any]:
    """Serialize whatever the service handed back for a single target."""
    if isinstance(value, Occurrence):
        return serialize_occurrence(value)
    return serialize_event(value)
