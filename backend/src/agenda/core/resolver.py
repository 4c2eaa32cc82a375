# Update-scope resolution
# Decides what an edit or delete aimed at a master or an occurrence turns
# into. Pure: returns a plan, the service executes it.

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from ..database.schema import UpdateScope
from . import rules
from .errors import ValidationError
from .identity import OccurrenceRef
from .utils import ensure_utc, to_civil

# Fields a standalone exception inherits from its series
INHERITED_FIELDS = (
    "owner_id",
    "title",
    "description",
    "event_type",
    "location",
    "meeting_url",
    "attendees_count",
    "reminder_minutes",
    "lead_id",
    "client_id",
    "is_all_day",
    "time_zone",
)


@dataclass(frozen=True)
class PatchMaster:
    """Apply changes to the stored event itself."""

    event_id: str
    changes: dict[str, Any]
    start_at: datetime
    end_at: datetime
    is_all_day: bool
    time_zone: str
    timing_changed: bool


@dataclass(frozen=True)
class DetachOccurrence:
    """Except one occurrence from its series and store its edited copy."""

    master_id: str
    occurrence_start: datetime
    fields: dict[str, Any]
    timing_changed: bool

    @property
    def start_at(self) -> datetime:
        return self.fields["start_at"]

    @property
    def end_at(self) -> datetime:
        return self.fields["end_at"]


@dataclass(frozen=True)
class ExcludeOccurrence:
    """Except one occurrence from its series; nothing else changes."""

    master_id: str
    occurrence_start: datetime


@dataclass(frozen=True)
class RetireEvent:
    """Soft-delete the stored event (a whole series when it is a master)."""

    event_id: str


UpdatePlan = Union[PatchMaster, DetachOccurrence]
RemovalPlan = Union[ExcludeOccurrence, RetireEvent]


def _check_window(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError("endAt must be after startAt", field="endAt")


def resolve_update(
    event,
    ref: Optional[OccurrenceRef],
    scope: UpdateScope,
    payload,
) -> UpdatePlan:
    """
    Plan an update.

    Args:
        event: The stored event the target id resolved to (the master when the
            target is an occurrence id)
        ref: Decoded occurrence reference, None when the target is a stored id
        scope: THIS_ONLY or ALL_FUTURE; ignored for stored ids
        payload: DetailsUpdate, ScheduleUpdate or RecurrenceUpdate

    Raises:
        ValidationError: the payload cannot apply to the target
        InvalidRuleError: the resulting recurrence rule does not parse
    """
    if ref is not None and scope == UpdateScope.THIS_ONLY:
        return _detach(event, ref, payload)
    return _patch(event, payload)


def _detach(master, ref: OccurrenceRef, payload) -> DetachOccurrence:
    if payload.changes_recurrence:
        raise ValidationError(
            "A single occurrence cannot change the series recurrence; use ALL_FUTURE",
            field="updateMode",
        )

    changes = payload.changes()
    fields = {name: getattr(master, name) for name in INHERITED_FIELDS}
    fields["reminder_minutes"] = list(master.reminder_minutes or [])
    fields.update(changes)

    instant = ensure_utc(ref.instant)
    duration = master.end_at - master.start_at
    start = changes.get("start_at", instant)
    end = changes.get("end_at", start + duration)
    _check_window(start, end)

    fields.update(
        start_at=start,
        end_at=end,
        is_recurring=False,
        recurrence_rule=None,
        recurrence_end=None,
        exception_dates=[],
        parent_event_id=master.id,
    )
    timing_changed = (
        start != instant
        or end != instant + duration
        or fields["is_all_day"] != master.is_all_day
    )
    return DetachOccurrence(
        master_id=master.id,
        occurrence_start=instant,
        fields=fields,
        timing_changed=timing_changed,
    )


def _patch(event, payload) -> PatchMaster:
    changes = payload.changes()
    old_start = ensure_utc(event.start_at)
    old_end = ensure_utc(event.end_at)

    start = changes.get("start_at", old_start)
    if "end_at" in changes:
        end = changes["end_at"]
    else:
        # Moving only the start keeps the duration
        end = start + (old_end - old_start)
        if start != old_start:
            changes["end_at"] = end
    _check_window(start, end)

    is_all_day = changes.get("is_all_day", event.is_all_day)
    time_zone = changes.get("time_zone", event.time_zone)
    is_recurring = changes.get("is_recurring", event.is_recurring)
    rule_text = changes["recurrence_rule"] if "recurrence_rule" in changes else event.recurrence_rule

    if event.parent_event_id and (is_recurring or rule_text):
        raise ValidationError(
            "A standalone occurrence cannot become recurring", field="isRecurring"
        )

    if not is_recurring:
        if event.exception_dates:
            raise ValidationError(
                "A series with excepted occurrences cannot stop recurring; delete it instead",
                field="isRecurring",
            )
        if changes.get("recurrence_rule"):
            raise ValidationError(
                "recurrenceRule requires isRecurring", field="recurrenceRule"
            )
        if event.is_recurring:
            changes.update(recurrence_rule=None, recurrence_end=None)
    else:
        if not rule_text:
            raise ValidationError(
                "recurring events require a recurrenceRule", field="recurrenceRule"
            )
        rule = rules.parse(rule_text, start, time_zone)
        if "recurrence_rule" not in changes and start != old_start:
            shifted = rules.shift_weekdays(
                rule,
                to_civil(old_start, event.time_zone),
                to_civil(start, time_zone),
            )
            if shifted != rule:
                changes["recurrence_rule"] = rules.serialize(shifted)

    timing_changed = (
        start != old_start or end != old_end or is_all_day != event.is_all_day
    )
    return PatchMaster(
        event_id=event.id,
        changes=changes,
        start_at=start,
        end_at=end,
        is_all_day=is_all_day,
        time_zone=time_zone,
        timing_changed=timing_changed,
    )


def resolve_removal(
    event,
    ref: Optional[OccurrenceRef],
    scope: UpdateScope,
) -> RemovalPlan:
    """
    Plan a delete.

    An occurrence removed with THIS_ONLY only gains an exception date; any
    other target retires the stored event. Exception dates are never touched
    by retirement.
    """
    if ref is not None and scope == UpdateScope.THIS_ONLY:
        return ExcludeOccurrence(master_id=event.id, occurrence_start=ensure_utc(ref.instant))
    return RetireEvent(event_id=event.id)
