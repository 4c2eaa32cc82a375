# Occurrence expansion
# Turns a persisted event plus a window into the concrete occurrences a
# calendar view shows. Nothing here touches the database.

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from . import identity, rules
from .errors import ValidationError
from .utils import ensure_utc, from_civil, parse_rfc3339, to_civil

# Covers the largest offset jump a zone transition can make
_CIVIL_PADDING = timedelta(days=1)


@dataclass(frozen=True)
class Occurrence:
    """
    One concrete appearance of an event on the calendar.

    Virtual occurrences (is_virtual True) are synthesized from a recurring
    master and carry an encoded id; plain and standalone events appear as
    themselves.
    """

    id: str
    master_id: str
    owner_id: str
    title: str
    start_at: datetime
    end_at: datetime
    is_all_day: bool
    time_zone: str
    is_virtual: bool
    is_recurring: bool
    parent_event_id: Optional[str] = None
    description: Optional[str] = None
    event_type: Any = None
    location: Optional[str] = None
    meeting_url: Optional[str] = None
    attendees_count: int = 1
    reminder_minutes: tuple[int, ...] = ()
    lead_id: Optional[str] = None
    client_id: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at


def _display_fields(event) -> dict[str, Any]:
    return {
        "owner_id": event.owner_id,
        "title": event.title,
        "is_all_day": event.is_all_day,
        "time_zone": event.time_zone,
        "description": event.description,
        "event_type": event.event_type,
        "location": event.location,
        "meeting_url": event.meeting_url,
        "attendees_count": event.attendees_count,
        "reminder_minutes": tuple(event.reminder_minutes or ()),
        "lead_id": event.lead_id,
        "client_id": event.client_id,
    }


def as_occurrence(event) -> Occurrence:
    """A persisted event shown as itself."""
    return Occurrence(
        id=event.id,
        master_id=event.id,
        start_at=ensure_utc(event.start_at),
        end_at=ensure_utc(event.end_at),
        is_virtual=False,
        is_recurring=bool(event.is_recurring),
        parent_event_id=event.parent_event_id,
        **_display_fields(event),
    )


def exception_keys(event) -> set[datetime]:
    """
    Civil date+time keys (second precision) of an event's exception dates.

    Exceptions are matched on the wall clock of the event's zone rather than
    on raw instants.
    """
    keys = set()
    for value in event.exception_dates or ():
        instant = parse_rfc3339(value) if isinstance(value, str) else ensure_utc(value)
        keys.add(to_civil(instant, event.time_zone).replace(microsecond=0))
    return keys


class OccurrenceExpander:
    """Expands events into occurrences. Stateless apart from its logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)

    def expand(
        self,
        master,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Occurrence]:
        """
        Occurrences of master whose start falls inside [window_start, window_end].

        Non-recurring events are returned as themselves when they intersect the
        window. The result is sorted by start and is a pure function of the
        arguments.

        Raises:
            ValidationError: window_end precedes window_start
            InvalidRuleError: master carries an unparseable rule
        """
        window_start = ensure_utc(window_start)
        window_end = ensure_utc(window_end)
        if window_end < window_start:
            raise ValidationError("Window end precedes window start", field="endDate")

        if not master.is_recurring or not master.recurrence_rule:
            occurrence = as_occurrence(master)
            if occurrence.start_at < window_end and occurrence.end_at > window_start:
                return [occurrence]
            return []

        duration = ensure_utc(master.end_at) - ensure_utc(master.start_at)
        display = _display_fields(master)

        occurrences = []
        for instant in self.series_instants(master, window_start, window_end):
            occurrences.append(
                Occurrence(
                    id=identity.encode(master.id, instant),
                    master_id=master.id,
                    start_at=instant,
                    end_at=instant + duration,
                    is_virtual=True,
                    is_recurring=True,
                    parent_event_id=master.id,
                    **display,
                )
            )

        occurrences.sort(key=lambda o: (o.start_at, o.id))
        return occurrences

    def series_instants(
        self,
        master,
        window_start: datetime,
        window_end: datetime,
    ) -> list[datetime]:
        """Start instants of a recurring master inside the window, exceptions removed."""
        zone_id = master.time_zone
        start = ensure_utc(master.start_at)
        rule = rules.parse(master.recurrence_rule, start, zone_id)

        # dateutil drops sub-second precision from dtstart
        civil_start = to_civil(start, zone_id).replace(microsecond=0)

        lower = ensure_utc(window_start)
        upper = ensure_utc(window_end)
        if master.recurrence_end is not None:
            upper = min(upper, ensure_utc(master.recurrence_end))
        if upper < lower:
            return []

        # Generate over a padded civil range and clip on instants: a wall-clock
        # time inside a DST gap resolves to an instant outside its civil slot
        lo = max(to_civil(lower, zone_id) - _CIVIL_PADDING, civil_start)
        hi = to_civil(upper, zone_id) + _CIVIL_PADDING
        if hi < lo:
            return []

        civil_instances = rules.build_rrule(rule, civil_start, zone_id).between(lo, hi, inc=True)

        if lo <= civil_start <= hi and civil_start not in civil_instances:
            if not rule.covers_weekday(civil_start.weekday()):
                self._log.debug(
                    "Start %s of %s is outside BYDAY %s; inserting it",
                    civil_start.isoformat(),
                    master.id,
                    ",".join(rule.byweekday),
                )
                civil_instances.insert(0, civil_start)

        skipped = exception_keys(master)
        instants = []
        for civil in civil_instances:
            instant = from_civil(civil, zone_id)
            if not lower <= instant <= upper:
                continue
            # 02:30 in a spring-forward gap comes back as 03:30, the wall
            # clock its exception date converts to
            if to_civil(instant, zone_id) in skipped:
                self._log.debug("Skipping %s of %s: exception date", civil.isoformat(), master.id)
                continue
            instants.append(instant)

        instants.sort()
        return instants

    def is_live_occurrence(self, master, instant: datetime) -> bool:
        """Whether the series currently produces an occurrence at instant."""
        instant = ensure_utc(instant)
        margin = timedelta(seconds=1)
        return any(
            abs((candidate - instant).total_seconds()) < 1
            for candidate in self.series_instants(master, instant - margin, instant + margin)
        )
