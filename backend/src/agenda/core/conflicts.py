# Time conflict detection
# Validates a proposed time window against an owner's persisted events.

import logging
from datetime import datetime, timedelta
from typing import Optional

from .errors import SchedulingConflictError
from .utils import ensure_utc, to_civil

# Widest gap between two zones' midnights for the same civil date
_ALL_DAY_PADDING = timedelta(days=2)


def _describe_range(event) -> str:
    zone_id = event.time_zone
    start = to_civil(event.start_at, zone_id)
    end = to_civil(event.end_at, zone_id)
    if event.is_all_day:
        return f"all day on {start:%Y-%m-%d} ({zone_id})"
    if start.date() == end.date():
        return f"{start:%Y-%m-%d %H:%M} - {end:%H:%M} ({zone_id})"
    return f"{start:%Y-%m-%d %H:%M} - {end:%Y-%m-%d %H:%M} ({zone_id})"


class ConflictDetector:
    """
    Rejects windows that collide with another event of the same owner.

    Rules:
    - all-day vs all-day: same civil date (each event in its own zone)
    - timed vs timed: half-open overlap
    - all-day vs timed: never

    Only stored rows are considered; occurrences a recurring master would
    generate are not expanded here.
    """

    def __init__(self, store, logger: Optional[logging.Logger] = None):
        self.store = store
        self._log = logger or logging.getLogger(__name__)

    def check(
        self,
        owner_id: str,
        proposed_start: datetime,
        proposed_end: datetime,
        is_all_day: bool,
        exclude_id: Optional[str] = None,
        time_zone: str = "UTC",
    ) -> None:
        """
        Raises:
            SchedulingConflictError: another live event of owner_id collides
        """
        start = ensure_utc(proposed_start)
        end = ensure_utc(proposed_end)

        if is_all_day:
            day = to_civil(start, time_zone).date()
            candidates = self.store.list_overlapping(
                owner_id, start - _ALL_DAY_PADDING, end + _ALL_DAY_PADDING, exclude_id=exclude_id
            )
            for existing in candidates:
                if existing.is_all_day and to_civil(existing.start_at, existing.time_zone).date() == day:
                    self._raise(owner_id, existing)
            return

        for existing in self.store.list_overlapping(owner_id, start, end, exclude_id=exclude_id):
            if existing.is_all_day:
                continue
            if start < existing.end_at and end > existing.start_at:
                self._raise(owner_id, existing)

    def _raise(self, owner_id: str, existing) -> None:
        self._log.warning(
            "Scheduling conflict for owner %s with event %s", owner_id, existing.id
        )
        raise SchedulingConflictError(
            f'Time conflicts with "{existing.title}" ({_describe_range(existing)})',
            conflicting_event_id=existing.id,
            conflicting_title=existing.title,
            conflicting_start=existing.start_at,
            conflicting_end=existing.end_at,
        )
