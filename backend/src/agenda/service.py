# Calendar service
# Facade over the engine: resolves targets, checks conflicts, executes update
# plans and queues external sync for after commit.

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Union

from .config import Settings
from .core import identity, rules
from .core.conflicts import ConflictDetector
from .core.errors import (
    EventNotFoundError,
    InvalidOccurrenceIdError,
    InvalidRuleError,
    ValidationError,
)
from .core.expander import Occurrence, OccurrenceExpander, as_occurrence
from .core.identity import OccurrenceRef
from .core.payloads import CreateEventPayload, ListQuery
from .core.resolver import (
    DetachOccurrence,
    ExcludeOccurrence,
    PatchMaster,
    RetireEvent,
    resolve_removal,
    resolve_update,
)
from .core.utils import Clock, ensure_utc
from .database.schema import Event, UpdateScope
from .database.store import EventStore
from .sync import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_UPDATED,
    NullSyncAdapter,
    SyncDispatcher,
    defer_until_commit,
)


class CalendarService:
    """
    Entry point for listing and editing an owner's calendar.

    One instance works against one EventStore (one session). Writes take the
    owner's lock first so the conflict check and the write that follows it
    cannot interleave with another write for the same owner.
    """

    def __init__(
        self,
        store: EventStore,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
        sync: Optional[SyncDispatcher] = None,
        expander: Optional[OccurrenceExpander] = None,
        detector: Optional[ConflictDetector] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.clock = clock or Clock()
        self.settings = settings or Settings()
        self.sync = sync or SyncDispatcher(NullSyncAdapter())
        self._log = logger or logging.getLogger(__name__)
        self.expander = expander or OccurrenceExpander(logger=self._log)
        self.detector = detector or ConflictDetector(store, logger=self._log)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, owner_id: str, query: Optional[ListQuery] = None) -> list[Occurrence]:
        """
        Occurrences of owner_id inside the query window, sorted by start.

        A missing window bound defaults to default_window_days around now.
        Recurring masters are expanded unless include_recurring is False, in
        which case they are shown as themselves.
        """
        query = query or ListQuery()
        now = self.clock.now()
        span = timedelta(days=self.settings.default_window_days)
        window_start = query.start_date or now - span
        window_end = query.end_date or now + span
        if window_end < window_start:
            raise ValidationError("endDate must not precede startDate", field="endDate")

        events = self.store.list_in_window(
            owner_id,
            window_start,
            window_end,
            event_type=query.event_type,
            lead_id=query.lead_id,
            client_id=query.client_id,
            search=query.search,
        )

        occurrences: list[Occurrence] = []
        for event in events:
            if not (event.is_recurring and event.recurrence_rule):
                occurrences.append(as_occurrence(event))
                continue
            if not query.include_recurring:
                if window_start <= event.start_at <= window_end:
                    occurrences.append(as_occurrence(event))
                continue
            try:
                occurrences.extend(self.expander.expand(event, window_start, window_end))
            except InvalidRuleError as exc:
                self._log.warning(
                    "Could not expand series %s (%s); showing it once", event.id, exc.message
                )
                if window_start <= event.start_at <= window_end:
                    occurrences.append(as_occurrence(event))

        occurrences.sort(key=lambda o: (o.start_at, o.id))
        return occurrences

    def get(self, owner_id: str, target_id: str) -> Union[Event, Occurrence]:
        """
        A stored event by id, or a live virtual occurrence by occurrence id.

        Raises:
            EventNotFoundError: nothing live behind target_id
            InvalidOccurrenceIdError: the occurrence id's parent is not a series
        """
        event, ref = self._resolve_target(owner_id, target_id)
        if ref is None:
            return event

        instant = ensure_utc(ref.instant)
        for occurrence in self.expander.expand(
            event, instant - timedelta(seconds=1), instant + timedelta(seconds=1)
        ):
            if abs((occurrence.start_at - instant).total_seconds()) < 1:
                return occurrence
        raise EventNotFoundError(target_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, owner_id: str, payload: CreateEventPayload) -> Event:
        """
        Store a new plain or recurring event.

        Raises:
            InvalidRuleError: the recurrence rule does not parse
            SchedulingConflictError: the window collides with another event
        """
        time_zone = payload.time_zone or self.settings.time_zone
        if payload.is_recurring:
            rules.parse(payload.recurrence_rule, payload.start_at, time_zone)
            if payload.recurrence_end is not None and payload.recurrence_end < payload.start_at:
                raise ValidationError(
                    "recurrenceEnd must not precede startAt", field="recurrenceEnd"
                )

        self.store.lock_owner(owner_id)
        self.detector.check(
            owner_id,
            payload.start_at,
            payload.end_at,
            payload.is_all_day,
            time_zone=time_zone,
        )

        event = self.store.create(
            owner_id=owner_id,
            title=payload.title,
            description=payload.description,
            event_type=payload.event_type,
            location=payload.location,
            meeting_url=payload.meeting_url,
            attendees_count=payload.attendees_count,
            reminder_minutes=list(payload.reminder_minutes),
            lead_id=payload.lead_id,
            client_id=payload.client_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
            is_all_day=payload.is_all_day,
            time_zone=time_zone,
            is_recurring=payload.is_recurring,
            recurrence_rule=payload.recurrence_rule if payload.is_recurring else None,
            recurrence_end=payload.recurrence_end if payload.is_recurring else None,
            exception_dates=[],
        )
        self._queue_sync(ACTION_CREATED, event)
        return event

    def update(
        self,
        owner_id: str,
        target_id: str,
        payload,
        scope: UpdateScope = UpdateScope.ALL_FUTURE,
    ) -> Event:
        """
        Edit a stored event or one occurrence of a series.

        Returns the event that now carries the edit: the master (or plain
        event) for ALL_FUTURE and stored ids, the new standalone exception for
        THIS_ONLY on an occurrence id.

        Raises:
            EventNotFoundError: unknown target, or THIS_ONLY on an occurrence
                the series does not currently produce
            InvalidOccurrenceIdError: occurrence id of a non-series parent
            ValidationError: payload does not apply to the target
            SchedulingConflictError: new timing collides with another event
        """
        self.store.lock_owner(owner_id)
        event, ref = self._resolve_target(owner_id, target_id)
        if ref is not None and scope == UpdateScope.THIS_ONLY:
            self._require_live(event, ref, target_id)

        plan = resolve_update(event, ref, scope, payload)

        if isinstance(plan, DetachOccurrence):
            if plan.timing_changed:
                self.detector.check(
                    owner_id,
                    plan.start_at,
                    plan.end_at,
                    plan.fields["is_all_day"],
                    exclude_id=plan.master_id,
                    time_zone=plan.fields["time_zone"],
                )
            master = self.store.append_exception_date(owner_id, plan.master_id, plan.occurrence_start)
            standalone = self.store.create(**plan.fields)
            self._log.info(
                "Detached occurrence %s of %s as %s", target_id, master.id, standalone.id
            )
            self._queue_sync(ACTION_UPDATED, master)
            self._queue_sync(ACTION_CREATED, standalone)
            return standalone

        if plan.timing_changed:
            self.detector.check(
                owner_id,
                plan.start_at,
                plan.end_at,
                plan.is_all_day,
                exclude_id=plan.event_id,
                time_zone=plan.time_zone,
            )
        updated = self.store.update(event, plan.changes)
        self._queue_sync(ACTION_UPDATED, updated)
        return updated

    def remove(
        self,
        owner_id: str,
        target_id: str,
        scope: UpdateScope = UpdateScope.ALL_FUTURE,
    ) -> Event:
        """
        Delete a stored event, a whole series, or one occurrence.

        Returns the affected stored event (the master gaining an exception
        date, or the soft-deleted row).
        """
        self.store.lock_owner(owner_id)
        event, ref = self._resolve_target(owner_id, target_id)
        if ref is not None and scope == UpdateScope.THIS_ONLY:
            self._require_live(event, ref, target_id)

        plan = resolve_removal(event, ref, scope)
        if isinstance(plan, ExcludeOccurrence):
            master = self.store.append_exception_date(owner_id, plan.master_id, plan.occurrence_start)
            self._queue_sync(ACTION_UPDATED, master)
            return master

        retired = self.store.soft_delete(event)
        self._queue_sync(ACTION_DELETED, retired)
        return retired

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_target(
        self, owner_id: str, target_id: str
    ) -> tuple[Event, Optional[OccurrenceRef]]:
        """
        Map a client id to a stored event and, for occurrence ids, the
        decoded reference. Stored ids win over occurrence decoding.
        """
        event = self.store.find(owner_id, target_id)
        if event is not None:
            return event, None

        ref = identity.decode(target_id)
        if ref is None:
            raise EventNotFoundError(target_id)

        master = self.store.get(owner_id, ref.parent_id)
        if not master.is_recurring or not master.recurrence_rule or master.parent_event_id:
            raise InvalidOccurrenceIdError(
                target_id, f"Event {ref.parent_id} is not a recurring series"
            )
        return master, ref

    def _require_live(self, master: Event, ref: OccurrenceRef, target_id: str) -> None:
        if not self.expander.is_live_occurrence(master, ref.instant):
            raise EventNotFoundError(target_id)

    def _queue_sync(self, action: str, event: Event) -> None:
        defer_until_commit(self.store.session, self.sync, action, self.store.snapshot(event))
