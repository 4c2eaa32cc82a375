# External calendar sync
# Best-effort push of committed event state to a third-party calendar.
# Runs after the primary transaction commits; failures are logged, never raised.

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Optional

import httpx
from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from ..database.pydantic_schemas import EventSchema

logger = logging.getLogger(__name__)

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"

_PENDING_KEY = "agenda.pending_sync"


class ExternalSyncAdapter:
    """Pushes one event change to an external calendar."""

    def push(self, action: str, event: EventSchema) -> None:
        raise NotImplementedError


class NullSyncAdapter(ExternalSyncAdapter):
    """Used when no external calendar is configured."""

    def push(self, action: str, event: EventSchema) -> None:
        logger.debug("Sync disabled; dropping %s for %s", action, event.id)


class WebhookSyncAdapter(ExternalSyncAdapter):
    """
    Posts changes as JSON to a sync endpoint.

    Body: {"action": "created" | "updated" | "deleted", "event": {...}}
    One attempt per change; non-2xx answers raise httpx.HTTPStatusError.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def push(self, action: str, event: EventSchema) -> None:
        response = self._client.post(
            self.url,
            json={"action": action, "event": event.model_dump(mode="json")},
        )
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


class SyncDispatcher:
    """
    Hands committed changes to an adapter.

    With an executor the push runs in the background; without one it runs
    inline (tests). Either way the caller never sees a sync failure.
    """

    def __init__(
        self,
        adapter: ExternalSyncAdapter,
        executor: Optional[Executor] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.adapter = adapter
        self.executor = executor
        self._log = logger or logging.getLogger(__name__)

    def submit(self, action: str, event: EventSchema) -> None:
        if self.executor is None:
            self._push(action, event)
        else:
            self.executor.submit(self._push, action, event)

    def _push(self, action: str, event: EventSchema) -> None:
        try:
            self.adapter.push(action, event)
        except Exception as exc:
            self._log.warning(
                "External sync of %s (%s) failed: %s", event.id, action, exc, exc_info=True
            )
        else:
            self._log.debug("Synced %s (%s)", event.id, action)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
        close = getattr(self.adapter, "close", None)
        if close is not None:
            close()


# ============================================================================
# COMMIT HOOK
# ============================================================================


def _flush_pending(session: Session) -> None:
    pending = session.info.get(_PENDING_KEY)
    if not pending:
        return
    queued = list(pending)
    pending.clear()
    for dispatcher, action, snapshot in queued:
        dispatcher.submit(action, snapshot)


def _drop_pending(session: Session, previous_transaction) -> None:
    pending = session.info.get(_PENDING_KEY)
    if pending:
        logger.debug("Dropping %d sync push(es) after rollback", len(pending))
        pending.clear()


def defer_until_commit(
    session: Session,
    dispatcher: SyncDispatcher,
    action: str,
    snapshot: EventSchema,
) -> None:
    """Queue a push that fires only once the session's transaction commits."""
    pending = session.info.get(_PENDING_KEY)
    if pending is None:
        pending = session.info[_PENDING_KEY] = []
        sa_event.listen(session, "after_commit", _flush_pending)
        sa_event.listen(session, "after_soft_rollback", _drop_pending)
    pending.append((dispatcher, action, snapshot))
