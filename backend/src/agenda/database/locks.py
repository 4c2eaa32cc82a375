# Per-owner write lock
# Serializes check-then-write sequences (conflict check followed by insert or
# update) for one owner until the surrounding transaction ends.

import hashlib
import logging
import threading

from sqlalchemy import event, text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_HELD_KEY = "agenda.owner_locks"
_LISTENING_KEY = "agenda.owner_locks.listening"


class _OwnerLock:
    """In-process lock plus the number of threads holding or waiting for it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


_registry_lock = threading.Lock()
_owner_locks: dict[str, _OwnerLock] = {}


def advisory_key(owner_id: str) -> int:
    """Signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(owner_id.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _acquire_local(owner_id: str) -> None:
    with _registry_lock:
        entry = _owner_locks.get(owner_id)
        if entry is None:
            entry = _owner_locks[owner_id] = _OwnerLock()
        entry.users += 1
    entry.lock.acquire()


def _release_local(owner_id: str) -> None:
    with _registry_lock:
        entry = _owner_locks[owner_id]
        entry.lock.release()
        entry.users -= 1
        # Nobody holds or waits for it any more
        if entry.users == 0:
            del _owner_locks[owner_id]


def _release_held(session: Session, transaction) -> None:
    # Nested transactions (savepoints) have a parent; only the outermost one
    # ends the unit of work
    if transaction.parent is not None:
        return
    held = session.info.get(_HELD_KEY)
    if not held:
        return
    for owner_id in list(held):
        _release_local(owner_id)
        logger.debug("Released owner lock %s", owner_id)
    held.clear()


def lock_owner(session: Session, owner_id: str) -> None:
    """
    Take the owner's write lock for the rest of the current transaction.

    PostgreSQL uses a transaction-scoped advisory lock. Other backends fall
    back to an in-process lock per owner, released when the session's
    outermost transaction commits or rolls back. Taking the same owner's lock
    twice in one transaction is a no-op.
    """
    if session.get_bind().dialect.name == "postgresql":
        session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(owner_id)}
        )
        return

    held = session.info.setdefault(_HELD_KEY, set())
    if owner_id in held:
        return

    if not session.info.get(_LISTENING_KEY):
        event.listen(session, "after_transaction_end", _release_held)
        session.info[_LISTENING_KEY] = True

    # Make sure a transaction exists for the release hook to fire on
    session.connection()
    _acquire_local(owner_id)
    held.add(owner_id)
    logger.debug("Acquired owner lock %s", owner_id)
