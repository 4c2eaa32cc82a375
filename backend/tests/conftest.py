"""
Shared pytest fixtures for all tests.

Provides a throwaway SQLite database per test, a session, a frozen clock and
a recording sync adapter, plus a CalendarService wired to all of them.
"""

from datetime import datetime, timezone

import pytest

from agenda.config import Settings
from agenda.core.utils import FrozenClock
from agenda.database import Base, EventStore, SessionManager, build_engine
from agenda.service import CalendarService
from agenda.sync import ExternalSyncAdapter, SyncDispatcher

from factories import SAO_PAULO

OWNER = "user-ana"
OTHER_OWNER = "user-bruno"


class RecordingSyncAdapter(ExternalSyncAdapter):
    """Keeps every push; optionally fails each one after recording it."""

    def __init__(self, fail: bool = False):
        self.pushes = []
        self.fail = fail

    def push(self, action, event):
        self.pushes.append((action, event))
        if self.fail:
            raise RuntimeError("sync endpoint unavailable")

    @property
    def actions(self):
        return [(action, event.id) for action, event in self.pushes]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'agenda.db'}",
        time_zone=SAO_PAULO,
    )


@pytest.fixture
def session_manager(settings):
    """SessionManager over a fresh SQLite file with all tables created."""
    engine = build_engine(settings.database_url)
    Base.metadata.create_all(engine)
    yield SessionManager(engine)
    engine.dispose()


@pytest.fixture
def session(session_manager):
    session = session_manager.get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def store(session):
    return EventStore(session)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def sync_adapter():
    return RecordingSyncAdapter()


@pytest.fixture
def dispatcher(sync_adapter):
    # No executor: pushes run inline right after commit
    return SyncDispatcher(sync_adapter)


@pytest.fixture
def service(store, clock, settings, dispatcher):
    return CalendarService(store, clock=clock, settings=settings, sync=dispatcher)
