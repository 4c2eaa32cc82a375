"""Tests for pushing committed event changes to an external calendar."""

import json
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from agenda.config import Settings
from agenda.database.pydantic_schemas import EventSchema
from agenda.sync import (
    NullSyncAdapter,
    SyncDispatcher,
    WebhookSyncAdapter,
    build_dispatcher,
)

from conftest import RecordingSyncAdapter
from factories import make_series

SYNC_URL = "https://sync.example.com/hooks/calendar"


@pytest.fixture
def snapshot():
    return EventSchema.model_validate(make_series())


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestWebhookSyncAdapter:
    def test_posts_action_and_event(self, snapshot):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(204)

        adapter = WebhookSyncAdapter(SYNC_URL, client=mock_client(handler))
        adapter.push("updated", snapshot)

        assert len(received) == 1
        request = received[0]
        assert request.method == "POST"
        assert str(request.url) == SYNC_URL
        body = json.loads(request.content)
        assert body["action"] == "updated"
        assert body["event"]["id"] == snapshot.id
        assert body["event"]["recurrence_rule"] == "RRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR"
        assert body["event"]["event_type"] == "MEETING"

    def test_error_status_raises(self, snapshot):
        adapter = WebhookSyncAdapter(
            SYNC_URL, client=mock_client(lambda request: httpx.Response(503))
        )
        with pytest.raises(httpx.HTTPStatusError):
            adapter.push("created", snapshot)


class TestSyncDispatcher:
    def test_inline_push(self, snapshot):
        adapter = RecordingSyncAdapter()
        SyncDispatcher(adapter).submit("created", snapshot)
        assert adapter.actions == [("created", snapshot.id)]

    def test_failures_are_logged_not_raised(self, snapshot, caplog):
        dispatcher = SyncDispatcher(RecordingSyncAdapter(fail=True))
        with caplog.at_level("WARNING"):
            dispatcher.submit("deleted", snapshot)
        assert "External sync of evt0001 (deleted) failed" in caplog.text

    def test_http_failure_through_dispatcher(self, snapshot):
        adapter = WebhookSyncAdapter(
            SYNC_URL, client=mock_client(lambda request: httpx.Response(500))
        )
        SyncDispatcher(adapter).submit("created", snapshot)

    def test_executor_push_completes_on_shutdown(self, snapshot):
        adapter = RecordingSyncAdapter()
        dispatcher = SyncDispatcher(adapter, executor=ThreadPoolExecutor(max_workers=1))
        dispatcher.submit("created", snapshot)
        dispatcher.shutdown()
        assert adapter.actions == [("created", snapshot.id)]


class TestBuildDispatcher:
    def test_without_url_is_a_noop(self):
        dispatcher = build_dispatcher(Settings())
        assert isinstance(dispatcher.adapter, NullSyncAdapter)
        assert dispatcher.executor is None

    def test_with_url_posts_in_background(self):
        dispatcher = build_dispatcher(Settings(sync_url=SYNC_URL, sync_workers=3))
        try:
            assert isinstance(dispatcher.adapter, WebhookSyncAdapter)
            assert dispatcher.adapter.url == SYNC_URL
            assert isinstance(dispatcher.executor, ThreadPoolExecutor)
        finally:
            dispatcher.shutdown()
