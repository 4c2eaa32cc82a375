"""Integration tests for the calendar events HTTP API."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from agenda.api import create_app

from conftest import OTHER_OWNER, OWNER

SERIES_BODY = {
    "title": "Client standup",
    "startAt": "2026-01-05T09:30:00-03:00",
    "endAt": "2026-01-05T10:30:00-03:00",
    "timeZone": "America/Sao_Paulo",
    "isRecurring": True,
    "recurrenceRule": "RRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR",
}
FIRST_WEEK = {"startDate": "2026-01-05T00:00:00-03:00", "endDate": "2026-01-11T23:59:59-03:00"}
WEDNESDAY_OCCURRENCE = "2026-01-07T12:30:00.000Z"


@pytest_asyncio.fixture
async def client(settings, session_manager, clock, dispatcher):
    app = create_app(
        settings=settings, session_manager=session_manager, clock=clock, sync=dispatcher
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-User-Id": OWNER}
    ) as client:
        yield client


@pytest_asyncio.fixture
async def series(client: AsyncClient):
    response = await client.post("/calendar/events", json=SERIES_BODY)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
class TestCreate:
    async def test_create_returns_stored_event(self, client: AsyncClient):
        response = await client.post(
            "/calendar/events",
            json={
                "title": "ACME demo",
                "type": "DEMO",
                "startAt": "2026-01-06T14:00:00-03:00",
                "endAt": "2026-01-06T15:00:00-03:00",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["id"]
        assert data["ownerId"] == OWNER
        assert data["type"] == "DEMO"
        assert data["startAt"] == "2026-01-06T17:00:00+00:00"
        assert data["timeZone"] == "America/Sao_Paulo"
        assert data["reminderMinutes"] == [30]
        assert data["isRecurring"] is False
        assert data["exceptionDates"] == []

    async def test_missing_user_header(self, client: AsyncClient):
        response = await client.post(
            "/calendar/events", json=SERIES_BODY, headers={"X-User-Id": ""}
        )
        assert response.status_code == 401
        assert response.json()["error"]["errors"][0]["reason"] == "authError"

    async def test_invalid_body(self, client: AsyncClient):
        response = await client.post("/calendar/events", json={**SERIES_BODY, "title": "ab"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == 400
        assert error["errors"][0]["location"] == "title"

    async def test_missing_required_field(self, client: AsyncClient):
        body = {key: value for key, value in SERIES_BODY.items() if key != "endAt"}
        response = await client.post("/calendar/events", json=body)
        assert response.status_code == 400
        detail = response.json()["error"]["errors"][0]
        assert detail["reason"] == "required"
        assert detail["location"] == "endAt"

    async def test_invalid_json(self, client: AsyncClient):
        response = await client.post(
            "/calendar/events",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    async def test_invalid_rule(self, client: AsyncClient):
        response = await client.post(
            "/calendar/events", json={**SERIES_BODY, "recurrenceRule": "RRULE:FREQ=HOURLY"}
        )
        assert response.status_code == 400
        detail = response.json()["error"]["errors"][0]
        assert detail["reason"] == "invalidRecurrenceRule"
        assert detail["location"] == "recurrenceRule"

    async def test_conflict(self, client: AsyncClient, series):
        response = await client.post(
            "/calendar/events",
            json={
                "title": "Overlapping call",
                "startAt": "2026-01-05T09:00:00-03:00",
                "endAt": "2026-01-05T10:00:00-03:00",
            },
        )
        assert response.status_code == 409
        detail = response.json()["error"]["errors"][0]
        assert detail["reason"] == "schedulingConflict"
        assert detail["conflictingEvent"]["id"] == series["id"]
        assert detail["conflictingEvent"]["title"] == "Client standup"

    async def test_method_not_allowed(self, client: AsyncClient):
        response = await client.put("/calendar/events", json=SERIES_BODY)
        assert response.status_code == 405


@pytest.mark.asyncio
class TestRead:
    async def test_list_expands_series(self, client: AsyncClient, series):
        response = await client.get("/calendar/events", params=FIRST_WEEK)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [item["startAt"] for item in data["items"]] == [
            "2026-01-05T12:30:00+00:00",
            "2026-01-07T12:30:00+00:00",
            "2026-01-09T12:30:00+00:00",
        ]
        assert all(item["isVirtual"] for item in data["items"])
        assert all(item["masterId"] == series["id"] for item in data["items"])

    async def test_list_without_expansion(self, client: AsyncClient, series):
        response = await client.get(
            "/calendar/events", params={**FIRST_WEEK, "includeRecurring": "false"}
        )
        items = response.json()["items"]
        assert [item["id"] for item in items] == [series["id"]]
        assert items[0]["isVirtual"] is False

    async def test_list_invalid_window(self, client: AsyncClient):
        response = await client.get("/calendar/events", params={"startDate": "yesterday"})
        assert response.status_code == 400

    async def test_get_occurrence(self, client: AsyncClient, series):
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.get(f"/calendar/events/{occurrence_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == occurrence_id
        assert data["isVirtual"] is True
        assert data["masterId"] == series["id"]

    async def test_get_unknown(self, client: AsyncClient):
        response = await client.get("/calendar/events/doesnotexist")
        assert response.status_code == 404
        assert response.json()["error"]["errors"][0]["reason"] == "eventNotFound"

    async def test_occurrence_of_plain_event(self, client: AsyncClient):
        created = await client.post(
            "/calendar/events",
            json={
                "title": "One-off call",
                "startAt": "2026-01-06T14:00:00-03:00",
                "endAt": "2026-01-06T15:00:00-03:00",
            },
        )
        event_id = created.json()["id"]
        response = await client.get(f"/calendar/events/{event_id}_2026-01-06T17:00:00.000Z")
        assert response.status_code == 400
        assert response.json()["error"]["errors"][0]["reason"] == "invalidOccurrenceId"

    async def test_other_owner_sees_nothing(self, client: AsyncClient, series):
        response = await client.get(
            f"/calendar/events/{series['id']}", headers={"X-User-Id": OTHER_OWNER}
        )
        assert response.status_code == 404


@pytest.mark.asyncio
class TestUpdate:
    async def test_this_only_detaches(self, client: AsyncClient, series):
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.patch(
            f"/calendar/events/{occurrence_id}",
            params={"updateMode": "THIS_ONLY"},
            json={"title": "Standup with the CFO"},
        )
        assert response.status_code == 200
        standalone = response.json()
        assert standalone["id"] != series["id"]
        assert standalone["parentEventId"] == series["id"]
        assert standalone["title"] == "Standup with the CFO"
        assert standalone["startAt"] == "2026-01-07T12:30:00+00:00"

        master = (await client.get(f"/calendar/events/{series['id']}")).json()
        assert master["title"] == "Client standup"
        assert master["exceptionDates"] == [WEDNESDAY_OCCURRENCE]

    async def test_all_future_is_default(self, client: AsyncClient, series):
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.patch(
            f"/calendar/events/{occurrence_id}", json={"startAt": "2026-01-06T09:30:00-03:00"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == series["id"]
        assert data["recurrenceRule"] == "RRULE:FREQ=WEEKLY;BYDAY=TU,TH,SA"

    async def test_invalid_update_mode(self, client: AsyncClient, series):
        response = await client.patch(
            f"/calendar/events/{series['id']}",
            params={"updateMode": "SOMETIMES"},
            json={"title": "Renamed"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["errors"][0]["location"] == "updateMode"

    async def test_failed_update_rolls_back(self, client: AsyncClient, series):
        await client.post(
            "/calendar/events",
            json={
                "title": "Board meeting",
                "startAt": "2026-01-07T15:00:00-03:00",
                "endAt": "2026-01-07T16:00:00-03:00",
            },
        )
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.patch(
            f"/calendar/events/{occurrence_id}",
            params={"updateMode": "THIS_ONLY"},
            json={"startAt": "2026-01-07T15:30:00-03:00"},
        )
        assert response.status_code == 409

        master = (await client.get(f"/calendar/events/{series['id']}")).json()
        assert master["exceptionDates"] == []


@pytest.mark.asyncio
class TestDelete:
    async def test_delete_single_occurrence(self, client: AsyncClient, series):
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.delete(
            f"/calendar/events/{occurrence_id}", params={"deleteMode": "THIS_ONLY"}
        )
        assert response.status_code == 204

        items = (await client.get("/calendar/events", params=FIRST_WEEK)).json()["items"]
        assert [item["startAt"] for item in items] == [
            "2026-01-05T12:30:00+00:00",
            "2026-01-09T12:30:00+00:00",
        ]

    async def test_delete_series(self, client: AsyncClient, series):
        occurrence_id = f"{series['id']}_{WEDNESDAY_OCCURRENCE}"
        response = await client.delete(f"/calendar/events/{occurrence_id}")
        assert response.status_code == 204

        assert (await client.get(f"/calendar/events/{series['id']}")).status_code == 404
        assert (await client.get("/calendar/events", params=FIRST_WEEK)).json()["total"] == 0


@pytest.mark.asyncio
class TestSync:
    async def test_committed_writes_are_pushed(self, client: AsyncClient, series, sync_adapter):
        await client.delete(f"/calendar/events/{series['id']}")
        assert sync_adapter.actions == [
            ("created", series["id"]),
            ("deleted", series["id"]),
        ]

    async def test_failed_writes_are_not_pushed(self, client: AsyncClient, series, sync_adapter):
        response = await client.post("/calendar/events", json=SERIES_BODY)
        assert response.status_code == 409
        assert sync_adapter.actions == [("created", series["id"])]
