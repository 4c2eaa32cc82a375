"""Tests for request body and query validation."""

import pytest

from agenda.core.errors import RequiredFieldError, ValidationError
from agenda.core.payloads import (
    DetailsUpdate,
    RecurrenceUpdate,
    ScheduleUpdate,
    infer_update_kind,
    parse_create_payload,
    parse_list_query,
    parse_update_payload,
)
from agenda.database.schema import EventType

from factories import utc

VALID_CREATE = {
    "title": "Demo with ACME",
    "startAt": "2026-01-05T09:30:00-03:00",
    "endAt": "2026-01-05T10:30:00-03:00",
}


class TestCreatePayload:
    def test_camel_case_body_with_defaults(self):
        payload = parse_create_payload(VALID_CREATE)
        assert payload.title == "Demo with ACME"
        assert payload.start_at == utc(2026, 1, 5, 12, 30)
        assert payload.end_at == utc(2026, 1, 5, 13, 30)
        assert payload.event_type == EventType.MEETING
        assert payload.attendees_count == 1
        assert payload.reminder_minutes == [30]
        assert payload.is_recurring is False
        assert payload.time_zone is None

    def test_naive_datetimes_are_utc(self):
        payload = parse_create_payload(
            {**VALID_CREATE, "startAt": "2026-01-05T12:30:00", "endAt": "2026-01-05T13:30:00"}
        )
        assert payload.start_at == utc(2026, 1, 5, 12, 30)

    def test_type_alias_and_blank_text(self):
        payload = parse_create_payload(
            {**VALID_CREATE, "type": "CALL", "description": "   ", "meetingUrl": "https://meet.example.com/x"}
        )
        assert payload.event_type == EventType.CALL
        assert payload.description is None
        assert payload.meeting_url == "https://meet.example.com/x"

    def test_recurring_payload(self):
        payload = parse_create_payload(
            {
                **VALID_CREATE,
                "isRecurring": True,
                "recurrenceRule": "RRULE:FREQ=WEEKLY;BYDAY=MO",
                "timeZone": "America/Sao_Paulo",
            }
        )
        assert payload.recurrence_rule == "RRULE:FREQ=WEEKLY;BYDAY=MO"
        assert payload.time_zone == "America/Sao_Paulo"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"title": "ab"}, "title"),
            ({"title": "   x  "}, "title"),
            ({"attendeesCount": 0}, "attendeesCount"),
            ({"reminderMinutes": [-5]}, "reminderMinutes.0"),
            ({"timeZone": "Mars/Olympus_Mons"}, "timeZone"),
            ({"recurrenceRule": "FREQ=DAILY", "isRecurring": True}, "recurrenceRule"),
            ({"meetingUrl": "not a url"}, "meetingUrl"),
            ({"colour": "red"}, "colour"),
        ],
    )
    def test_field_errors(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            parse_create_payload({**VALID_CREATE, **overrides})
        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400

    def test_missing_required_field(self):
        body = dict(VALID_CREATE)
        del body["startAt"]
        with pytest.raises(RequiredFieldError) as exc_info:
            parse_create_payload(body)
        assert exc_info.value.field == "startAt"
        assert exc_info.value.reason == "required"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"endAt": "2026-01-05T09:30:00-03:00"},
            {"isRecurring": True},
            {"recurrenceRule": "RRULE:FREQ=DAILY"},
        ],
    )
    def test_inconsistent_bodies(self, overrides):
        with pytest.raises(ValidationError):
            parse_create_payload({**VALID_CREATE, **overrides})

    def test_non_object_body(self):
        with pytest.raises(ValidationError):
            parse_create_payload(["title"])


class TestUpdatePayload:
    @pytest.mark.parametrize(
        "body,kind",
        [
            ({"title": "x"}, "details"),
            ({"title": "x", "startAt": "2026-01-05T10:00:00Z"}, "schedule"),
            ({"isAllDay": True}, "schedule"),
            ({"startAt": "2026-01-05T10:00:00Z", "recurrenceRule": "RRULE:FREQ=DAILY"}, "recurrence"),
            ({"timeZone": "UTC"}, "recurrence"),
            ({}, "details"),
        ],
    )
    def test_kind_inference(self, body, kind):
        assert infer_update_kind(body) == kind

    def test_inferred_shapes(self):
        assert isinstance(parse_update_payload({"title": "Renamed"}), DetailsUpdate)
        assert isinstance(parse_update_payload({"endAt": "2026-01-05T10:00:00Z"}), ScheduleUpdate)
        assert isinstance(parse_update_payload({"isRecurring": False}), RecurrenceUpdate)

    def test_explicit_kind_is_enforced(self):
        with pytest.raises(ValidationError):
            parse_update_payload({"kind": "details", "startAt": "2026-01-05T10:00:00Z"})

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_update_payload({"kind": "everything", "title": "Renamed"})

    def test_changes_only_include_sent_fields(self):
        payload = parse_update_payload({"title": "Renamed", "location": ""})
        assert payload.changes() == {"title": "Renamed", "location": None}

    def test_null_on_required_column_means_unchanged(self):
        payload = parse_update_payload({"title": None, "description": None})
        assert payload.changes() == {"description": None}

    def test_timing_and_recurrence_flags(self):
        schedule = parse_update_payload({"startAt": "2026-01-05T10:00:00Z"})
        assert schedule.changes_timing is True
        assert schedule.changes_recurrence is False

        recurrence = parse_update_payload({"recurrenceRule": "RRULE:FREQ=DAILY"})
        assert recurrence.changes_timing is False
        assert recurrence.changes_recurrence is True

    def test_error_field_drops_union_tag(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_update_payload({"title": "ab"})
        assert exc_info.value.field == "title"


class TestListQuery:
    def test_defaults(self):
        query = parse_list_query({})
        assert query.start_date is None
        assert query.end_date is None
        assert query.include_recurring is True

    def test_window_and_filters(self):
        query = parse_list_query(
            {
                "startDate": "2026-01-01T00:00:00-03:00",
                "endDate": "2026-01-31T23:59:59Z",
                "type": "FOLLOWUP",
                "leadId": "lead-1",
                "search": "  acme ",
                "includeRecurring": "false",
                "page": "2",
            }
        )
        assert query.start_date == utc(2026, 1, 1, 3, 0)
        assert query.end_date == utc(2026, 1, 31, 23, 59, 59)
        assert query.event_type == EventType.FOLLOWUP
        assert query.lead_id == "lead-1"
        assert query.search == "acme"
        assert query.include_recurring is False

    def test_invalid_date(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_list_query({"startDate": "next tuesday"})
        assert exc_info.value.field == "startDate"
