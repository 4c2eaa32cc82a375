# Request payloads
# Validated once at the boundary; the engine only ever sees these models.

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..database.schema import EventType
from .errors import RequiredFieldError, ValidationError
from .utils import ensure_utc, parse_rfc3339

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=200)]
Description = Annotated[str, StringConstraints(max_length=5000)]
Location = Annotated[str, StringConstraints(max_length=500)]
RulePattern = Annotated[str, StringConstraints(pattern=r"^(DTSTART[;:]|RRULE:)")]

_OPTIONAL_TEXT = (
    "description",
    "location",
    "meeting_url",
    "lead_id",
    "client_id",
    "recurrence_rule",
)

# Columns that cannot be cleared; an explicit null is treated as "unchanged"
_NOT_NULLABLE = frozenset(
    {
        "title",
        "event_type",
        "attendees_count",
        "reminder_minutes",
        "start_at",
        "end_at",
        "is_all_day",
        "is_recurring",
        "time_zone",
    }
)

_TIMING_FIELDS = frozenset({"start_at", "end_at", "is_all_day"})
_RECURRENCE_FIELDS = frozenset({"is_recurring", "recurrence_rule", "recurrence_end", "time_zone"})


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    @field_validator(*_OPTIONAL_TEXT, mode="before", check_fields=False)
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("meeting_url", mode="after", check_fields=False)
    @classmethod
    def _url_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("start_at", "end_at", "recurrence_end", mode="after", check_fields=False)
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("time_zone", mode="after", check_fields=False)
    @classmethod
    def _known_zone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown time zone {value!r}")
        return value


# ============================================================================
# CREATE
# ============================================================================


class CreateEventPayload(_Payload):
    title: Title
    description: Optional[Description] = None
    event_type: EventType = Field(default=EventType.MEETING, alias="type")
    start_at: datetime
    end_at: datetime
    is_all_day: bool = False
    attendees_count: int = Field(default=1, ge=1)
    location: Optional[Location] = None
    meeting_url: Optional[AnyHttpUrl] = None
    reminder_minutes: list[NonNegativeInt] = Field(default_factory=lambda: [30])
    lead_id: Optional[str] = None
    client_id: Optional[str] = None
    is_recurring: bool = False
    recurrence_rule: Optional[RulePattern] = None
    recurrence_end: Optional[datetime] = None
    time_zone: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "CreateEventPayload":
        if self.start_at >= self.end_at:
            raise ValueError("endAt must be after startAt")
        if self.is_recurring and not self.recurrence_rule:
            raise ValueError("recurring events require a recurrenceRule")
        if not self.is_recurring and (self.recurrence_rule or self.recurrence_end):
            raise ValueError("recurrenceRule and recurrenceEnd require isRecurring")
        return self


# ============================================================================
# UPDATE (closed tagged union)
# ============================================================================


class _DetailFields(_Payload):
    title: Optional[Title] = None
    description: Optional[Description] = None
    event_type: Optional[EventType] = Field(default=None, alias="type")
    attendees_count: Optional[int] = Field(default=None, ge=1)
    location: Optional[Location] = None
    meeting_url: Optional[AnyHttpUrl] = None
    reminder_minutes: Optional[list[NonNegativeInt]] = None
    lead_id: Optional[str] = None
    client_id: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually sent, keyed by attribute name."""
        result = {}
        for name in self.model_fields_set:
            if name == "kind":
                continue
            value = getattr(self, name)
            if value is None and name in _NOT_NULLABLE:
                continue
            result[name] = value
        return result

    @property
    def changes_timing(self) -> bool:
        return bool(_TIMING_FIELDS & self.changes().keys())

    @property
    def changes_recurrence(self) -> bool:
        return bool(_RECURRENCE_FIELDS & self.changes().keys())


class DetailsUpdate(_DetailFields):
    """Display and association fields only."""

    kind: Literal["details"] = "details"


class _ScheduleFields(_DetailFields):
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    is_all_day: Optional[bool] = None


class ScheduleUpdate(_ScheduleFields):
    """Moves or resizes the event, optionally with detail changes."""

    kind: Literal["schedule"] = "schedule"


class RecurrenceUpdate(_ScheduleFields):
    """Changes the recurrence pattern, optionally with timing and details."""

    kind: Literal["recurrence"] = "recurrence"
    is_recurring: Optional[bool] = None
    recurrence_rule: Optional[RulePattern] = None
    recurrence_end: Optional[datetime] = None
    time_zone: Optional[str] = None


EventUpdate = Annotated[
    Union[DetailsUpdate, ScheduleUpdate, RecurrenceUpdate],
    Field(discriminator="kind"),
]

_update_adapter: TypeAdapter = TypeAdapter(EventUpdate)

_TIMING_KEYS = frozenset({"startAt", "endAt", "isAllDay", "start_at", "end_at", "is_all_day"})
_RECURRENCE_KEYS = frozenset(
    {
        "isRecurring",
        "recurrenceRule",
        "recurrenceEnd",
        "timeZone",
        "is_recurring",
        "recurrence_rule",
        "recurrence_end",
        "time_zone",
    }
)


def infer_update_kind(body: dict[str, Any]) -> str:
    keys = set(body)
    if keys & _RECURRENCE_KEYS:
        return "recurrence"
    if keys & _TIMING_KEYS:
        return "schedule"
    return "details"


# ============================================================================
# LISTING
# ============================================================================


class ListQuery(_Payload):
    """Listing window and filters, read from query parameters."""

    model_config = ConfigDict(extra="ignore")

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    event_type: Optional[EventType] = Field(default=None, alias="type")
    lead_id: Optional[str] = None
    client_id: Optional[str] = None
    search: Optional[str] = None
    include_recurring: bool = True

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                return parse_rfc3339(value.strip())
            except (ValueError, OverflowError):
                raise ValueError(f"invalid date {value!r}")
        return value

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def _window_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("search", mode="before")
    @classmethod
    def _strip_search(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


# ============================================================================
# BOUNDARY PARSING
# ============================================================================


def _raise_validation(exc: PydanticValidationError) -> None:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("details", "schedule", "recurrence"))
    if first.get("type") == "missing" and field:
        raise RequiredFieldError(field)
    message = first.get("msg", "Invalid request body")
    raise ValidationError(f"{field}: {message}" if field else message, field=field or None)


def parse_create_payload(body: Any) -> CreateEventPayload:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return CreateEventPayload.model_validate(body)
    except PydanticValidationError as exc:
        _raise_validation(exc)


def parse_list_query(params: dict[str, Any]) -> ListQuery:
    try:
        return ListQuery.model_validate(params)
    except PydanticValidationError as exc:
        _raise_validation(exc)


def parse_update_payload(body: Any) -> Union[DetailsUpdate, ScheduleUpdate, RecurrenceUpdate]:
    """
    Validate an update body into one of the closed update shapes.

    The "kind" key is optional: without it the shape is inferred from the keys
    present (recurrence keys win over timing keys, which win over details).
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    if "kind" not in body:
        body = {**body, "kind": infer_update_kind(body)}
    try:
        return _update_adapter.validate_python(body)
    except PydanticValidationError as exc:
        _raise_validation(exc)
