# Error taxonomy for the recurring event engine
# Every error carries an HTTP status and a reason code so the API layer can
# surface it without re-mapping.

from datetime import datetime
from typing import Any, Optional
from starlette.responses import JSONResponse


# ============================================================================
# ERROR REASONS
# ============================================================================

ERROR_INVALID = "invalid"
ERROR_REQUIRED = "required"
ERROR_NOT_FOUND = "notFound"
ERROR_EVENT_NOT_FOUND = "eventNotFound"
ERROR_INVALID_RULE = "invalidRecurrenceRule"
ERROR_INVALID_OCCURRENCE_ID = "invalidOccurrenceId"
ERROR_CONFLICT = "schedulingConflict"
ERROR_UNAUTHORIZED = "authError"
ERROR_INTERNAL = "internalError"

ERROR_DOMAIN_GLOBAL = "global"
ERROR_DOMAIN_CALENDAR = "calendar"


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================


class AgendaError(Exception):
    """Base exception for calendar engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        reason: str = ERROR_INVALID,
        domain: str = ERROR_DOMAIN_CALENDAR,
        location: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason
        self.domain = domain
        self.location = location

    def details(self) -> dict[str, Any]:
        """Extra, error-specific fields for the response body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        error_detail: dict[str, Any] = {
            "domain": self.domain,
            "reason": self.reason,
            "message": self.message,
        }
        if self.location:
            error_detail["location"] = self.location
        error_detail.update(self.details())

        return {
            "error": {
                "code": self.status_code,
                "message": self.message,
                "errors": [error_detail],
            }
        }

    def to_response(self) -> JSONResponse:
        return JSONResponse(content=self.to_dict(), status_code=self.status_code)


class ValidationError(AgendaError):
    """Invalid request data (400)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        reason: str = ERROR_INVALID,
    ):
        super().__init__(
            message=message,
            status_code=400,
            reason=reason,
            location=field,
        )
        self.field = field


class RequiredFieldError(ValidationError):
    """Required field missing (400)."""

    def __init__(self, field: str):
        super().__init__(
            message=f"Required field missing: {field}",
            field=field,
            reason=ERROR_REQUIRED,
        )


class InvalidRuleError(ValidationError):
    """Malformed or unsupported recurrence rule (400)."""

    def __init__(self, message: str, rule_text: Optional[str] = None):
        super().__init__(
            message=message,
            field="recurrenceRule",
            reason=ERROR_INVALID_RULE,
        )
        self.rule_text = rule_text


class NotFoundError(AgendaError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not Found", reason: str = ERROR_NOT_FOUND):
        super().__init__(message=message, status_code=404, reason=reason)


class EventNotFoundError(NotFoundError):
    """Event, series or occurrence not found."""

    def __init__(self, event_id: str):
        super().__init__(
            message=f"Event not found: {event_id}",
            reason=ERROR_EVENT_NOT_FOUND,
        )
        self.event_id = event_id


class InvalidOccurrenceIdError(AgendaError):
    """Occurrence id that does not point at a recurring series (400)."""

    def __init__(self, occurrence_id: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid occurrence id: {occurrence_id}",
            status_code=400,
            reason=ERROR_INVALID_OCCURRENCE_ID,
        )
        self.occurrence_id = occurrence_id


class SchedulingConflictError(AgendaError):
    """Proposed time window overlaps an existing event of the same owner (409)."""

    def __init__(
        self,
        message: str,
        conflicting_event_id: str,
        conflicting_title: str,
        conflicting_start: datetime,
        conflicting_end: datetime,
    ):
        super().__init__(message=message, status_code=409, reason=ERROR_CONFLICT)
        self.conflicting_event_id = conflicting_event_id
        self.conflicting_title = conflicting_title
        self.conflicting_start = conflicting_start
        self.conflicting_end = conflicting_end

    def details(self) -> dict[str, Any]:
        return {
            "conflictingEvent": {
                "id": self.conflicting_event_id,
                "title": self.conflicting_title,
                "startAt": self.conflicting_start.isoformat(),
                "endAt": self.conflicting_end.isoformat(),
            }
        }


class UnauthorizedError(AgendaError):
    """Missing caller identity (401)."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=401,
            reason=ERROR_UNAUTHORIZED,
            domain=ERROR_DOMAIN_GLOBAL,
        )


class InternalError(AgendaError):
    """Internal server error (500)."""

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message=message, status_code=500, reason=ERROR_INTERNAL)


# ============================================================================
# ERROR HANDLING UTILITIES
# ============================================================================


def handle_exception(exc: Exception) -> JSONResponse:
    """Convert an exception to a JSONResponse."""
    if isinstance(exc, AgendaError):
        return exc.to_response()

    import logging

    logging.getLogger(__name__).error("Unexpected exception: %s", exc, exc_info=True)

    return InternalError().to_response()
