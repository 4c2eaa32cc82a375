"""
Calendar events API - Endpoint Handlers

This module implements the REST endpoints of the calendar event engine.
Uses Starlette for HTTP handling; each request runs its unit of work in one
database session on a worker thread.
"""

from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from starlette import status
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..core.errors import (
    AgendaError,
    UnauthorizedError,
    ValidationError,
    handle_exception,
)
from ..core.payloads import parse_create_payload, parse_list_query, parse_update_payload
from ..core.serializers import serialize_event, serialize_occurrence_list, serialize_result
from ..database.schema import UpdateScope
from ..database.store import EventStore
from ..service import CalendarService

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_HEADER = "X-User-Id"


# ============================================================================
# REQUEST UTILITIES
# ============================================================================


def get_user_id(request: Request) -> str:
    """
    Extract the owner id from the request.

    Authentication happens upstream; the gateway forwards the caller's id in
    the X-User-Id header.
    """
    user_id = request.headers.get(USER_HEADER)
    if user_id is None or user_id.strip() == "":
        raise UnauthorizedError("Missing user authentication")
    return user_id.strip()


async def get_request_body(request: Request) -> Any:
    """Parse JSON body from request, return empty dict if no body."""
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}")


def parse_scope_param(request: Request, name: str) -> UpdateScope:
    """THIS_ONLY or ALL_FUTURE; defaults to ALL_FUTURE."""
    raw = request.query_params.get(name)
    if raw is None or raw.strip() == "":
        return UpdateScope.ALL_FUTURE
    try:
        return UpdateScope(raw.strip().upper())
    except ValueError:
        raise ValidationError(
            f"{name} must be THIS_ONLY or ALL_FUTURE", field=name
        )


async def run_in_session(request: Request, work: Callable[[CalendarService], T]) -> T:
    """
    Run work against a CalendarService in its own session.

    The session commits when work returns and rolls back when it raises. The
    whole unit runs on one worker thread so the owner lock is taken and
    released on the same thread.
    """
    state = request.app.state

    def _unit() -> T:
        with state.session_manager.with_session() as session:
            service = CalendarService(
                EventStore(session),
                clock=state.clock,
                settings=state.settings,
                sync=state.sync,
            )
            return work(service)

    return await run_in_threadpool(_unit)


# ============================================================================
# ERROR HANDLING WRAPPER
# ============================================================================


def api_handler(
    handler: Callable[[Request], Awaitable[Response]]
) -> Callable[[Request], Awaitable[Response]]:
    """
    Decorator that wraps API handlers with error handling and conversion to
    JSON error responses.
    """

    @wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except AgendaError as e:
            return handle_exception(e)
        except Exception as e:
            # Log full exception server-side for debugging
            logger.exception("Unhandled exception in calendar API: %s", e)
            return JSONResponse(
                {
                    "error": {
                        "code": 500,
                        "message": "Internal server error",
                        "errors": [
                            {
                                "domain": "global",
                                "reason": "internalError",
                                "message": "Internal server error",
                            }
                        ],
                    }
                },
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

    return wrapper


def _method_not_allowed(method: str) -> JSONResponse:
    return JSONResponse(
        {
            "error": {
                "code": 405,
                "message": "Method not allowed",
                "errors": [
                    {
                        "domain": "global",
                        "reason": "methodNotAllowed",
                        "message": f"Method {method} not allowed",
                    }
                ],
            }
        },
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
    )


# ============================================================================
# EVENT ENDPOINTS
# ============================================================================


@api_handler
async def events_list(request: Request) -> JSONResponse:
    """
    GET /calendar/events

    Query parameters:
    - startDate / endDate: listing window (defaults around now)
    - type: event type filter
    - leadId / clientId: association filters
    - search: case-insensitive match on title or description
    - includeRecurring: expand recurring series (default true)
    """
    user_id = get_user_id(request)
    query = parse_list_query(dict(request.query_params))
    result = await run_in_session(
        request, lambda service: serialize_occurrence_list(service.list(user_id, query))
    )
    return JSONResponse(result)


@api_handler
async def events_get(request: Request) -> JSONResponse:
    """
    GET /calendar/events/{eventId}

    eventId may be a stored id or a virtual occurrence id.
    """
    user_id = get_user_id(request)
    event_id = request.path_params["eventId"]
    result = await run_in_session(
        request, lambda service: serialize_result(service.get(user_id, event_id))
    )
    return JSONResponse(result)


@api_handler
async def events_insert(request: Request) -> JSONResponse:
    """POST /calendar/events"""
    user_id = get_user_id(request)
    payload = parse_create_payload(await get_request_body(request))
    result = await run_in_session(
        request, lambda service: serialize_event(service.create(user_id, payload))
    )
    return JSONResponse(result, status_code=status.HTTP_201_CREATED)


@api_handler
async def events_patch(request: Request) -> JSONResponse:
    """
    PATCH /calendar/events/{eventId}?updateMode=THIS_ONLY|ALL_FUTURE

    THIS_ONLY on an occurrence id answers with the new standalone event;
    everything else answers with the updated stored event.
    """
    user_id = get_user_id(request)
    event_id = request.path_params["eventId"]
    scope = parse_scope_param(request, "updateMode")
    payload = parse_update_payload(await get_request_body(request))
    result = await run_in_session(
        request,
        lambda service: serialize_event(service.update(user_id, event_id, payload, scope)),
    )
    return JSONResponse(result)


@api_handler
async def events_delete(request: Request) -> Response:
    """DELETE /calendar/events/{eventId}?deleteMode=THIS_ONLY|ALL_FUTURE"""
    user_id = get_user_id(request)
    event_id = request.path_params["eventId"]
    scope = parse_scope_param(request, "deleteMode")
    await run_in_session(request, lambda service: service.remove(user_id, event_id, scope))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# DISPATCH HANDLERS
# ============================================================================


async def events_handler(request: Request) -> Response:
    """
    Dispatch handler for /calendar/events
    Routes to appropriate handler based on HTTP method.
    """
    method = request.method
    if method == "GET":
        return await events_list(request)
    elif method == "POST":
        return await events_insert(request)
    return _method_not_allowed(method)


async def event_by_id_handler(request: Request) -> Response:
    """
    Dispatch handler for /calendar/events/{eventId}
    Routes to appropriate handler based on HTTP method.
    """
    method = request.method
    if method == "GET":
        return await events_get(request)
    elif method == "PATCH":
        return await events_patch(request)
    elif method == "DELETE":
        return await events_delete(request)
    return _method_not_allowed(method)


# ============================================================================
# ROUTES
# ============================================================================


routes = [
    # GET /calendar/events - List occurrences in a window
    # POST /calendar/events - Create an event or series
    Route("/calendar/events", events_handler, methods=["GET", "POST"]),
    # GET/PATCH/DELETE /calendar/events/{eventId}
    Route(
        "/calendar/events/{eventId}",
        event_by_id_handler,
        methods=["GET", "PATCH", "DELETE"],
    ),
]
