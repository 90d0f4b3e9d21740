from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from pydantic import ValidationError as PydanticValidationError

from garden_monitor.utils.time import iso_now

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Generic user-facing messages; upstream URLs and payloads stay in the logs
# ---------------------------------------------------------------------------
_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    409: "Conflict",
    500: "An internal error occurred",
    503: "Service temporarily unavailable",
}


def safe_error(
    exc: BaseException,
    status: int = 500,
    *,
    context: str = "",
    details: dict | None = None,
) -> Response:
    """Return a generic error response while logging the real exception.

    Parameters
    ----------
    exc:
        The caught exception, logged server-side and never sent to the client.
    status:
        HTTP status code for the response (determines the generic message).
    context:
        Optional human-readable context logged alongside *exc*, e.g.
        ``"completing watering schedule"``.
    details:
        Optional machine-readable fields safe to return to the client.
    """
    if status >= 500 and status != 503:
        _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    else:
        _log.warning("API error [%s] %s: %s", status, context, exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status, details=details)


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | None = None,
) -> Response:
    payload: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if details:
        payload.update(details)
    response_body: dict[str, Any] = {
        "ok": False,
        "data": None,
        "error": payload,
        "message": message,
    }
    if details:
        response_body["details"] = details
    response = jsonify(response_body)
    response.status_code = status
    return response


def validation_details(exc: PydanticValidationError) -> dict[str, Any]:
    return {
        "errors": [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
    }


# ---------------------------------------------------------------------------
# Route decorator
# ---------------------------------------------------------------------------


def safe_route(
    error_message: str = "An internal error occurred",
    *,
    error_status: int = 500,
) -> Callable:
    """Decorator that wraps a Flask route handler with standardized error handling.

    Catches :class:`~garden_monitor.domain.exceptions.GardenMonitorError`
    subclasses and maps them to the correct HTTP status via ``exc.http_status``;
    the exception class name is returned as ``error_type`` so the UI can tell a
    disconnected AI service (manual fallback) from a transient upstream fault.
    Request body validation errors return 400. Any other ``Exception`` is
    logged and returns a generic 500.

    Usage::

        @gardens_api.post("/<int:garden_id>/schedules")
        @safe_route("Failed to create watering schedule")
        def create_schedule(garden_id: int):
            ...
    """
    from garden_monitor.domain.exceptions import GardenMonitorError, RecommendationUnavailable

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PydanticValidationError as exc:
                return error_response("Invalid request body", 400, details=validation_details(exc))
            except GardenMonitorError as exc:
                status = exc.http_status
                details = {"error_type": exc.__class__.__name__}
                if isinstance(exc, RecommendationUnavailable):
                    return error_response(str(exc) or error_message, status, details=details)
                if status >= 500:
                    return safe_error(exc, status, context=error_message, details=details)
                return error_response(str(exc) or error_message, status, details=details)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
