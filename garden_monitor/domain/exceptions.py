"""Centralized exception hierarchy for the garden monitor.

All domain and service exceptions inherit from :class:`GardenMonitorError` so
that callers can catch a single base class when they need a broad safety net,
yet still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``garden_monitor.utils.http.safe_route``)
maps these to the correct HTTP status codes automatically.

Hierarchy
---------
::

    GardenMonitorError (base - maps to 500)
    ├── ValidationError            (400 - bad input, never retried)
    ├── NotFoundError              (404 - entity id unknown)
    ├── ConflictError              (409 - illegal state transition)
    ├── UpstreamUnavailable        (503 - network / timeout, safe to retry)
    ├── RecommendationUnavailable  (503 - AI disconnected, offer manual fallback)
    └── ConfigurationError         (500 - missing / invalid config)
"""

from __future__ import annotations


class GardenMonitorError(Exception):
    """Base exception for all garden monitor errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, returned to the
        client only for 4xx errors).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500
    retryable: bool = False

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(GardenMonitorError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class NotFoundError(GardenMonitorError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


class ConflictError(GardenMonitorError):
    """Requested transition is not allowed from the current state (HTTP 409)."""

    http_status: int = 409


# ── Server errors (5xx) ──────────────────────────────────────────────


class UpstreamUnavailable(GardenMonitorError):
    """Transport failure or timeout talking to a backend service (HTTP 503)."""

    http_status: int = 503
    retryable: bool = True


class RecommendationUnavailable(GardenMonitorError):
    """The AI decision service is disconnected (HTTP 503)."""

    http_status: int = 503


class ConfigurationError(GardenMonitorError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
