"""
Garden Backend API Client
=========================

Thin synchronous wrapper over a ``requests.Session`` for the garden backend
REST API.

Features:
- Base URL + API version prefix, bearer token authentication
- Explicit per-request timeout
- ``{"data": ...}`` response envelopes unwrapped transparently
- Read-only GETs retried with exponential backoff and jitter; mutations never
- HTTP / transport failures mapped onto the garden monitor exception hierarchy
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import requests

from garden_monitor.domain.exceptions import (
    ConflictError,
    GardenMonitorError,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_GET_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_S = 1.0

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def backoff_delay(attempt: int, base_delay_s: float, rand: Callable[[], float] = random.random) -> float:
    """Delay before retry ``attempt`` (0-based): base * 2^attempt scaled by 50-100% jitter."""
    return base_delay_s * (2**attempt) * (0.5 + rand() * 0.5)


class ApiClient:
    """Session-backed JSON client for the garden backend."""

    def __init__(
        self,
        base_url: str,
        *,
        api_version: str = "",
        token: Optional[str] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        get_retries: int = DEFAULT_GET_RETRIES,
        retry_base_delay_s: float = DEFAULT_RETRY_BASE_DELAY_S,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version.strip("/")
        self.timeout_s = float(timeout_s)
        self.get_retries = max(0, int(get_retries))
        self.retry_base_delay_s = max(0.0, float(retry_base_delay_s))
        self.session = session or requests.Session()
        self._sleep = sleep

        self.session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
        if token:
            self.set_token(token)

    def set_token(self, token: Optional[str]) -> None:
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def url(self, path: str) -> str:
        prefix = f"{self.base_url}/{self.api_version}" if self.api_version else self.base_url
        return f"{prefix}/{path.lstrip('/')}"

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, *, retry: bool = True) -> Any:
        retries = self.get_retries if retry else 0
        attempt = 0
        while True:
            try:
                return self._request("GET", path, params=params)
            except UpstreamUnavailable as exc:
                if attempt >= retries:
                    raise
                delay = backoff_delay(attempt, self.retry_base_delay_s)
                attempt += 1
                logger.info("GET %s failed (%s); retry %d/%d in %.2fs", path, exc, attempt, retries, delay)
                self._sleep(delay)

    def post(self, path: str, json: Any = None) -> Any:
        return self._request("POST", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self._request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self.url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout_s, **kwargs)
        except requests.Timeout as exc:
            raise UpstreamUnavailable(
                f"{method} {path} timed out after {self.timeout_s:g}s",
                detail={"method": method, "path": path},
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(
                f"{method} {path} failed: {exc}",
                detail={"method": method, "path": path},
            ) from exc

        self._raise_for_status(method, path, response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(
                f"{method} {path} returned invalid JSON",
                detail={"method": method, "path": path, "status": response.status_code},
            ) from exc
        return self._unwrap(body)

    @staticmethod
    def _unwrap(body: Any) -> Any:
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason or ""
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    def _raise_for_status(self, method: str, path: str, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        message = self._error_message(response)
        detail = {"method": method, "path": path, "status": status}
        logger.debug("%s %s -> HTTP %s: %s", method, path, status, message)
        if status == 404:
            raise NotFoundError(message or f"{path} not found", detail=detail)
        if status == 409:
            raise ConflictError(message or f"{method} {path} conflicts with current state", detail=detail)
        if status in (400, 422):
            raise ValidationError(message or f"{method} {path} rejected", detail=detail)
        if status in _RETRYABLE_STATUS:
            raise UpstreamUnavailable(message or f"{method} {path} -> HTTP {status}", detail=detail)
        raise GardenMonitorError(message or f"{method} {path} -> HTTP {status}", detail=detail)
