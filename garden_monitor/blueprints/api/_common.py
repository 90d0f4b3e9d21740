"""
Blueprint Common Utilities
==========================

Shared helpers for the API blueprints:
- Service container access
- Request JSON parsing
- Running work for one garden on the background event loop
"""
from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from flask import current_app, request

from garden_monitor.domain.exceptions import ValidationError
from garden_monitor.services.garden_coordinator import GardenDataCoordinator
from garden_monitor.utils.time import coerce_datetime

logger = logging.getLogger("api._common")

T = TypeVar("T")


# ============================================================================
# CONTAINER ACCESS
# ============================================================================


def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


# ============================================================================
# REQUEST HELPERS
# ============================================================================


def get_json() -> dict:
    """JSON request body, or an empty dict when absent or not an object."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def parse_optional_time(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = coerce_datetime(value)
    if parsed is None:
        raise ValidationError(f"Invalid {field_name}: {value!r}", detail={field_name: str(value)})
    return parsed


# ============================================================================
# GARDEN HELPERS
# ============================================================================

GardenAction = Callable[[GardenDataCoordinator], Union[Awaitable[T], T]]


def run_for_garden(garden_id: int, action: GardenAction) -> T:
    """Open ``garden_id`` if needed and run ``action`` against it on the event loop."""
    container = get_container()

    async def _run():
        coordinator = await container.registry.get_or_open(garden_id)
        result = action(coordinator)
        if inspect.isawaitable(result):
            result = await result
        return result

    return container.run(_run())
