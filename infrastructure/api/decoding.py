"""Payload decoding helpers shared by the HTTP collaborators."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from garden_monitor.domain.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def decode_one(model: Type[M], payload: Any, *, what: str) -> M:
    """Validate a single upstream object; malformed payloads are upstream faults."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise UpstreamUnavailable(
            f"Malformed {what} payload from backend",
            detail={"what": what, "errors": exc.error_count()},
        ) from exc


def decode_many(model: Type[M], payload: Any, *, what: str) -> Iterator[M]:
    """Validate a list payload, skipping (and logging) malformed entries."""
    if payload is None:
        return
    if not isinstance(payload, list):
        raise UpstreamUnavailable(f"Expected a list of {what} from backend", detail={"what": what})
    for index, item in enumerate(payload):
        try:
            yield model.model_validate(item)
        except PydanticValidationError as exc:
            logger.warning("Skipping malformed %s entry #%d: %s", what, index, exc.errors()[:1])
