"""
Concurrency utilities.

Provides:
- ``call_with_timeout``: await an upstream coroutine under an explicit deadline,
  reporting a timeout as :class:`UpstreamUnavailable` like any transport error.
- ``RequestSequencer``: monotonic request counter used to apply responses in
  request order rather than completion order (last-writer-by-sequence).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from garden_monitor.domain.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout_s: float, *, operation: str) -> T:
    """Await ``awaitable`` for at most ``timeout_s`` seconds.

    Raises:
        UpstreamUnavailable: if the deadline passes before completion
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %.1fs", operation, timeout_s)
        raise UpstreamUnavailable(
            f"{operation} timed out after {timeout_s:g}s",
            detail={"operation": operation, "timeout_s": timeout_s},
        ) from exc


class RequestSequencer:
    """Issues increasing sequence numbers and tracks the newest applied one.

    A response may be applied only when its sequence number is newer than the
    last applied response, so a slow older request can never overwrite state
    written by a newer one. ``invalidate`` makes every outstanding sequence
    number stale (used on teardown).
    """

    def __init__(self) -> None:
        self._issued = 0
        self._applied = 0

    @property
    def issued(self) -> int:
        return self._issued

    @property
    def applied(self) -> int:
        return self._applied

    def next(self) -> int:
        self._issued += 1
        return self._issued

    def is_current(self, seq: int) -> bool:
        return seq > self._applied

    def try_apply(self, seq: int) -> bool:
        """Mark ``seq`` as applied if it is newer than the last applied one."""
        if seq <= self._applied:
            return False
        self._applied = seq
        return True

    def invalidate(self) -> None:
        self._issued += 1
        self._applied = self._issued
