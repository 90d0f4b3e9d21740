"""
AI Decision Gateway
===================
Wraps the external AI watering-recommendation service.

The gateway is shared by every open garden and owns the single
``AIConnectionState``. Only ``test_connection`` writes that state; decision,
optimal-amount and statistics calls never touch it, so one failed recommendation
does not flip the UI into manual mode.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Mapping, Optional

from garden_monitor.domain.exceptions import GardenMonitorError, UpstreamUnavailable, ValidationError
from garden_monitor.domain.watering import DecisionRequest, WateringDecision, WateringStats
from garden_monitor.enums import AIConnectionState
from garden_monitor.services.protocols import AIDecisionService
from garden_monitor.utils.concurrency import call_with_timeout
from garden_monitor.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_STATS_DAYS = 30


class AIDecisionGateway:
    """Decision requests plus connectivity probing for the AI service."""

    def __init__(self, service: AIDecisionService, *, timeout_s: float = 15.0):
        self.service = service
        self.timeout_s = float(timeout_s)

        self._state = AIConnectionState.DISCONNECTED
        self._last_checked_at: Optional[datetime] = None
        self._probe: asyncio.Task | None = None

    @property
    def state(self) -> AIConnectionState:
        return self._state

    @property
    def last_checked_at(self) -> Optional[datetime]:
        return self._last_checked_at

    @property
    def is_connected(self) -> bool:
        return self._state is AIConnectionState.CONNECTED

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "last_checked_at": self._last_checked_at.isoformat() if self._last_checked_at else None,
        }

    async def _call(self, awaitable: Awaitable[Any], operation: str) -> Any:
        try:
            return await call_with_timeout(awaitable, self.timeout_s, operation=operation)
        except GardenMonitorError:
            raise
        except Exception as exc:
            logger.warning("%s failed: %s", operation, exc)
            raise UpstreamUnavailable(f"{operation} failed: {exc}", detail={"operation": operation}) from exc

    # ------------------------------------------------------------------ #
    # Recommendations
    # ------------------------------------------------------------------ #

    async def get_decision(
        self,
        garden_id: int,
        snapshot: Mapping[str, float] | None = None,
        watering_time: datetime | None = None,
        notes: str | None = None,
    ) -> WateringDecision:
        """Ask the AI service whether the garden should be watered.

        Raises:
            UpstreamUnavailable: transport failure or timeout
        """
        request = DecisionRequest(
            sensor_snapshot=dict(snapshot or {}),
            watering_time=watering_time,
            notes=notes,
        )
        decision = await self._call(
            self.service.decide(garden_id, request),
            f"Watering decision for garden {garden_id}",
        )
        logger.info(
            "AI decision for garden %s: %s (confidence=%.2f, amount=%s)",
            garden_id,
            decision.decision,
            decision.confidence,
            decision.recommended_amount,
        )
        return decision

    async def get_optimal_amount(
        self, garden_id: int, watering_time: datetime, notes: str | None = None
    ) -> Optional[float]:
        """Recommended water amount, ``None`` when the service has no opinion."""
        amount = await self._call(
            self.service.optimal_amount(garden_id, watering_time, notes),
            f"Optimal amount for garden {garden_id}",
        )
        if amount is None:
            return None
        try:
            return float(amount)
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailable(
                f"AI service returned a non-numeric optimal amount: {amount!r}",
                detail={"garden_id": garden_id},
            ) from exc

    async def get_stats(self, garden_id: int, days: int = DEFAULT_STATS_DAYS) -> WateringStats:
        if days < 1:
            raise ValidationError("days must be at least 1", detail={"days": days})
        return await self._call(
            self.service.stats(garden_id, days),
            f"Decision stats for garden {garden_id}",
        )

    # ------------------------------------------------------------------ #
    # Connectivity
    # ------------------------------------------------------------------ #

    async def test_connection(self) -> bool:
        """Probe the service; concurrent callers share one probe."""
        if self._probe is None or self._probe.done():
            self._probe = asyncio.create_task(self._run_probe(), name="ai-connection-probe")
        return await asyncio.shield(self._probe)

    async def wait_for_probe(self) -> AIConnectionState:
        """Wait for an in-progress probe, if any, and return the settled state."""
        probe = self._probe
        if probe is not None and not probe.done():
            await asyncio.shield(probe)
        return self._state

    async def _run_probe(self) -> bool:
        previous = self._state
        self._state = AIConnectionState.TESTING
        try:
            connected = bool(
                await call_with_timeout(self.service.ping(), self.timeout_s, operation="AI connection probe")
            )
        except Exception as exc:
            logger.warning("AI connection probe failed: %s", exc)
            connected = False

        self._state = AIConnectionState.CONNECTED if connected else AIConnectionState.DISCONNECTED
        self._last_checked_at = utc_now()
        if previous is not self._state:
            logger.info("AI service is %s", self._state.value)
        return connected
