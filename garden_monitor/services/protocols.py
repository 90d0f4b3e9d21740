"""
Service protocols (structural typing interfaces).

Each external collaborator of the monitoring core is declared as a capability
protocol and injected at construction. ``infrastructure.api`` provides the HTTP
implementations and ``infrastructure.memory`` in-memory ones satisfying the same
contracts.

Every method is a coroutine. Transport failures must surface as
:class:`~garden_monitor.domain.exceptions.UpstreamUnavailable`; an unknown id
as :class:`~garden_monitor.domain.exceptions.NotFoundError`.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from garden_monitor.domain.alerts import Alert
from garden_monitor.domain.sensors import SensorReading
from garden_monitor.domain.watering import (
    DecisionRequest,
    ScheduleDraft,
    WateringDecision,
    WateringSchedule,
    WateringStats,
)
from garden_monitor.enums import AlertStatus


@runtime_checkable
class SensorSource(Protocol):
    """Source of the latest reading of every sensor in a garden."""

    async def get_latest_readings(self, garden_id: int) -> List[SensorReading]:
        ...


@runtime_checkable
class AlertSource(Protocol):
    """Read access to a garden's alerts plus the status update sink."""

    async def list_alerts(self, garden_id: int) -> List[Alert]:
        ...

    async def update_alert_status(self, alert_id: int, status: AlertStatus) -> None:
        ...


@runtime_checkable
class AIDecisionService(Protocol):
    """External AI watering-recommendation service."""

    async def decide(self, garden_id: int, request: DecisionRequest) -> WateringDecision:
        ...

    async def ping(self) -> bool:
        ...

    async def optimal_amount(
        self, garden_id: int, watering_time: datetime, notes: Optional[str] = None
    ) -> Optional[float]:
        """Recommended amount, or ``None`` when the service has no opinion."""
        ...

    async def stats(self, garden_id: int, days: int = 30) -> WateringStats:
        ...


@runtime_checkable
class ScheduleRepository(Protocol):
    """Persistence of watering schedules."""

    async def list_by_garden(self, garden_id: int) -> List[WateringSchedule]:
        ...

    async def get_upcoming(self, garden_id: int, limit: int) -> List[WateringSchedule]:
        ...

    async def create(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        ...

    async def auto_generate(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        ...

    async def complete(self, schedule_id: int) -> WateringSchedule:
        ...

    async def skip(self, schedule_id: int) -> WateringSchedule:
        ...

    async def delete(self, schedule_id: int) -> None:
        ...
