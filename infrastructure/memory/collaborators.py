"""
In-Memory Collaborators
=======================

Process-local implementations of the sensor, alert, AI decision and schedule
protocols. Used for tests and for running the API without a backend
(``GARDEN_BACKEND=memory``).

Every collaborator supports fault injection: ``fail_next(operation, exc)`` makes
the next call(s) of ``operation`` raise and ``set_delay(operation, seconds)``
slows it down, which is how ordering and rollback paths are exercised.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import Counter, defaultdict, deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from garden_monitor.domain.alerts import Alert
from garden_monitor.domain.exceptions import ConflictError, NotFoundError, UpstreamUnavailable
from garden_monitor.domain.sensors import SensorReading
from garden_monitor.domain.watering import (
    NO_WATER,
    WATER,
    DecisionRequest,
    ScheduleDraft,
    WateringDecision,
    WateringSchedule,
    WateringStats,
    ensure_transition,
)
from garden_monitor.enums import AlertStatus, ScheduleStatus
from garden_monitor.utils.time import utc_now

logger = logging.getLogger(__name__)


class _FaultInjection:
    """Call counting plus scripted failures and delays per operation."""

    def __init__(self) -> None:
        self.calls: Counter = Counter()
        self._failures: Dict[str, deque] = defaultdict(deque)
        self._delays: Dict[str, float] = {}

    def fail_next(self, operation: str, exc: Optional[Exception] = None, times: int = 1) -> None:
        error = exc or UpstreamUnavailable(f"{operation} failed (injected)")
        for _ in range(times):
            self._failures[operation].append(error)

    def set_delay(self, operation: str, seconds: float) -> None:
        self._delays[operation] = seconds

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        delay = self._delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        else:
            await asyncio.sleep(0)
        if self._failures[operation]:
            raise self._failures[operation].popleft()


class InMemorySensorSource(_FaultInjection):
    def __init__(self) -> None:
        super().__init__()
        self._readings: Dict[int, List[SensorReading]] = {}

    def set_readings(self, garden_id: int, readings: List[SensorReading]) -> None:
        self._readings[garden_id] = list(readings)

    async def get_latest_readings(self, garden_id: int) -> List[SensorReading]:
        await self._enter("get_latest_readings")
        return list(self._readings.get(garden_id, []))


class InMemoryAlertSource(_FaultInjection):
    def __init__(self) -> None:
        super().__init__()
        self._alerts: Dict[int, Alert] = {}

    def add(self, alert: Alert) -> Alert:
        self._alerts[alert.id] = alert
        return alert

    def get(self, alert_id: int) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    async def list_alerts(self, garden_id: int) -> List[Alert]:
        await self._enter("list_alerts")
        return [a for a in self._alerts.values() if a.garden_id == garden_id]

    async def update_alert_status(self, alert_id: int, status: AlertStatus) -> None:
        await self._enter("update_alert_status")
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found", detail={"alert_id": alert_id})
        self._alerts[alert_id] = alert.with_status(status, utc_now())


class InMemoryAIDecisionService(_FaultInjection):
    """Rule-based stand-in: water when soil moisture is below ``dry_threshold``."""

    def __init__(self, *, connected: bool = True, dry_threshold: float = 30.0, amount: float = 2.5) -> None:
        super().__init__()
        self.connected = connected
        self.dry_threshold = dry_threshold
        self.amount = amount
        self.optimal: Optional[float] = amount
        self.history: List[WateringDecision] = []

    async def ping(self) -> bool:
        await self._enter("ping")
        return self.connected

    async def decide(self, garden_id: int, request: DecisionRequest) -> WateringDecision:
        await self._enter("decide")
        if not self.connected:
            raise UpstreamUnavailable("AI service unreachable")

        moisture = request.sensor_snapshot.get("soil_moisture")
        if moisture is not None and moisture < self.dry_threshold:
            decision = WateringDecision(
                decision=WATER,
                confidence=0.9,
                reasons=(f"Soil moisture {moisture:g}% is below {self.dry_threshold:g}%",),
                recommended_amount=self.amount,
                sensor_snapshot=dict(request.sensor_snapshot),
                timestamp=utc_now(),
                garden_id=garden_id,
            )
        else:
            decision = WateringDecision(
                decision=NO_WATER,
                confidence=0.75,
                reasons=("Soil moisture is adequate",) if moisture is not None else ("No soil moisture data",),
                recommended_amount=0.0,
                sensor_snapshot=dict(request.sensor_snapshot),
                timestamp=utc_now(),
                garden_id=garden_id,
            )
        self.history.append(decision)
        return decision

    async def optimal_amount(
        self, garden_id: int, watering_time: datetime, notes: Optional[str] = None
    ) -> Optional[float]:
        await self._enter("optimal_amount")
        return self.optimal

    async def stats(self, garden_id: int, days: int = 30) -> WateringStats:
        await self._enter("stats")
        now = utc_now()
        since = now - timedelta(days=days)
        window = [d for d in self.history if d.garden_id == garden_id and d.timestamp >= since]
        water = [d for d in window if d.should_water]
        total = len(window)
        return WateringStats(
            garden_id=garden_id,
            total_decisions=total,
            water_recommendations=len(water),
            no_water_recommendations=total - len(water),
            average_confidence=round(sum(d.confidence for d in window) / total, 3) if total else 0.0,
            average_water_amount=round(sum(d.recommended_amount for d in water) / len(water), 3) if water else 0.0,
            from_date=since,
            to_date=now,
        )


class InMemoryScheduleRepository(_FaultInjection):
    def __init__(self) -> None:
        super().__init__()
        self._schedules: Dict[int, WateringSchedule] = {}
        self._ids = itertools.count(1)

    def add(self, schedule: WateringSchedule) -> WateringSchedule:
        self._schedules[schedule.id] = schedule
        return schedule

    def get(self, schedule_id: int) -> Optional[WateringSchedule]:
        return self._schedules.get(schedule_id)

    def _require(self, schedule_id: int) -> WateringSchedule:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Schedule {schedule_id} not found", detail={"schedule_id": schedule_id})
        return schedule

    def _insert(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        schedule_id = next(self._ids)
        while schedule_id in self._schedules:
            schedule_id = next(self._ids)
        now = utc_now()
        schedule = WateringSchedule(
            id=schedule_id,
            garden_id=garden_id,
            scheduled_at=draft.scheduled_at,
            status=ScheduleStatus.PENDING,
            created_at=now,
            updated_at=now,
            amount=draft.amount,
            reason=draft.reason,
            notes=draft.notes,
        )
        self._schedules[schedule_id] = schedule
        return schedule

    async def list_by_garden(self, garden_id: int) -> List[WateringSchedule]:
        await self._enter("list_by_garden")
        return sorted(
            (s for s in self._schedules.values() if s.garden_id == garden_id),
            key=lambda s: (s.scheduled_at, s.id),
        )

    async def get_upcoming(self, garden_id: int, limit: int) -> List[WateringSchedule]:
        await self._enter("get_upcoming")
        now = utc_now()
        pending = sorted(
            (s for s in self._schedules.values() if s.garden_id == garden_id and s.is_pending and s.scheduled_at >= now),
            key=lambda s: (s.scheduled_at, s.id),
        )
        return pending[:limit]

    async def create(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        await self._enter("create")
        return self._insert(garden_id, draft)

    async def auto_generate(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        await self._enter("auto_generate")
        return self._insert(garden_id, draft)

    async def _transition(self, operation: str, schedule_id: int, target: ScheduleStatus) -> WateringSchedule:
        await self._enter(operation)
        current = self._require(schedule_id)
        ensure_transition(current, target)
        updated = replace(current, status=target, updated_at=utc_now())
        self._schedules[schedule_id] = updated
        return updated

    async def complete(self, schedule_id: int) -> WateringSchedule:
        return await self._transition("complete", schedule_id, ScheduleStatus.COMPLETED)

    async def skip(self, schedule_id: int) -> WateringSchedule:
        return await self._transition("skip", schedule_id, ScheduleStatus.SKIPPED)

    async def delete(self, schedule_id: int) -> None:
        await self._enter("delete")
        self._require(schedule_id)
        del self._schedules[schedule_id]
