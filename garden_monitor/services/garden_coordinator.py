"""
Garden Data Coordinator
=======================
Aggregates the sensor poller, alert store and watering schedule manager of one
garden behind a single open / refresh / close surface.

``refresh_all`` fans the three refreshes out concurrently and waits for every
one of them to settle; a failing part is reported, never allowed to cancel the
others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from garden_monitor.domain.alerts import Alert, severity_for_status
from garden_monitor.domain.exceptions import ConflictError, NotFoundError
from garden_monitor.services.ai_gateway import AIDecisionGateway
from garden_monitor.services.alert_store import AlertStore
from garden_monitor.services.sensor_poller import SensorPoller
from garden_monitor.services.watering_schedule_manager import WateringScheduleManager
from garden_monitor.utils.time import iso_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of refreshing one part of the garden view."""

    part: str
    ok: bool
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"part": self.part, "ok": self.ok, "error": self.error, "error_type": self.error_type}


@dataclass(frozen=True)
class RefreshReport:
    garden_id: int
    outcomes: tuple[RefreshOutcome, ...]
    finished_at: str

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def outcome(self, part: str) -> Optional[RefreshOutcome]:
        return next((o for o in self.outcomes if o.part == part), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "garden_id": self.garden_id,
            "ok": self.ok,
            "parts": {o.part: o.to_dict() for o in self.outcomes},
            "finished_at": self.finished_at,
        }


class GardenDataCoordinator:
    """One open garden view: sensors, alerts, schedules and AI state."""

    def __init__(
        self,
        garden_id: int,
        *,
        poller: SensorPoller,
        alerts: AlertStore,
        schedules: WateringScheduleManager,
        gateway: AIDecisionGateway,
    ):
        self.garden_id = garden_id
        self.poller = poller
        self.alerts = alerts
        self.schedules = schedules
        self.gateway = gateway
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def open(self) -> RefreshReport:
        """Start polling, probe the AI service and load everything once."""
        self._ensure_open()
        self._opened = True
        self.alerts.attach(self.garden_id)
        await self.poller.start(self.garden_id)
        await self.gateway.test_connection()
        report = await self.refresh_all()
        logger.info("Opened garden %s (ai=%s)", self.garden_id, self.gateway.state.value)
        return report

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConflictError(f"Garden {self.garden_id} is closed", detail={"garden_id": self.garden_id})

    async def refresh_all(self) -> RefreshReport:
        """Reload every part concurrently.

        Raises:
            ConflictError: the garden view was closed
        """
        self._ensure_open()
        parts = ("sensors", "alerts", "schedules")
        results = await asyncio.gather(
            self.poller.refresh(),
            self.alerts.load(self.garden_id),
            self.schedules.refresh(),
            return_exceptions=True,
        )

        outcomes = []
        for part, result in zip(parts, results):
            if isinstance(result, BaseException):
                outcomes.append(
                    RefreshOutcome(part, False, str(result) or result.__class__.__name__, result.__class__.__name__)
                )
            elif part == "sensors" and result.error:
                # The poller absorbs fetch failures into its error flag.
                outcomes.append(RefreshOutcome(part, False, result.error, "SensorFetchError"))
            else:
                outcomes.append(RefreshOutcome(part, True))

        report = RefreshReport(self.garden_id, tuple(outcomes), iso_now())
        if not report.ok:
            failed = ", ".join(o.part for o in outcomes if not o.ok)
            logger.warning("Refresh of garden %s partially failed: %s", self.garden_id, failed)
        return report

    async def close(self) -> None:
        """Stop polling; anything still in flight is discarded when it lands."""
        if self._closed:
            return
        self._closed = True
        await self.poller.stop()
        self.schedules.close()
        self.alerts.discard(self.garden_id)
        logger.info("Closed garden %s", self.garden_id)

    # ------------------------------------------------------------------ #
    # Alert actions scoped to this garden
    # ------------------------------------------------------------------ #

    def _check_alert(self, alert_id: int) -> None:
        owner = self.alerts.garden_of(alert_id)
        if owner is not None and owner != self.garden_id:
            raise NotFoundError(
                f"Alert {alert_id} not found in garden {self.garden_id}",
                detail={"alert_id": alert_id, "garden_id": self.garden_id},
            )

    async def resolve_alert(self, alert_id: int) -> Alert:
        self._ensure_open()
        self._check_alert(alert_id)
        return await self.alerts.resolve(alert_id)

    async def ignore_alert(self, alert_id: int) -> Alert:
        self._ensure_open()
        self._check_alert(alert_id)
        return await self.alerts.ignore(alert_id)

    # ------------------------------------------------------------------ #
    # Combined view
    # ------------------------------------------------------------------ #

    def attention(self) -> list[dict[str, Any]]:
        """Sensors outside their optimal range with the alert severity they warrant."""
        items = []
        for record in self.poller.snapshot().needing_attention():
            severity = severity_for_status(record.status)
            item = record.to_dict()
            item["suggested_severity"] = severity.value if severity else None
            items.append(item)
        return items

    def snapshot(self) -> dict[str, Any]:
        sensors = self.poller.snapshot()
        return {
            "garden_id": self.garden_id,
            "open": self.is_open,
            "sensors": sensors.to_dict(),
            "alerts": {
                "active": [a.to_dict() for a in self.alerts.list_active(self.garden_id)],
                "counts": self.alerts.counts(self.garden_id).to_dict(),
                "error": self.alerts.last_error(self.garden_id),
            },
            "watering": self.schedules.to_dict(),
            "ai": self.gateway.status(),
            "attention": self.attention(),
        }
