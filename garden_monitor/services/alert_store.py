"""
Alert Store
===========
In-memory view of each garden's alerts with optimistic RESOLVED / IGNORED
transitions.

- ``load`` replaces a garden's alerts with the upstream list; a load issued
  before a newer applied write is discarded when it lands.
- Transitions update local state first and roll back if the upstream call fails.
  A load landing while a transition is in flight keeps the optimistic status.
  A second transition of the same alert waits for the first to settle and is
  then decided against the confirmed status.
- A discarded garden stays discarded until ``attach`` is called for it again.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from garden_monitor.domain.alerts import Alert, AlertCounts, count_active, sort_active
from garden_monitor.domain.exceptions import ConflictError, NotFoundError
from garden_monitor.enums import AlertStatus
from garden_monitor.services.protocols import AlertSource
from garden_monitor.utils.concurrency import RequestSequencer, call_with_timeout
from garden_monitor.utils.time import utc_now
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class _GardenAlerts:
    alerts: dict[int, Alert] = field(default_factory=dict)
    sequencer: RequestSequencer = field(default_factory=RequestSequencer)
    loaded_at: Optional[datetime] = None
    error: Optional[str] = None


class AlertStore:
    """Alerts of every open garden, keyed by garden id."""

    def __init__(self, source: AlertSource, *, timeout_s: float = 10.0, audit: AuditLogger | None = None):
        self.source = source
        self.timeout_s = float(timeout_s)
        self.audit = audit

        self._gardens: dict[int, _GardenAlerts] = {}
        self._garden_of: dict[int, int] = {}
        self._pending: dict[int, asyncio.Task] = {}
        self._discarded: set[int] = set()

    def _state(self, garden_id: int) -> _GardenAlerts:
        state = self._gardens.get(garden_id)
        if state is None:
            state = self._gardens[garden_id] = _GardenAlerts()
        return state

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    async def load(self, garden_id: int) -> list[Alert]:
        """Fetch the garden's alerts and return the active ones, sorted.

        Raises:
            UpstreamUnavailable: transport failure or timeout (state unchanged)
        """
        if garden_id in self._discarded:
            logger.debug("Skipping alert load for discarded garden %s", garden_id)
            return []
        state = self._state(garden_id)
        seq = state.sequencer.next()
        try:
            fetched = await call_with_timeout(
                self.source.list_alerts(garden_id),
                self.timeout_s,
                operation=f"Alert load for garden {garden_id}",
            )
        except Exception as exc:
            if self._gardens.get(garden_id) is state and state.sequencer.is_current(seq):
                state.error = str(exc) or exc.__class__.__name__
            logger.warning("Failed to load alerts for garden %s: %s", garden_id, exc)
            raise

        if self._gardens.get(garden_id) is not state or not state.sequencer.try_apply(seq):
            logger.debug("Discarding superseded alert load #%s for garden %s", seq, garden_id)
            return self.list_active(garden_id)

        merged: dict[int, Alert] = {}
        for alert in fetched or []:
            held = state.alerts.get(alert.id)
            # Keep the optimistic copy while its transition is outstanding.
            if alert.id in self._pending and held is not None:
                alert = held
            merged[alert.id] = alert
            self._garden_of[alert.id] = garden_id

        for stale_id in set(state.alerts) - set(merged):
            if self._garden_of.get(stale_id) == garden_id:
                self._garden_of.pop(stale_id, None)

        state.alerts = merged
        state.loaded_at = utc_now()
        state.error = None
        logger.debug("Loaded %d alerts for garden %s", len(merged), garden_id)
        return self.list_active(garden_id)

    def attach(self, garden_id: int) -> None:
        """Allow loads for ``garden_id`` again after it was discarded."""
        self._discarded.discard(garden_id)

    def discard(self, garden_id: int) -> None:
        """Drop a garden's alerts; loads still in flight for it are ignored."""
        self._discarded.add(garden_id)
        state = self._gardens.pop(garden_id, None)
        if state is None:
            return
        state.sequencer.invalidate()
        for alert_id in state.alerts:
            if self._garden_of.get(alert_id) == garden_id:
                self._garden_of.pop(alert_id, None)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def list_active(self, garden_id: int) -> list[Alert]:
        state = self._gardens.get(garden_id)
        if state is None:
            return []
        return sort_active(state.alerts.values())

    def counts(self, garden_id: int) -> AlertCounts:
        state = self._gardens.get(garden_id)
        return count_active(state.alerts.values() if state else ())

    def garden_of(self, alert_id: int) -> int | None:
        return self._garden_of.get(alert_id)

    def get(self, alert_id: int) -> Alert | None:
        garden_id = self._garden_of.get(alert_id)
        state = self._gardens.get(garden_id) if garden_id is not None else None
        return state.alerts.get(alert_id) if state else None

    def last_error(self, garden_id: int) -> str | None:
        state = self._gardens.get(garden_id)
        return state.error if state else None

    def loaded_at(self, garden_id: int) -> datetime | None:
        state = self._gardens.get(garden_id)
        return state.loaded_at if state else None

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    async def resolve(self, alert_id: int) -> Alert:
        return await self._transition(alert_id, AlertStatus.RESOLVED)

    async def ignore(self, alert_id: int) -> Alert:
        return await self._transition(alert_id, AlertStatus.IGNORED)

    async def _transition(self, alert_id: int, target: AlertStatus) -> Alert:
        pending = self._pending.get(alert_id)
        while pending is not None and not pending.done():
            # The first caller reports its own failure; this one re-reads the settled status.
            with suppress(Exception):
                await asyncio.shield(pending)
            pending = self._pending.get(alert_id)

        garden_id = self._garden_of.get(alert_id)
        state = self._gardens.get(garden_id) if garden_id is not None else None
        current = state.alerts.get(alert_id) if state else None
        if current is None:
            raise NotFoundError(f"Alert {alert_id} not found", detail={"alert_id": alert_id})

        if current.status is target:
            return current
        if current.status.is_terminal:
            raise ConflictError(
                f"Alert {alert_id} is already {current.status.value}",
                detail={"alert_id": alert_id, "status": current.status.value, "target": target.value},
            )

        optimistic = current.with_status(target, utc_now())
        state.alerts[alert_id] = optimistic
        task = asyncio.create_task(self._apply_transition(state, garden_id, current, optimistic))
        self._pending[alert_id] = task
        task.add_done_callback(lambda done: self._forget(alert_id, done))
        return await asyncio.shield(task)

    def _forget(self, alert_id: int, task: asyncio.Task) -> None:
        if self._pending.get(alert_id) is task:
            del self._pending[alert_id]

    async def _apply_transition(
        self, state: _GardenAlerts, garden_id: int, current: Alert, optimistic: Alert
    ) -> Alert:
        alert_id, target = current.id, optimistic.status
        action = f"alert.{target.value.lower()}"
        try:
            await call_with_timeout(
                self.source.update_alert_status(alert_id, target),
                self.timeout_s,
                operation=f"Alert {alert_id} -> {target.value}",
            )
        except Exception as exc:
            # A newer load may already have replaced the entry; only undo our own write.
            if state.alerts.get(alert_id) is optimistic:
                state.alerts[alert_id] = current
            logger.warning("Alert %s transition to %s failed, rolled back: %s", alert_id, target.value, exc)
            self._audit(action, alert_id, garden_id, error=exc)
            raise

        # Loads issued before this write are now stale.
        state.sequencer.try_apply(state.sequencer.next())
        logger.info("Alert %s marked %s", alert_id, target.value)
        self._audit(action, alert_id, garden_id)
        return optimistic

    def _audit(self, action: str, alert_id: int, garden_id: int, error: Exception | None = None) -> None:
        if self.audit is None:
            return
        self.audit.log_mutation(action, f"alert:{alert_id}", error=error, garden_id=garden_id)
