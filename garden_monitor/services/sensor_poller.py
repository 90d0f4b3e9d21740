"""
Sensor Poller
=============
Keeps the latest reading set of one garden fresh on a fixed interval.

Features:
- Explicit start/stop lifecycle backed by an asyncio task
- At most one outstanding fetch; concurrent ``refresh()`` calls share it
- Stale-but-available: a failed fetch records an error and keeps the previous
  readings visible until a later fetch succeeds
- Teardown marks in-flight fetches discardable (generation counter)
- Bounded per-type reading history for trend display
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress
from datetime import datetime

from garden_monitor.domain.sensors import (
    DECISION_INPUT_KEYS,
    SensorDisplayRecord,
    SensorReading,
    SensorSnapshot,
    worst_status_by_type,
)
from garden_monitor.enums import SensorType
from garden_monitor.services.protocols import SensorSource
from garden_monitor.utils.concurrency import call_with_timeout
from garden_monitor.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 5.0
DEFAULT_HISTORY_SIZE = 20


class SensorPoller:
    """
    Periodic fetch of the latest sensor readings for a single garden.

    The poller owns its timer task; ``stop()`` cancels it and bumps the
    generation so that any fetch still in flight is ignored when it lands.
    """

    def __init__(
        self,
        source: SensorSource,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        timeout_s: float = 10.0,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self.source = source
        self.poll_interval_s = max(0.0, float(poll_interval_s))
        self.timeout_s = float(timeout_s)
        self.history_size = max(1, int(history_size))

        self._garden_id: int | None = None
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

        self._readings: dict[int, SensorReading] = {}
        self._records: tuple[SensorDisplayRecord, ...] = ()
        self._history: dict[str, deque[SensorReading]] = {}
        self._error: str | None = None
        self._last_updated: datetime | None = None
        self._failure_count = 0

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    @property
    def garden_id(self) -> int | None:
        return self._garden_id

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, garden_id: int) -> None:
        """Begin polling ``garden_id``; an existing loop is torn down first."""
        if self.is_running and garden_id == self._garden_id:
            return

        await self.stop()
        if garden_id != self._garden_id:
            self._reset(garden_id)

        generation = self._generation
        self._task = asyncio.create_task(
            self._polling_loop(garden_id, generation),
            name=f"sensor-poller-{garden_id}",
        )
        logger.info("Started sensor polling for garden %s (interval=%.1fs)", garden_id, self.poll_interval_s)

    async def stop(self) -> None:
        """Cancel the polling loop; late results of in-flight fetches are dropped."""
        self._generation += 1
        task, self._task = self._task, None
        inflight, self._inflight = self._inflight, None
        pending = [t for t in (task, inflight) if t is not None and not t.done()]
        for t in pending:
            t.cancel()
        for t in pending:
            with suppress(asyncio.CancelledError):
                await t
        if task is not None:
            logger.info("Sensor polling stopped for garden %s", self._garden_id)

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def refresh(self) -> SensorSnapshot:
        """Fetch now, joining the in-flight fetch if there is one.

        A stopped poller does not fetch; the current snapshot is returned as is.
        """
        if self._garden_id is None or not self.is_running:
            return self.snapshot()

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._fetch(self._garden_id, self._generation))
        inflight = self._inflight
        try:
            await asyncio.shield(inflight)
        except asyncio.CancelledError:
            # stop() cancelled the shared fetch; only our own cancellation propagates.
            if not inflight.cancelled():
                raise
        return self.snapshot()

    async def _polling_loop(self, garden_id: int, generation: int) -> None:
        loop = asyncio.get_running_loop()
        while generation == self._generation:
            t_start = loop.time()
            try:
                await self.refresh()
            except Exception as exc:
                logger.exception("Sensor polling loop for garden %s hit an unexpected error: %s", garden_id, exc)
            if generation != self._generation:
                break

            elapsed = loop.time() - t_start
            await asyncio.sleep(max(0.0, self.poll_interval_s - elapsed))

    async def _fetch(self, garden_id: int, generation: int) -> None:
        try:
            readings = await call_with_timeout(
                self.source.get_latest_readings(garden_id),
                self.timeout_s,
                operation=f"Sensor fetch for garden {garden_id}",
            )
        except Exception as exc:
            if generation != self._generation:
                return
            self._handle_failure(garden_id, exc)
            return

        if generation != self._generation:
            logger.debug("Discarding late sensor readings for garden %s", garden_id)
            return
        self._apply(garden_id, readings or [])

    def _handle_failure(self, garden_id: int, exc: Exception) -> None:
        self._failure_count += 1
        self._error = str(exc) or exc.__class__.__name__
        if self._failure_count == 1 or self._failure_count % 10 == 0:
            logger.warning(
                "Sensor fetch for garden %s failed (%d consecutive): %s",
                garden_id,
                self._failure_count,
                self._error,
            )

    def _apply(self, garden_id: int, readings: list[SensorReading]) -> None:
        latest: dict[int, SensorReading] = {}
        for reading in readings:
            if reading.garden_id != garden_id:
                logger.debug("Ignoring reading for sensor %s of garden %s", reading.sensor_id, reading.garden_id)
                continue
            held = latest.get(reading.sensor_id) or self._readings.get(reading.sensor_id)
            if held is not None and not reading.supersedes(held):
                latest[reading.sensor_id] = held
                continue
            if held is None or reading.observed_at > held.observed_at:
                self._remember(reading)
            latest[reading.sensor_id] = reading

        self._readings = latest
        self._records = tuple(
            SensorDisplayRecord.from_reading(r)
            for r in sorted(latest.values(), key=lambda r: (r.type_key, r.sensor_id))
        )
        self._error = None
        self._failure_count = 0
        self._last_updated = utc_now()

    def _remember(self, reading: SensorReading) -> None:
        bucket = self._history.setdefault(reading.type_key, deque(maxlen=self.history_size))
        bucket.append(reading)

    def _reset(self, garden_id: int) -> None:
        self._garden_id = garden_id
        self._readings = {}
        self._records = ()
        self._history = {}
        self._error = None
        self._last_updated = None
        self._failure_count = 0

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    def snapshot(self) -> SensorSnapshot:
        return SensorSnapshot(
            garden_id=self._garden_id,
            records=self._records,
            error=self._error,
            last_updated=self._last_updated,
            is_loading=self._inflight is not None and not self._inflight.done(),
            status_by_type=worst_status_by_type(self._records),
        )

    def history(self, sensor_type: SensorType | str) -> list[SensorReading]:
        """Recent readings of one sensor type, newest first."""
        key = str(getattr(sensor_type, "value", sensor_type)).upper()
        bucket = self._history.get(key)
        if not bucket:
            return []
        return sorted(bucket, key=lambda r: r.observed_at, reverse=True)

    def decision_input(self) -> dict[str, float]:
        """Latest value per AI request key (soil_moisture, air_humidity, ...)."""
        chosen: dict[str, SensorReading] = {}
        for reading in self._readings.values():
            sensor_type = SensorType.parse(reading.sensor_type)
            key = DECISION_INPUT_KEYS.get(sensor_type) if sensor_type else None
            if key is None:
                continue
            held = chosen.get(key)
            if held is None or reading.observed_at > held.observed_at:
                chosen[key] = reading
        return {key: r.value for key, r in chosen.items()}
