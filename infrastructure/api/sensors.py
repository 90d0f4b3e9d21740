"""HTTP sensor source."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from garden_monitor.domain.sensors import SensorReading
from garden_monitor.schemas.upstream import SensorReadingPayload
from infrastructure.api import endpoints
from infrastructure.api.client import ApiClient
from infrastructure.api.decoding import decode_many

logger = logging.getLogger(__name__)


class HttpSensorSource:
    """Latest readings from ``/gardens/{id}/sensors/latest-readings``."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def get_latest_readings(self, garden_id: int) -> List[SensorReading]:
        payload = await asyncio.to_thread(self.client.get, endpoints.latest_readings(garden_id))
        readings = []
        for item in decode_many(SensorReadingPayload, payload, what="sensor reading"):
            reading = item.to_domain(garden_id)
            if reading is None:
                logger.debug("Sensor %s of garden %s has no reading yet", item.sensor_id, garden_id)
                continue
            readings.append(reading)
        return readings
