"""HTTP alert source."""

from __future__ import annotations

import asyncio
from typing import List

from garden_monitor.domain.alerts import Alert
from garden_monitor.enums import AlertStatus
from garden_monitor.schemas.upstream import AlertPayload
from infrastructure.api import endpoints
from infrastructure.api.client import ApiClient
from infrastructure.api.decoding import decode_many


class HttpAlertSource:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_alerts(self, garden_id: int) -> List[Alert]:
        payload = await asyncio.to_thread(self.client.get, endpoints.garden_alerts(garden_id))
        return [item.to_domain() for item in decode_many(AlertPayload, payload, what="alert")]

    async def update_alert_status(self, alert_id: int, status: AlertStatus) -> None:
        await asyncio.to_thread(self.client.patch, endpoints.alert_detail(alert_id), {"status": status.value})
