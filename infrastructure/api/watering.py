"""
HTTP Watering Collaborators
===========================

- ``HttpScheduleRepository``: watering schedule persistence endpoints
- ``HttpAIDecisionService``: AI watering-decision endpoints

``requests`` is blocking, so every call runs in a worker thread via
``asyncio.to_thread`` to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, List, Optional

from garden_monitor.domain.exceptions import UpstreamUnavailable
from garden_monitor.domain.watering import (
    DecisionRequest,
    ScheduleDraft,
    WateringDecision,
    WateringSchedule,
    WateringStats,
)
from garden_monitor.schemas.upstream import (
    WateringDecisionPayload,
    WateringSchedulePayload,
    WateringStatsPayload,
)
from infrastructure.api import endpoints
from infrastructure.api.client import ApiClient
from infrastructure.api.decoding import decode_many, decode_one

logger = logging.getLogger(__name__)


class HttpScheduleRepository:
    def __init__(self, client: ApiClient):
        self.client = client

    @staticmethod
    def _schedule(payload: Any) -> WateringSchedule:
        return decode_one(WateringSchedulePayload, payload, what="watering schedule").to_domain()

    async def list_by_garden(self, garden_id: int) -> List[WateringSchedule]:
        payload = await asyncio.to_thread(self.client.get, endpoints.garden_schedules(garden_id))
        return [item.to_domain() for item in decode_many(WateringSchedulePayload, payload, what="watering schedule")]

    async def get_upcoming(self, garden_id: int, limit: int) -> List[WateringSchedule]:
        payload = await asyncio.to_thread(
            self.client.get, endpoints.upcoming_schedules(garden_id), {"limit": limit}
        )
        items = decode_many(WateringSchedulePayload, payload, what="watering schedule")
        return [item.to_domain() for item in items][:limit]

    async def create(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        payload = await asyncio.to_thread(self.client.post, endpoints.garden_schedules(garden_id), draft.to_payload())
        return self._schedule(payload)

    async def auto_generate(self, garden_id: int, draft: ScheduleDraft) -> WateringSchedule:
        payload = await asyncio.to_thread(
            self.client.post, endpoints.auto_generate_schedule(garden_id), draft.to_payload()
        )
        return self._schedule(payload)

    async def complete(self, schedule_id: int) -> WateringSchedule:
        payload = await asyncio.to_thread(self.client.post, endpoints.complete_schedule(schedule_id))
        return self._schedule(payload)

    async def skip(self, schedule_id: int) -> WateringSchedule:
        payload = await asyncio.to_thread(self.client.post, endpoints.skip_schedule(schedule_id))
        return self._schedule(payload)

    async def delete(self, schedule_id: int) -> None:
        await asyncio.to_thread(self.client.delete, endpoints.schedule_detail(schedule_id))


class HttpAIDecisionService:
    def __init__(self, client: ApiClient):
        self.client = client

    async def decide(self, garden_id: int, request: DecisionRequest) -> WateringDecision:
        payload = await asyncio.to_thread(
            self.client.post, endpoints.watering_decision(garden_id), request.to_payload()
        )
        return decode_one(WateringDecisionPayload, payload, what="watering decision").to_domain(garden_id)

    async def ping(self) -> bool:
        # Probes are retried by the caller, never by the client.
        payload = await asyncio.to_thread(self.client.get, endpoints.AI_CONNECTION_TEST, None, retry=False)
        if isinstance(payload, bool):
            return payload
        if isinstance(payload, dict):
            for key in ("connected", "success", "ok"):
                if key in payload:
                    return bool(payload[key])
        return True

    async def optimal_amount(
        self, garden_id: int, watering_time: datetime, notes: Optional[str] = None
    ) -> Optional[float]:
        body: dict[str, Any] = {"wateringTime": watering_time.isoformat()}
        if notes:
            body["notes"] = notes
        payload = await asyncio.to_thread(self.client.post, endpoints.optimal_amount(garden_id), body)
        if isinstance(payload, dict):
            payload = payload.get("optimalAmount", payload.get("optimal_amount", payload.get("amount")))
        if payload is None:
            return None
        try:
            return float(payload)
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailable(
                "Malformed optimal amount payload from backend", detail={"garden_id": garden_id}
            ) from exc

    async def stats(self, garden_id: int, days: int = 30) -> WateringStats:
        payload = await asyncio.to_thread(self.client.get, endpoints.decision_stats(garden_id), {"days": days})
        return decode_one(WateringStatsPayload, payload, what="watering stats").to_domain(garden_id)
