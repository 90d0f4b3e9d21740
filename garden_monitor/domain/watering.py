"""
Watering Domain Entities
========================

- WateringSchedule: a planned watering. PENDING is the sole initial state;
  COMPLETED, SKIPPED and CANCELLED are terminal and never transition again.
- ScheduleDraft: caller input for a new schedule entry.
- WateringDecision: point-in-time recommendation from the AI service.
- WateringStats: aggregate of past decisions for a garden.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from garden_monitor.domain.exceptions import ConflictError
from garden_monitor.enums import ScheduleStatus

WATER = "water"
NO_WATER = "no_water"


@dataclass(frozen=True)
class WateringSchedule:
    """Immutable schedule record as returned by schedule persistence."""

    id: int
    garden_id: int
    scheduled_at: datetime
    status: ScheduleStatus
    created_at: datetime
    updated_at: datetime
    amount: float | None = None
    reason: str | None = None
    notes: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is ScheduleStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "garden_id": self.garden_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "amount": self.amount,
            "reason": self.reason,
            "status": self.status.value,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def ensure_transition(schedule: WateringSchedule, target: ScheduleStatus) -> None:
    """Raise ConflictError unless ``schedule`` may move to ``target``.

    Only PENDING entries transition, and only forward to a terminal state.
    """
    if target is ScheduleStatus.PENDING:
        raise ConflictError(
            f"Schedule {schedule.id} cannot return to PENDING",
            detail={"schedule_id": schedule.id, "status": schedule.status.value},
        )
    if schedule.status.is_terminal:
        raise ConflictError(
            f"Schedule {schedule.id} is already {schedule.status.value}",
            detail={"schedule_id": schedule.id, "status": schedule.status.value, "target": target.value},
        )


@dataclass(frozen=True)
class ScheduleDraft:
    """Validated input for creating a schedule entry."""

    scheduled_at: datetime
    amount: float | None = None
    notes: str = ""
    reason: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "scheduledAt": self.scheduled_at.isoformat(),
            "notes": self.notes,
        }
        if self.amount is not None:
            payload["amount"] = self.amount
        if self.reason:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class WateringDecision:
    """Recommendation from the AI decision service; never persisted here."""

    decision: str
    confidence: float
    reasons: tuple[str, ...]
    recommended_amount: float
    sensor_snapshot: dict[str, float]
    timestamp: datetime
    garden_id: int | None = None

    @property
    def should_water(self) -> bool:
        return self.decision.lower() == WATER

    def to_dict(self) -> dict[str, Any]:
        return {
            "garden_id": self.garden_id,
            "decision": self.decision,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "recommended_amount": self.recommended_amount,
            "sensor_data": dict(self.sensor_snapshot),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DecisionRequest:
    """Inputs forwarded to the AI decision service."""

    sensor_snapshot: dict[str, float] = field(default_factory=dict)
    watering_time: datetime | None = None
    notes: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.sensor_snapshot:
            payload["sensorData"] = dict(self.sensor_snapshot)
        if self.watering_time is not None:
            payload["wateringTime"] = self.watering_time.isoformat()
        if self.notes:
            payload["notes"] = self.notes
        return payload


@dataclass(frozen=True)
class WateringStats:
    """Aggregate of AI decisions over a time window."""

    garden_id: int
    total_decisions: int
    water_recommendations: int
    no_water_recommendations: int
    average_confidence: float
    average_water_amount: float
    from_date: datetime | None = None
    to_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "garden_id": self.garden_id,
            "total_decisions": self.total_decisions,
            "water_recommendations": self.water_recommendations,
            "no_water_recommendations": self.no_water_recommendations,
            "average_confidence": self.average_confidence,
            "average_water_amount": self.average_water_amount,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
        }
