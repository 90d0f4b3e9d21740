"""
Upstream Payload Schemas
========================

Pydantic models decoding garden backend responses into domain dataclasses.
The backend mixes camelCase and snake_case keys, so every field accepts both.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from garden_monitor.domain.alerts import Alert
from garden_monitor.domain.sensors import SensorReading
from garden_monitor.domain.watering import WateringDecision, WateringSchedule, WateringStats
from garden_monitor.enums import AlertStatus, AlertType, ScheduleStatus, SensorType, Severity
from garden_monitor.utils.time import coerce_datetime, utc_now


def _require_datetime(value: Any) -> datetime:
    parsed = coerce_datetime(value)
    if parsed is None:
        raise ValueError(f"invalid timestamp: {value!r}")
    return parsed


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SensorReadingPayload(_UpstreamModel):
    """One entry of ``/gardens/{id}/sensors/latest-readings``."""

    sensor_id: int = Field(..., validation_alias=AliasChoices("sensorId", "sensor_id", "id"))
    garden_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("gardenId", "garden_id"))
    type: str = Field(..., validation_alias=AliasChoices("type", "sensorType", "sensor_type"))
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "sensorName", "sensor_name"))
    value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("value", "lastReading", "last_reading", "latestValue")
    )
    unit: Optional[str] = None
    observed_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "observedAt", "observed_at", "lastReadingAt", "updatedAt"),
    )

    @field_validator("observed_at", mode="before")
    @classmethod
    def parse_observed_at(cls, v):
        return None if v is None else _require_datetime(v)

    def to_domain(self, garden_id: int) -> Optional[SensorReading]:
        """Domain reading, or None when the sensor has not reported yet."""
        if self.value is None or self.observed_at is None:
            return None
        return SensorReading(
            sensor_id=self.sensor_id,
            garden_id=self.garden_id if self.garden_id is not None else garden_id,
            sensor_type=SensorType.parse(self.type) or self.type.upper(),
            value=self.value,
            unit=self.unit,
            observed_at=self.observed_at,
            sensor_name=self.name,
        )


class AlertPayload(_UpstreamModel):
    id: int
    user_id: int = Field(..., validation_alias=AliasChoices("userId", "user_id"))
    garden_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("gardenId", "garden_id"))
    type: str = AlertType.OTHER.value
    message: str = ""
    suggestion: Optional[str] = None
    status: AlertStatus
    severity: Severity = Severity.LOW
    created_at: datetime = Field(..., validation_alias=AliasChoices("createdAt", "created_at"))
    updated_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("updatedAt", "updated_at"))

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        if v is None:
            return Severity.LOW
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v):
        return _require_datetime(v)

    @field_validator("updated_at", mode="before")
    @classmethod
    def parse_updated_at(cls, v):
        return None if v is None else _require_datetime(v)

    def to_domain(self) -> Alert:
        try:
            alert_type: AlertType | str = AlertType(self.type.upper())
        except ValueError:
            alert_type = self.type
        return Alert(
            id=self.id,
            user_id=self.user_id,
            garden_id=self.garden_id,
            type=alert_type,
            message=self.message,
            suggestion=self.suggestion,
            severity=self.severity,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at or self.created_at,
        )


class WateringSchedulePayload(_UpstreamModel):
    id: int
    garden_id: int = Field(..., validation_alias=AliasChoices("gardenId", "garden_id"))
    scheduled_at: datetime = Field(..., validation_alias=AliasChoices("scheduledAt", "scheduled_at"))
    amount: Optional[float] = None
    reason: Optional[str] = None
    status: ScheduleStatus = ScheduleStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("createdAt", "created_at"))
    updated_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("updatedAt", "updated_at"))

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("scheduled_at", mode="before")
    @classmethod
    def parse_scheduled_at(cls, v):
        return _require_datetime(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_timestamps(cls, v):
        return None if v is None else _require_datetime(v)

    def to_domain(self) -> WateringSchedule:
        created = self.created_at or self.scheduled_at
        return WateringSchedule(
            id=self.id,
            garden_id=self.garden_id,
            scheduled_at=self.scheduled_at,
            status=self.status,
            created_at=created,
            updated_at=self.updated_at or created,
            amount=self.amount,
            reason=self.reason,
            notes=self.notes,
        )


class WateringDecisionPayload(_UpstreamModel):
    decision: str
    confidence: float = Field(default=0.0, ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)
    recommended_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("recommended_amount", "recommendedAmount")
    )
    sensor_data: dict[str, float] = Field(
        default_factory=dict, validation_alias=AliasChoices("sensor_data", "sensorData")
    )
    timestamp: Optional[datetime] = None

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return None if v is None else _require_datetime(v)

    def to_domain(self, garden_id: int | None = None) -> WateringDecision:
        return WateringDecision(
            decision=self.decision,
            confidence=self.confidence,
            reasons=tuple(self.reasons),
            recommended_amount=self.recommended_amount,
            sensor_snapshot=dict(self.sensor_data),
            timestamp=self.timestamp or utc_now(),
            garden_id=garden_id,
        )


class WateringStatsPayload(_UpstreamModel):
    garden_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("gardenId", "garden_id"))
    total_decisions: int = Field(default=0, validation_alias=AliasChoices("totalDecisions", "total_decisions"))
    water_recommendations: int = Field(
        default=0, validation_alias=AliasChoices("waterRecommendations", "water_recommendations")
    )
    no_water_recommendations: int = Field(
        default=0, validation_alias=AliasChoices("noWaterRecommendations", "no_water_recommendations")
    )
    average_confidence: float = Field(
        default=0.0, validation_alias=AliasChoices("averageConfidence", "average_confidence")
    )
    average_water_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("averageWaterAmount", "average_water_amount")
    )
    from_date: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("fromDate", "from_date"))
    to_date: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("toDate", "to_date"))

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return None if v is None else _require_datetime(v)

    def to_domain(self, garden_id: int) -> WateringStats:
        return WateringStats(
            garden_id=self.garden_id if self.garden_id is not None else garden_id,
            total_decisions=self.total_decisions,
            water_recommendations=self.water_recommendations,
            no_water_recommendations=self.no_water_recommendations,
            average_confidence=self.average_confidence,
            average_water_amount=self.average_water_amount,
            from_date=self.from_date,
            to_date=self.to_date,
        )
