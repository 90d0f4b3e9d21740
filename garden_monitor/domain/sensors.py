"""
Sensor Reading Value Objects
============================
Immutable readings as delivered by the sensor source, the classified display
records derived from them and the per-garden snapshot exposed to the UI layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from garden_monitor.domain.thresholds import classify
from garden_monitor.enums import SensorStatus, SensorType

# Sensor type -> key expected by the AI decision service request body.
DECISION_INPUT_KEYS: dict[SensorType, str] = {
    SensorType.SOIL_MOISTURE: "soil_moisture",
    SensorType.HUMIDITY: "air_humidity",
    SensorType.TEMPERATURE: "temperature",
    SensorType.LIGHT: "light_intensity",
    SensorType.WATER_LEVEL: "water_level",
}


@dataclass(frozen=True)
class SensorReading:
    """
    Immutable sensor reading value object.
    Superseded, never mutated, by a newer reading for the same sensor.
    """

    sensor_id: int
    garden_id: int
    sensor_type: SensorType | str
    value: float
    unit: str | None
    observed_at: datetime
    sensor_name: str | None = None

    @property
    def type_key(self) -> str:
        return str(getattr(self.sensor_type, "value", self.sensor_type))

    def supersedes(self, other: "SensorReading") -> bool:
        """True when this reading is at least as recent as ``other``."""
        return self.observed_at >= other.observed_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "garden_id": self.garden_id,
            "type": self.type_key,
            "value": self.value,
            "unit": self.unit,
            "observed_at": self.observed_at.isoformat(),
            "name": self.sensor_name,
        }


@dataclass(frozen=True)
class SensorDisplayRecord:
    """A reading plus its status, as shown by the UI."""

    sensor_id: int
    sensor_type: str
    name: str
    value: float
    unit: str | None
    observed_at: datetime
    status: SensorStatus

    @classmethod
    def from_reading(cls, reading: SensorReading) -> "SensorDisplayRecord":
        # Status is derived on every mapping so it can never lag the value.
        return cls(
            sensor_id=reading.sensor_id,
            sensor_type=reading.type_key,
            name=reading.sensor_name or "N/A",
            value=reading.value,
            unit=reading.unit,
            observed_at=reading.observed_at,
            status=classify(reading.sensor_type, reading.value),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "type": self.sensor_type,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "observed_at": self.observed_at.isoformat(),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SensorSnapshot:
    """Read-only view of a garden's latest readings."""

    garden_id: int | None
    records: tuple[SensorDisplayRecord, ...] = ()
    error: str | None = None
    last_updated: datetime | None = None
    is_loading: bool = False
    status_by_type: dict[str, SensorStatus] = field(default_factory=dict)

    @property
    def is_stale(self) -> bool:
        """Previous data is still shown after a failed refresh."""
        return self.error is not None and self.last_updated is not None

    def needing_attention(self) -> list[SensorDisplayRecord]:
        """Records outside their optimal range, worst first."""
        flagged = [r for r in self.records if r.status is not SensorStatus.NORMAL]
        return sorted(flagged, key=lambda r: (-r.status.rank, r.sensor_type, r.sensor_id))

    def to_dict(self) -> dict[str, Any]:
        return {
            "garden_id": self.garden_id,
            "sensors": [r.to_dict() for r in self.records],
            "status_by_type": {k: v.value for k, v in self.status_by_type.items()},
            "error": self.error,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "is_stale": self.is_stale,
            "is_loading": self.is_loading,
        }


def worst_status_by_type(records: tuple[SensorDisplayRecord, ...] | list[SensorDisplayRecord]) -> dict[str, SensorStatus]:
    """Collapse records to one status per sensor type, keeping the worst."""
    result: dict[str, SensorStatus] = {}
    for record in records:
        current = result.get(record.sensor_type)
        if current is None or record.status.rank > current.rank:
            result[record.sensor_type] = record.status
    return result
