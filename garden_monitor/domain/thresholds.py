"""
Optimal Range Thresholds
========================
Immutable value objects describing the healthy band for each sensor type and the
classifier that maps a reading onto ``normal`` / ``warning`` / ``critical``.

Classification rule (inclusive-at-boundary-is-critical):

- ``value <= min * 0.7`` or ``value >= max * 1.3``  -> critical
- ``value < min`` or ``value > max``                -> warning
- otherwise (``min`` and ``max`` included)          -> normal

A range whose ``min`` is 0 has no lower band at 0: a reading of exactly 0 is in
range and only negative readings are critical on that side.
Unknown sensor types and NaN values classify as normal.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from garden_monitor.enums import SensorStatus, SensorType

CRITICAL_LOW_FACTOR = 0.7
CRITICAL_HIGH_FACTOR = 1.3

# Band edges are rounded so that e.g. 80 * 1.3 compares equal to 104.
_EDGE_PRECISION = 9


@dataclass(frozen=True)
class OptimalRange:
    """Healthy [minimum, maximum] band for a sensor type."""

    minimum: float
    maximum: float

    def __post_init__(self):
        if self.minimum > self.maximum:
            raise ValueError(f"Optimal range minimum {self.minimum} exceeds maximum {self.maximum}")

    @property
    def critical_low(self) -> float:
        return round(self.minimum * CRITICAL_LOW_FACTOR, _EDGE_PRECISION)

    @property
    def critical_high(self) -> float:
        return round(self.maximum * CRITICAL_HIGH_FACTOR, _EDGE_PRECISION)

    def classify(self, value: float) -> SensorStatus:
        if math.isnan(value):
            return SensorStatus.NORMAL

        low = self.critical_low
        below_critical = value <= low if self.minimum > 0 else value < low
        if below_critical or value >= self.critical_high:
            return SensorStatus.CRITICAL
        if value < self.minimum or value > self.maximum:
            return SensorStatus.WARNING
        return SensorStatus.NORMAL

    def to_dict(self) -> dict[str, float]:
        return {
            "min": self.minimum,
            "max": self.maximum,
            "critical_low": self.critical_low,
            "critical_high": self.critical_high,
        }


OPTIMAL_RANGES: Mapping[SensorType, OptimalRange] = MappingProxyType(
    {
        SensorType.TEMPERATURE: OptimalRange(15, 32),
        SensorType.HUMIDITY: OptimalRange(30, 80),
        SensorType.SOIL_MOISTURE: OptimalRange(20, 80),
        SensorType.LIGHT: OptimalRange(5000, 12000),
        SensorType.SOIL_PH: OptimalRange(5.5, 7.5),
        SensorType.RAINFALL: OptimalRange(0, 50),
        SensorType.WATER_LEVEL: OptimalRange(10, 80),
    }
)


def get_optimal_range(sensor_type: SensorType | str) -> OptimalRange | None:
    """Return the optimal range for a sensor type, or None when none is defined."""
    parsed = SensorType.parse(sensor_type)
    if parsed is None:
        return None
    return OPTIMAL_RANGES.get(parsed)


def classify(sensor_type: SensorType | str, value: float) -> SensorStatus:
    """
    Classify a sensor value against the optimal range for its type.

    Args:
        sensor_type: SensorType member or its (case-insensitive) name
        value: Reading value in the sensor's native unit

    Returns:
        SensorStatus for the reading; NORMAL when the type has no range
    """
    rng = get_optimal_range(sensor_type)
    if rng is None:
        return SensorStatus.NORMAL
    return rng.classify(float(value))
