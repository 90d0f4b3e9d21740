"""
Domain Layer
============
Value objects, entities and the exception hierarchy of the garden monitor.
"""

from garden_monitor.domain.alerts import Alert, AlertCounts
from garden_monitor.domain.exceptions import (
    ConflictError,
    GardenMonitorError,
    NotFoundError,
    RecommendationUnavailable,
    UpstreamUnavailable,
    ValidationError,
)
from garden_monitor.domain.sensors import SensorDisplayRecord, SensorReading, SensorSnapshot
from garden_monitor.domain.thresholds import OPTIMAL_RANGES, OptimalRange, classify
from garden_monitor.domain.watering import (
    DecisionRequest,
    ScheduleDraft,
    WateringDecision,
    WateringSchedule,
    WateringStats,
)

__all__ = [
    "Alert",
    "AlertCounts",
    "ConflictError",
    "DecisionRequest",
    "GardenMonitorError",
    "NotFoundError",
    "OPTIMAL_RANGES",
    "OptimalRange",
    "RecommendationUnavailable",
    "ScheduleDraft",
    "SensorDisplayRecord",
    "SensorReading",
    "SensorSnapshot",
    "UpstreamUnavailable",
    "ValidationError",
    "WateringDecision",
    "WateringSchedule",
    "WateringStats",
    "classify",
]
