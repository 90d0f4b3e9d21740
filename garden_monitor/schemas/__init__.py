"""
Schemas Module
==============

Pydantic models for upstream payload decoding and API request validation.
"""

from garden_monitor.schemas.requests import (
    AutoGenerateRequest,
    CreateScheduleRequest,
    DecisionRequestBody,
    OptimalAmountRequest,
)
from garden_monitor.schemas.upstream import (
    AlertPayload,
    SensorReadingPayload,
    WateringDecisionPayload,
    WateringSchedulePayload,
    WateringStatsPayload,
)

__all__ = [
    "AlertPayload",
    "AutoGenerateRequest",
    "CreateScheduleRequest",
    "DecisionRequestBody",
    "OptimalAmountRequest",
    "SensorReadingPayload",
    "WateringDecisionPayload",
    "WateringSchedulePayload",
    "WateringStatsPayload",
]
