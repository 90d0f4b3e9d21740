"""
Request Schemas
===============

Request body validation for the garden monitor HTTP API.
"""

from typing import Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateScheduleRequest(_RequestModel):
    """Request schema for creating a watering schedule entry."""

    scheduled_at: Union[str, float] = Field(
        ...,
        validation_alias=AliasChoices("scheduledAt", "scheduled_at"),
        description="When to water (ISO-8601 or epoch seconds)",
    )
    amount: Optional[float] = Field(default=None, ge=0, description="Water amount (optional)")
    notes: Optional[str] = Field(default=None, max_length=1000, description="Optional notes")


class DecisionRequestBody(_RequestModel):
    """Request schema for asking the AI service for a watering decision."""

    sensor_data: Optional[Dict[str, float]] = Field(
        default=None,
        validation_alias=AliasChoices("sensorData", "sensor_data"),
        description="Override the polled sensor values",
    )
    watering_time: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("wateringTime", "watering_time"),
        description="Planned watering time (ISO-8601)",
    )
    notes: Optional[str] = Field(default=None, max_length=1000)


class AutoGenerateRequest(_RequestModel):
    """Request schema for AI auto-generation of a schedule entry."""

    sensor_data: Optional[Dict[str, float]] = Field(
        default=None,
        validation_alias=AliasChoices("sensorData", "sensor_data"),
    )


class OptimalAmountRequest(_RequestModel):
    """Request schema for the optimal watering amount."""

    watering_time: str = Field(
        ...,
        validation_alias=AliasChoices("wateringTime", "watering_time"),
        description="Planned watering time (ISO-8601)",
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
