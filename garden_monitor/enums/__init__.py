"""
Enums Module
============

This module provides enumeration types for the garden monitor.
Enums ensure type safety and consistency across the codebase.
"""

from garden_monitor.enums.common import (
    AIConnectionState,
    AlertStatus,
    AlertType,
    ScheduleStatus,
    SensorStatus,
    SensorType,
    Severity,
)

__all__ = [
    "AIConnectionState",
    "AlertStatus",
    "AlertType",
    "ScheduleStatus",
    "SensorStatus",
    "SensorType",
    "Severity",
]
