"""
Common Enumerations
====================

Enums shared by the monitoring core, the upstream adapters and the HTTP API.
Values match the wire format used by the garden backend.
"""

from enum import Enum


class SensorType(str, Enum):
    """
    Physical quantity measured by a garden sensor.
    Used by: threshold classifier, sensor poller, upstream sensor adapter
    """
    TEMPERATURE = "TEMPERATURE"
    HUMIDITY = "HUMIDITY"
    SOIL_MOISTURE = "SOIL_MOISTURE"
    LIGHT = "LIGHT"
    WATER_LEVEL = "WATER_LEVEL"
    RAINFALL = "RAINFALL"
    SOIL_PH = "SOIL_PH"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: object) -> "SensorType | None":
        """Return the matching member (case-insensitive) or None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class SensorStatus(str, Enum):
    """
    Health of a single reading against its optimal range.
    Used by: threshold classifier, sensor snapshots
    """
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    SensorStatus.NORMAL: 0,
    SensorStatus.WARNING: 1,
    SensorStatus.CRITICAL: 2,
}


class Severity(str, Enum):
    """
    Alert urgency tier, LOW < MEDIUM < HIGH < CRITICAL.
    Used by: alert store ordering and counts
    """
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertType(str, Enum):
    """
    Alert categories produced by the backend alerting service.
    Used by: alert decoding
    """
    WEATHER = "WEATHER"
    SENSOR_ERROR = "SENSOR_ERROR"
    SYSTEM = "SYSTEM"
    PLANT_CONDITION = "PLANT_CONDITION"
    ACTIVITY = "ACTIVITY"
    MAINTENANCE = "MAINTENANCE"
    SECURITY = "SECURITY"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


class AlertStatus(str, Enum):
    """
    Alert lifecycle states. RESOLVED and IGNORED are terminal.
    Used by: alert store transitions
    """
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    IGNORED = "IGNORED"
    ESCALATED = "ESCALATED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.IGNORED)


class ScheduleStatus(str, Enum):
    """
    Watering schedule states. PENDING is the only non-terminal state.
    Used by: watering schedule manager
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self is not ScheduleStatus.PENDING


class AIConnectionState(str, Enum):
    """
    Connectivity of the AI watering-decision service as last probed.
    Used by: AI decision gateway
    """
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    TESTING = "testing"

    def __str__(self) -> str:
        return self.value
