"""HTTP implementations of the garden monitor collaborator protocols."""

from infrastructure.api.alerts import HttpAlertSource
from infrastructure.api.client import ApiClient
from infrastructure.api.sensors import HttpSensorSource
from infrastructure.api.watering import HttpAIDecisionService, HttpScheduleRepository

__all__ = [
    "ApiClient",
    "HttpAIDecisionService",
    "HttpAlertSource",
    "HttpScheduleRepository",
    "HttpSensorSource",
]
