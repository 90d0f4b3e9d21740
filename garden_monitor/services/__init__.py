"""
Service Organization
====================
Per-garden services are created by the GardenRegistry through the
ServiceContainer's coordinator factory; one set per open garden:

  SensorPoller, WateringScheduleManager, GardenDataCoordinator

Shared across gardens (one instance per application):

  AlertStore, AIDecisionGateway, GardenRegistry

Collaborator protocols live in ``protocols``; HTTP and in-memory
implementations live under ``infrastructure``.
"""

from garden_monitor.services.ai_gateway import AIDecisionGateway
from garden_monitor.services.alert_store import AlertStore
from garden_monitor.services.garden_coordinator import GardenDataCoordinator, RefreshOutcome, RefreshReport
from garden_monitor.services.garden_registry import GardenRegistry
from garden_monitor.services.sensor_poller import SensorPoller
from garden_monitor.services.watering_schedule_manager import WateringScheduleManager

__all__ = [
    "AIDecisionGateway",
    "AlertStore",
    "GardenDataCoordinator",
    "GardenRegistry",
    "RefreshOutcome",
    "RefreshReport",
    "SensorPoller",
    "WateringScheduleManager",
]
