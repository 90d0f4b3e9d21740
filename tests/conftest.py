"""
Shared test fixtures for the garden monitor test suite.

Provides:
- In-memory collaborators (sensors, alerts, AI decisions, schedules)
- The shared AI gateway and alert store
- Coordinator factories wired like the service container
- A Flask test client backed by an in-memory container
- Helpers for building readings, alerts and schedules

Async services are driven with ``asyncio.run`` inside plain test functions:

    def test_example(sensor_source):
        async def scenario():
            ...
        asyncio.run(scenario())
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from garden_monitor.config import AppConfig
from garden_monitor.domain.alerts import Alert
from garden_monitor.domain.sensors import SensorReading
from garden_monitor.domain.watering import WateringSchedule
from garden_monitor.enums import AlertStatus, AlertType, ScheduleStatus, SensorType, Severity
from garden_monitor.services.ai_gateway import AIDecisionGateway
from garden_monitor.services.alert_store import AlertStore
from garden_monitor.services.garden_coordinator import GardenDataCoordinator
from garden_monitor.services.sensor_poller import SensorPoller
from garden_monitor.services.watering_schedule_manager import WateringScheduleManager
from garden_monitor.utils.time import utc_now
from infrastructure.memory import (
    InMemoryAIDecisionService,
    InMemoryAlertSource,
    InMemoryScheduleRepository,
    InMemorySensorSource,
)

# ---------------------------------------------------------------------------
# Logging - keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("garden_monitor").setLevel(logging.WARNING)
logging.getLogger("infrastructure").setLevel(logging.WARNING)

GARDEN_ID = 1
BASE_TIME = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


# ========================== Builders =======================================


def make_reading(
    sensor_id: int,
    sensor_type: SensorType | str,
    value: float,
    *,
    garden_id: int = GARDEN_ID,
    at: datetime | None = None,
    unit: str | None = None,
) -> SensorReading:
    return SensorReading(
        sensor_id=sensor_id,
        garden_id=garden_id,
        sensor_type=sensor_type,
        value=value,
        unit=unit,
        observed_at=at or BASE_TIME,
        sensor_name=f"sensor-{sensor_id}",
    )


def make_alert(
    alert_id: int,
    *,
    severity: Severity = Severity.MEDIUM,
    status: AlertStatus = AlertStatus.PENDING,
    garden_id: int = GARDEN_ID,
    created_at: datetime | None = None,
) -> Alert:
    created = created_at or BASE_TIME
    return Alert(
        id=alert_id,
        user_id=7,
        type=AlertType.PLANT_CONDITION,
        message=f"alert {alert_id}",
        severity=severity,
        status=status,
        created_at=created,
        updated_at=created,
        garden_id=garden_id,
    )


def make_schedule(
    schedule_id: int,
    *,
    garden_id: int = GARDEN_ID,
    status: ScheduleStatus = ScheduleStatus.PENDING,
    in_hours: float = 2,
    amount: float | None = 1.5,
) -> WateringSchedule:
    now = utc_now()
    return WateringSchedule(
        id=schedule_id,
        garden_id=garden_id,
        scheduled_at=now + timedelta(hours=in_hours),
        status=status,
        created_at=now,
        updated_at=now,
        amount=amount,
    )


# ========================== Collaborators ==================================


@pytest.fixture()
def sensor_source():
    return InMemorySensorSource()


@pytest.fixture()
def alert_source():
    return InMemoryAlertSource()


@pytest.fixture()
def ai_service():
    return InMemoryAIDecisionService()


@pytest.fixture()
def schedule_repo():
    return InMemoryScheduleRepository()


# ========================== Services =======================================


@pytest.fixture()
def gateway(ai_service):
    return AIDecisionGateway(ai_service, timeout_s=1.0)


@pytest.fixture()
def alert_store(alert_source):
    return AlertStore(alert_source, timeout_s=1.0)


@pytest.fixture()
def make_manager(schedule_repo, gateway):
    """Factory for schedule managers sharing the repository and gateway."""

    def factory(garden_id: int = GARDEN_ID, **kwargs) -> WateringScheduleManager:
        kwargs.setdefault("timeout_s", 1.0)
        return WateringScheduleManager(garden_id, schedule_repo, gateway, **kwargs)

    return factory


@pytest.fixture()
def make_coordinator(sensor_source, alert_store, schedule_repo, gateway):
    """Factory wiring a coordinator the same way the service container does."""

    def factory(garden_id: int = GARDEN_ID) -> GardenDataCoordinator:
        # Long interval so only explicit refreshes hit the source.
        poller = SensorPoller(sensor_source, poll_interval_s=60.0, timeout_s=1.0)
        schedules = WateringScheduleManager(
            garden_id,
            schedule_repo,
            gateway,
            timeout_s=1.0,
            decision_input=poller.decision_input,
        )
        return GardenDataCoordinator(
            garden_id,
            poller=poller,
            alerts=alert_store,
            schedules=schedules,
            gateway=gateway,
        )

    return factory


# ========================== Flask ==========================================


@pytest.fixture()
def memory_config():
    return AppConfig(
        backend="memory",
        log_dir="",
        audit_log_path="",
        sensor_poll_interval_s=60.0,
        sensor_timeout_s=1.0,
        alert_timeout_s=1.0,
        schedule_timeout_s=1.0,
        ai_timeout_s=1.0,
        request_timeout_s=5.0,
    )


@pytest.fixture()
def container(memory_config, sensor_source, alert_source, ai_service, schedule_repo):
    from garden_monitor.services.container import ServiceContainer

    built = ServiceContainer.build(
        memory_config,
        sensor_source=sensor_source,
        alert_source=alert_source,
        ai_service=ai_service,
        schedule_repository=schedule_repo,
    )
    yield built
    built.shutdown()


@pytest.fixture()
def app(container):
    from garden_monitor import create_app

    flask_app = create_app({"backend": "memory", "log_dir": "", "audit_log_path": ""}, container=container)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
