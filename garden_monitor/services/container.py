from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Coroutine, Optional, TypeVar

from garden_monitor.config import AppConfig
from garden_monitor.services.ai_gateway import AIDecisionGateway
from garden_monitor.services.alert_store import AlertStore
from garden_monitor.services.garden_coordinator import GardenDataCoordinator
from garden_monitor.services.garden_registry import GardenRegistry
from garden_monitor.services.protocols import (
    AIDecisionService,
    AlertSource,
    ScheduleRepository,
    SensorSource,
)
from garden_monitor.services.sensor_poller import SensorPoller
from garden_monitor.services.watering_schedule_manager import WateringScheduleManager
from garden_monitor.utils.runtime import AsyncRuntime
from infrastructure.api import (
    ApiClient,
    HttpAIDecisionService,
    HttpAlertSource,
    HttpScheduleRepository,
    HttpSensorSource,
)
from infrastructure.logging.audit import AuditLogger
from infrastructure.memory import (
    InMemoryAIDecisionService,
    InMemoryAlertSource,
    InMemoryScheduleRepository,
    InMemorySensorSource,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ServiceContainer:
    """Holds long-lived services and the background event loop they run on."""

    config: AppConfig
    audit_logger: AuditLogger
    # Collaborators
    sensor_source: SensorSource
    alert_source: AlertSource
    ai_service: AIDecisionService
    schedule_repository: ScheduleRepository
    # Shared across gardens
    alert_store: AlertStore
    ai_gateway: AIDecisionGateway
    registry: GardenRegistry
    runtime: AsyncRuntime
    api_client: Optional[ApiClient] = None
    _shut_down: bool = field(default=False, init=False, repr=False)

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        sensor_source: SensorSource | None = None,
        alert_source: AlertSource | None = None,
        ai_service: AIDecisionService | None = None,
        schedule_repository: ScheduleRepository | None = None,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            sensor_source, alert_source, ai_service, schedule_repository:
                Optional collaborators overriding the configured backend
        """
        logger.info("Building ServiceContainer (backend=%s)...", config.backend)

        api_client = None
        if config.backend == "http":
            api_client = ApiClient(
                config.api_base_url,
                api_version=config.api_version,
                token=config.api_token or None,
                timeout_s=config.http_timeout_s,
                get_retries=config.http_get_retries,
                retry_base_delay_s=config.http_retry_base_delay_s,
            )
            sensor_source = sensor_source or HttpSensorSource(api_client)
            alert_source = alert_source or HttpAlertSource(api_client)
            ai_service = ai_service or HttpAIDecisionService(api_client)
            schedule_repository = schedule_repository or HttpScheduleRepository(api_client)
            logger.info("✓ HTTP collaborators wired to %s", api_client.url(""))
        else:
            sensor_source = sensor_source or InMemorySensorSource()
            alert_source = alert_source or InMemoryAlertSource()
            ai_service = ai_service or InMemoryAIDecisionService()
            schedule_repository = schedule_repository or InMemoryScheduleRepository()
            logger.info("✓ In-memory collaborators wired")

        audit_logger = AuditLogger(config.audit_log_path or None)
        alert_store = AlertStore(alert_source, timeout_s=config.alert_timeout_s, audit=audit_logger)
        ai_gateway = AIDecisionGateway(ai_service, timeout_s=config.ai_timeout_s)

        def create_coordinator(garden_id: int) -> GardenDataCoordinator:
            poller = SensorPoller(
                sensor_source,
                poll_interval_s=config.sensor_poll_interval_s,
                timeout_s=config.sensor_timeout_s,
                history_size=config.sensor_history_size,
            )
            schedules = WateringScheduleManager(
                garden_id,
                schedule_repository,
                ai_gateway,
                timeout_s=config.schedule_timeout_s,
                upcoming_limit=config.upcoming_limit,
                stats_days=config.stats_days,
                audit=audit_logger,
                decision_input=poller.decision_input,
            )
            return GardenDataCoordinator(
                garden_id,
                poller=poller,
                alerts=alert_store,
                schedules=schedules,
                gateway=ai_gateway,
            )

        runtime = AsyncRuntime()
        runtime.start()

        container = cls(
            config=config,
            audit_logger=audit_logger,
            sensor_source=sensor_source,
            alert_source=alert_source,
            ai_service=ai_service,
            schedule_repository=schedule_repository,
            alert_store=alert_store,
            ai_gateway=ai_gateway,
            registry=GardenRegistry(create_coordinator),
            runtime=runtime,
            api_client=api_client,
        )
        logger.info("ServiceContainer built successfully.")
        return container

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a coroutine on the background loop, bounded by the request timeout."""
        return self.runtime.run(coro, timeout=self.config.request_timeout_s)

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self._shut_down:
            return
        self._shut_down = True

        if self.runtime.is_running:
            try:
                self.runtime.run(self.registry.close_all(), timeout=self.config.request_timeout_s)
                logger.info("✓ Garden views closed")
            except Exception as exc:
                logger.warning("Error closing garden views: %s", exc)

        try:
            self.runtime.stop()
            logger.info("✓ Async runtime stopped")
        except Exception as exc:
            logger.warning("Error stopping async runtime: %s", exc)

        if self.api_client is not None:
            try:
                self.api_client.close()
                logger.info("✓ API client session closed")
            except Exception as exc:
                logger.warning("Error closing API client: %s", exc)

        logger.info("ServiceContainer shutdown complete")
