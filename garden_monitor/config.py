"""
Configuration for the Garden Monitor
====================================
Runtime settings loaded from ``GARDEN_*`` environment variables, plus the
logging setup shared by the API server and the console entry point.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from garden_monitor.domain.exceptions import ConfigurationError

BACKENDS = ("http", "memory")
_DEFAULT_SECRET_KEY = "GardenMonitorDevSecretKey"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("GARDEN_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("GARDEN_DEBUG", False))
    secret_key: str = field(default_factory=lambda: os.getenv("GARDEN_SECRET_KEY", _DEFAULT_SECRET_KEY))
    host: str = field(default_factory=lambda: os.getenv("GARDEN_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("GARDEN_PORT", 5000))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("GARDEN_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("GARDEN_LOG_DIR", "logs"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("GARDEN_AUDIT_LOG_PATH", "logs/audit.log"))

    # Garden backend ("http" talks to the REST API, "memory" runs self-contained)
    backend: str = field(default_factory=lambda: os.getenv("GARDEN_BACKEND", "http").lower())
    api_base_url: str = field(default_factory=lambda: os.getenv("GARDEN_API_BASE_URL", "http://localhost:3000/api"))
    api_version: str = field(default_factory=lambda: os.getenv("GARDEN_API_VERSION", ""))
    api_token: str = field(default_factory=lambda: os.getenv("GARDEN_API_TOKEN", ""))
    http_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_HTTP_TIMEOUT", 10.0))
    http_get_retries: int = field(default_factory=lambda: _env_int("GARDEN_HTTP_GET_RETRIES", 3))
    http_retry_base_delay_s: float = field(default_factory=lambda: _env_float("GARDEN_HTTP_RETRY_BASE_DELAY", 1.0))

    # Monitoring core
    sensor_poll_interval_s: float = field(default_factory=lambda: _env_float("GARDEN_SENSOR_POLL_INTERVAL", 5.0))
    sensor_history_size: int = field(default_factory=lambda: _env_int("GARDEN_SENSOR_HISTORY_SIZE", 20))
    sensor_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_SENSOR_TIMEOUT", 15.0))
    alert_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_ALERT_TIMEOUT", 15.0))
    schedule_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_SCHEDULE_TIMEOUT", 15.0))
    ai_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_AI_TIMEOUT", 20.0))
    upcoming_limit: int = field(default_factory=lambda: _env_int("GARDEN_UPCOMING_LIMIT", 10))
    stats_days: int = field(default_factory=lambda: _env_int("GARDEN_STATS_DAYS", 30))

    # How long a Flask request waits for work on the background event loop
    request_timeout_s: float = field(default_factory=lambda: _env_float("GARDEN_REQUEST_TIMEOUT", 60.0))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"GARDEN_BACKEND must be one of {', '.join(BACKENDS)}, got {self.backend!r}",
                detail={"backend": self.backend},
            )
        if self.backend == "http" and not self.api_base_url:
            raise ConfigurationError("GARDEN_API_BASE_URL is required for the http backend")

        for name in (
            "http_timeout_s",
            "sensor_poll_interval_s",
            "sensor_timeout_s",
            "alert_timeout_s",
            "schedule_timeout_s",
            "ai_timeout_s",
            "request_timeout_s",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive", detail={name: getattr(self, name)})
        for name in ("upcoming_limit", "stats_days", "sensor_history_size"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1", detail={name: getattr(self, name)})
        if self.http_get_retries < 0:
            raise ConfigurationError("http_get_retries cannot be negative")

        # Fail fast if using the default secret key in production
        if self.environment == "production" and self.secret_key == _DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "Cannot use the default secret key in production; set GARDEN_SECRET_KEY."
            )

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DEBUG": self.DEBUG,
            "AUDIT_LOG_PATH": self.audit_log_path,
            "GARDEN_BACKEND": self.backend,
            "GARDEN_API_BASE_URL": self.api_base_url,
            "REQUEST_TIMEOUT_S": self.request_timeout_s,
        }


def setup_logging(debug: bool = False, log_dir: str = "logs") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "garden_monitor_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "garden_monitor_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "garden_monitor_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "garden_monitor.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "garden_monitor_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"garden_monitor_console", "garden_monitor_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("GARDEN_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
    # One line per retried GET is enough; urllib3 repeats it at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
