from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from garden_monitor.blueprints.api import gardens_api
from garden_monitor.config import load_config, setup_logging


def create_app(config_overrides: dict[str, Any] | None = None, container=None) -> Flask:
    """Build the Flask API.

    Args:
        config_overrides: AppConfig field values applied over the environment
        container: Prebuilt ServiceContainer (tests); built from config otherwise
    """
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)
        # Re-run validation on the overridden values.
        config.__post_init__()

    # Configure logging early so container startup is visible.
    setup_logging(debug=config.DEBUG, log_dir=config.log_dir)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    if container is None:
        from garden_monitor.services.container import ServiceContainer

        container = ServiceContainer.build(config)
    flask_app.config["CONTAINER"] = container

    # ── Graceful shutdown ───────────────────────────────────────────
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    atexit.register(_graceful_shutdown, "atexit")
    flask_app.extensions["garden_monitor_shutdown"] = _graceful_shutdown

    # Global JSON error handler for anything that escapes safe_route
    # (unknown routes, wrong methods, oversized bodies).
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from garden_monitor.domain.exceptions import GardenMonitorError
        from garden_monitor.utils.http import error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, GardenMonitorError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        return safe_error(exc, 500, context=f"unhandled {request.method} {request.path}")

    flask_app.register_blueprint(gardens_api, url_prefix="/api/gardens")

    for bp_name in flask_app.blueprints:
        logging.info(" Registered blueprint: %s", bp_name)

    logger = logging.getLogger(__name__)
    logger.info("Garden Monitor API initialized (backend=%s).", config.backend)
    return flask_app


__all__ = ["create_app"]
