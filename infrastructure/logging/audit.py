"""Append-only audit trail of user-initiated mutations (JSON lines)."""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

AUDIT_LOGGER_NAME = "garden_monitor.audit"


class AuditLogger:
    """Structured audit logger that writes one JSON record per mutation outcome.

    With ``log_path=None`` records are still emitted on the ``garden_monitor.audit``
    logger but no file handler is attached (used by tests and in-memory setups).
    """

    def __init__(self, log_path: Optional[str] = None, level: str = "INFO") -> None:
        self.log_path = Path(log_path) if log_path else None

        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        if self.log_path is None:
            return

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.propagate = False

        # One file handler per process, however many containers are built.
        if not any(isinstance(handler, RotatingFileHandler) for handler in self.logger.handlers):
            handler = RotatingFileHandler(
                filename=str(self.log_path),
                maxBytes=5 * 1024 * 1024,  # 5 MB
                backupCount=10,
                encoding="utf-8",
                delay=True,
            )
            handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)sZ | %(levelname)s | %(message)s",
                    datefmt="%Y-%m-%dT%H:%M:%S",
                )
            )
            self.logger.addHandler(handler)

    def log_event(self, actor: str, action: str, resource: str, outcome: str, **metadata: Any) -> None:
        payload: Dict[str, Any] = {
            "actor": actor,
            "action": action,
            "resource": resource,
            "outcome": outcome,
        }
        if metadata:
            payload["meta"] = metadata

        self.logger.info(json.dumps(payload, default=str))

    def log_mutation(
        self,
        action: str,
        resource: str,
        *,
        error: Optional[BaseException] = None,
        actor: str = "ui",
        **metadata: Any,
    ) -> None:
        """Record the outcome of an alert or schedule mutation."""
        if error is not None:
            metadata["error"] = str(error) or error.__class__.__name__
            metadata["error_type"] = error.__class__.__name__
        self.log_event(actor, action, resource, "failure" if error is not None else "success", **metadata)
