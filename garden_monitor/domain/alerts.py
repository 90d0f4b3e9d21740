"""
Alert Domain Entity
===================
Alerts are produced by the backend alerting service. The monitoring core only
reads, sorts and counts them and performs the RESOLVED / IGNORED transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable

from garden_monitor.enums import AlertStatus, AlertType, SensorStatus, Severity


@dataclass(frozen=True)
class Alert:
    """Immutable alert record; transitions produce a new instance."""

    id: int
    user_id: int
    type: AlertType | str
    message: str
    severity: Severity
    status: AlertStatus
    created_at: datetime
    updated_at: datetime
    garden_id: int | None = None
    suggestion: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def with_status(self, status: AlertStatus, at: datetime) -> "Alert":
        return replace(self, status=status, updated_at=at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "garden_id": self.garden_id,
            "user_id": self.user_id,
            "type": str(getattr(self.type, "value", self.type)),
            "message": self.message,
            "suggestion": self.suggestion,
            "severity": self.severity.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertCounts:
    """Active alert totals for a garden."""

    total_active: int
    by_severity: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {"total_active": self.total_active, "by_severity": dict(self.by_severity)}


def alert_sort_key(alert: Alert) -> tuple[int, float, int]:
    """Severity descending, then newest first; id breaks ties deterministically."""
    return (-alert.severity.rank, -alert.created_at.timestamp(), -alert.id)


def sort_active(alerts: Iterable[Alert]) -> list[Alert]:
    return sorted((a for a in alerts if a.is_active), key=alert_sort_key)


def count_active(alerts: Iterable[Alert]) -> AlertCounts:
    by_severity = {s.value: 0 for s in Severity}
    total = 0
    for alert in alerts:
        if not alert.is_active:
            continue
        total += 1
        by_severity[alert.severity.value] += 1
    return AlertCounts(total_active=total, by_severity=by_severity)


def severity_for_status(status: SensorStatus) -> Severity | None:
    """Alert severity a sensor condition would warrant, None when healthy."""
    if status is SensorStatus.CRITICAL:
        return Severity.HIGH
    if status is SensorStatus.WARNING:
        return Severity.MEDIUM
    return None
