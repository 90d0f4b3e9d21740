"""Audit logging."""

from infrastructure.logging.audit import AuditLogger

__all__ = ["AuditLogger"]
