"""Append-only audit trail of state-changing operations."""

from .repository import AuditLogRepository
from .service import AuditLogService

__all__ = ["AuditLogRepository", "AuditLogService"]
