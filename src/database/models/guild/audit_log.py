"""
AuditLog: append-only record of state-changing operations.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, utc_now
from src.database.models.enums import AuditSeverity


class AuditLog(Base, IdMixin):
    """
    Schema-only:
    - guild_id, action (AuditAction value)
    - actor_id (0 for system actions), target_id
    - details: {before, after, reason, metadata, bypass_info}
    - severity (low | medium | high | critical)
    - timestamp

    No TimestampMixin: rows are never updated.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_guild_timestamp", "guild_id", "timestamp"),
        Index("ix_audit_logs_guild_action", "guild_id", "action"),
        Index("ix_audit_logs_guild_actor", "guild_id", "actor_id"),
        Index("ix_audit_logs_guild_target", "guild_id", "target_id"),
    )

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    target_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    severity: Mapped[str] = mapped_column(String(10), default=AuditSeverity.LOW.value, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
