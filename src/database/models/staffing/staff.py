"""
Staff: one employment record per hire.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin, utc_now
from src.database.models.enums import StaffStatus


class Staff(Base, IdMixin, TimestampMixin):
    """
    Staff member of the firm within one guild.

    Schema-only:
    - guild_id / user_id (Discord snowflakes)
    - roblox_username
    - role (staff role name, e.g. "Senior Associate")
    - hired_at / hired_by
    - promotion_history (list of {from_role, to_role, promoted_by,
      promoted_at, reason, action_type})
    - status (active | inactive | terminated)
    - discord_role_id (Discord role synced for this member, if any)

    A terminated record is kept; re-hiring creates a new active row. The
    partial unique index allows at most one active row per (guild, user).
    """

    __tablename__ = "staff"
    __table_args__ = (
        Index("ix_staff_guild_user", "guild_id", "user_id"),
        Index("ix_staff_guild_role_status", "guild_id", "role", "status"),
        Index(
            "uq_staff_active_guild_user",
            "guild_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
    )

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    roblox_username: Mapped[str] = mapped_column(String(20), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    hired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    hired_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    promotion_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list)
    status: Mapped[str] = mapped_column(String(20), default=StaffStatus.ACTIVE.value, nullable=False)
    discord_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
