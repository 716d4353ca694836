"""
Retainer: a client's agreement with a lawyer.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin
from src.database.models.enums import RetainerStatus


class Retainer(Base, IdMixin, TimestampMixin):
    __tablename__ = "retainers"
    __table_args__ = (Index("ix_retainers_guild_lawyer", "guild_id", "lawyer_id"),)

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    client_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    lawyer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RetainerStatus.PENDING.value, nullable=False)
    agreement_template: Mapped[str] = mapped_column(Text, default="")
    client_roblox_username: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    digital_signature: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
