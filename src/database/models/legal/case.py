"""
Case and CaseCounter.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from src.database.models.enums import CasePriority, CaseStatus


class Case(Base, IdMixin, TimestampMixin):
    """
    Client case.

    Schema-only:
    - case_number ("AA-YYYY-NNNN-username"), unique per guild
    - client_id / client_username
    - status (pending | in-progress | closed), priority
    - lead_attorney_id, assigned_lawyer_ids (staff user ids)
    - channel_id (private case channel)
    - result / result_notes / closed_at / closed_by
    """

    __tablename__ = "cases"
    __table_args__ = (
        UniqueConstraint("guild_id", "case_number", name="uq_cases_guild_case_number"),
        Index("ix_cases_guild_status", "guild_id", "status"),
        Index("ix_cases_guild_client", "guild_id", "client_id"),
        Index("ix_cases_guild_lead", "guild_id", "lead_attorney_id"),
    )

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    case_number: Mapped[str] = mapped_column(String(64), nullable=False)
    client_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    client_username: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=CaseStatus.PENDING.value, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default=CasePriority.MEDIUM.value, nullable=False)
    lead_attorney_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    assigned_lawyer_ids: Mapped[List[int]] = mapped_column(JSONType, default=list)
    channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    result: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    result_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class CaseCounter(Base, IdMixin):
    """Per-guild, per-year sequence used to build case numbers."""

    __tablename__ = "case_counters"
    __table_args__ = (UniqueConstraint("guild_id", "year", name="uq_case_counters_guild_year"),)

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
