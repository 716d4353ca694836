"""
Application: a candidate's answers to a job posting.
Pure schema only.

``job_id`` is a plain column rather than a foreign key: a removed job
leaves its applications in place and CrossEntityValidationService reports
them as orphaned.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from src.database.models.enums import ApplicationStatus


class Application(Base, IdMixin, TimestampMixin):
    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_guild_job", "guild_id", "job_id"),
        Index("ix_applications_guild_applicant", "guild_id", "applicant_id"),
    )

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    job_id: Mapped[int] = mapped_column(Integer, nullable=False)
    applicant_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    roblox_username: Mapped[str] = mapped_column(String(20), nullable=False)
    answers: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list)
    status: Mapped[str] = mapped_column(String(20), default=ApplicationStatus.PENDING.value, nullable=False)
    reviewed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
