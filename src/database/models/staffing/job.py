"""
Job: a posted opening for one staff role.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin


class Job(Base, IdMixin, TimestampMixin):
    """
    Job posting.

    Schema-only:
    - title / description
    - staff_role (role being hired for) and role_id (Discord role granted)
    - limit (max hires; defaults to the role's max count)
    - is_open, closed_at, closed_by
    - questions (application questions, JSON list)
    - application_count / hired_count
    - role_cleanup_completed / role_cleanup_at (Discord role removal after close)
    """

    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_guild_open", "guild_id", "is_open"),
        Index("ix_jobs_guild_role_open", "guild_id", "staff_role", "is_open"),
    )

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    staff_role: Mapped[str] = mapped_column(String(50), nullable=False)
    role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    questions: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list)
    posted_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    application_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hired_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    role_cleanup_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    role_cleanup_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
