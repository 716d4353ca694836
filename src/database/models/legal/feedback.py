"""
Feedback: a 1-5 star rating for a staff member or for the firm.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Feedback(Base, IdMixin, TimestampMixin):
    __tablename__ = "feedback"
    __table_args__ = (Index("ix_feedback_guild_target", "guild_id", "target_staff_id"),)

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    submitter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    target_staff_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    is_for_firm: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
