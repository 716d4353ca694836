"""
RulesChannel: the rules embed maintained in a guild channel.
Pure schema only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin


class RulesChannel(Base, IdMixin, TimestampMixin):
    """
    Schema-only:
    - channel_id / message_id (message edited in place on sync)
    - title, content, footer, color
    - rules: list of {id, title, content, category, severity, order, is_active}
    - show_numbers, additional_fields (list of {name, value, inline})
    - last_updated_by
    """

    __tablename__ = "rules_channels"
    __table_args__ = (UniqueConstraint("guild_id", "channel_id", name="uq_rules_channels_guild_channel"),)

    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    rules: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list)
    color: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    footer: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    show_numbers: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    additional_fields: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list)
    last_updated_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
