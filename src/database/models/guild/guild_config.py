"""
GuildConfig: per-guild settings, permission map and admin lists.
Pure schema only. Exempt from server wipes.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin


class GuildConfig(Base, IdMixin, TimestampMixin):
    """
    Schema-only:
    - channel ids (feedback, retainer, modlog, application,
      default information, default rules)
    - category ids (case review, case archive)
    - client_role_id
    - permissions: permission action -> list of Discord role ids
    - admin_roles / admin_users
    """

    __tablename__ = "guild_configs"

    guild_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)

    feedback_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    retainer_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    modlog_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    application_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    default_information_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    default_rules_channel_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    case_review_category_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    case_archive_category_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    client_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    permissions: Mapped[Dict[str, List[int]]] = mapped_column(JSONType, default=dict)
    admin_roles: Mapped[List[int]] = mapped_column(JSONType, default=list)
    admin_users: Mapped[List[int]] = mapped_column(JSONType, default=list)
