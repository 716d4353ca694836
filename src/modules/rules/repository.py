"""
RulesChannel repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from src.database.models.guild.rules_channel import RulesChannel
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class RulesChannelRepository(BaseRepository[RulesChannel]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(RulesChannel, logger)

    async def find_by_channel(
        self, session: AsyncSession, guild_id: int, channel_id: int, for_update: bool = False
    ) -> Optional[RulesChannel]:
        return await self.find_one_where(
            session,
            RulesChannel.guild_id == guild_id,
            RulesChannel.channel_id == channel_id,
            for_update=for_update,
        )

    async def find_by_guild(self, session: AsyncSession, guild_id: int) -> List[RulesChannel]:
        return await self.find_many_where(
            session, RulesChannel.guild_id == guild_id, order_by=[RulesChannel.created_at.asc()]
        )
