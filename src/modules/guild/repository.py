"""
GuildConfig repository.

One row per guild, created with empty permission lists the first time
something writes to it. Reads fall back to an unsaved default.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from src.database.models.enums import PermissionAction
from src.database.models.guild.guild_config import GuildConfig
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


def default_permissions() -> Dict[str, List[int]]:
    return {action.value: [] for action in PermissionAction}


class GuildConfigRepository(BaseRepository[GuildConfig]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(GuildConfig, logger)

    async def find_by_guild(self, session: AsyncSession, guild_id: int) -> Optional[GuildConfig]:
        return await self.find_one_where(session, GuildConfig.guild_id == guild_id)

    @staticmethod
    def build_default(guild_id: int) -> GuildConfig:
        return GuildConfig(guild_id=guild_id, permissions=default_permissions(), admin_roles=[], admin_users=[])

    async def ensure_guild_config(self, session: AsyncSession, guild_id: int) -> GuildConfig:
        config = await self.find_by_guild(session, guild_id)
        if config is None:
            config = await self.add(session, self.build_default(guild_id))
            self.log.info("Created default guild configuration", extra={"guild_id": guild_id})
        return config

    async def update_config(self, session: AsyncSession, guild_id: int, changes: Dict) -> Optional[GuildConfig]:
        config = await self.find_by_guild(session, guild_id)
        if config is None:
            return None
        return await self.update(session, config.id, changes)

