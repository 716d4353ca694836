"""
LawFirmBot: the Discord client.

Responsibilities
----------------
- Load feature cogs (FeatureLoader) and sync the slash command tree
- Presence and guild join/leave logging
- App-command tree error handler mapping exceptions to embeds

Infrastructure (database, config, services) is initialized by ``main``
and injected here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.loader import FeatureLoader
from src.core.config.config import Config
from src.core.logging.logger import LogContext, get_logger
from src.modules.shared.exceptions import ErrorSeverity, LawBotDomainException
from src.ui.embeds import EmbedFactory

if TYPE_CHECKING:
    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


class LawFirmBot(commands.Bot):
    def __init__(
        self,
        config_manager: ConfigManager,
        service_container: ServiceContainer,
        event_bus: EventBus,
    ) -> None:
        self._config_manager = config_manager
        self._service_container = service_container
        self._event_bus = event_bus

        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
            description=Config.BOT_NAME,
        )
        self.tree.on_error = self.on_app_command_error
        self.bot_ready = False

    # --------------------------------------------------------------- #
    # Startup
    # --------------------------------------------------------------- #

    async def setup_hook(self) -> None:
        stats = await FeatureLoader(self, self._config_manager).load_all_features()
        if stats["failed"]:
            logger.warning("Some cogs failed to load", extra={"failures": stats["failures"]})

        guild_id: Optional[int] = Config.DISCORD_GUILD_ID
        if guild_id:
            guild = discord.Object(id=guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        logger.info("Command tree synced", extra={"commands": len(synced), "guild_id": guild_id})

        await self._event_bus.publish("bot.setup_complete", {"cogs_loaded": stats["loaded"]})

    async def on_ready(self) -> None:
        self.bot_ready = True
        logger.info(
            "Bot is online",
            extra={"user": str(self.user), "guilds": len(self.guilds)},
        )
        await self._update_presence()

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("Joined guild", extra={"guild_id": guild.id, "guild_name": guild.name})
        await self._update_presence()

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info("Removed from guild", extra={"guild_id": guild.id, "guild_name": guild.name})
        await self._update_presence()

    async def _update_presence(self) -> None:
        try:
            await self.change_presence(
                activity=discord.Activity(type=discord.ActivityType.watching, name=Config.BOT_STATUS)
            )
        except discord.HTTPException as exc:
            logger.warning("Failed to update presence", extra={"error": str(exc)})

    # --------------------------------------------------------------- #
    # Error handling
    # --------------------------------------------------------------- #

    @staticmethod
    def embed_for_error(error: app_commands.AppCommandError) -> discord.Embed:
        original = getattr(error, "original", error)

        if isinstance(original, LawBotDomainException):
            if original.severity in (ErrorSeverity.DEBUG, ErrorSeverity.INFO):
                return EmbedFactory.warning("Notice", original.message)
            return EmbedFactory.error("Error", original.message)
        if isinstance(error, app_commands.CommandOnCooldown):
            return EmbedFactory.warning("Cooldown Active", f"Please wait **{error.retry_after:.1f}s**.")
        if isinstance(error, app_commands.NoPrivateMessage):
            return EmbedFactory.error("Server Only", "This command can only be used inside a server.")
        if isinstance(error, app_commands.CheckFailure):
            return EmbedFactory.error("Permission Denied", "You lack permission to use this command.")
        return EmbedFactory.error(
            "Unexpected Error",
            "Something went wrong while processing your command.",
            help_text="The issue has been logged.",
        )

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        command = interaction.command.qualified_name if interaction.command else "unknown"
        async with LogContext(
            user_id=interaction.user.id,
            guild_id=interaction.guild_id,
            command=f"/{command}",
        ):
            original = getattr(error, "original", error)
            if isinstance(original, LawBotDomainException):
                logger.warning("Domain exception in command", extra=original.to_dict())
            else:
                logger.error(
                    "Unhandled app command error",
                    extra={"command": command, "error": str(original), "error_type": type(original).__name__},
                    exc_info=original,
                )

            embed = self.embed_for_error(error)
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(embed=embed, ephemeral=True)
                else:
                    await interaction.response.send_message(embed=embed, ephemeral=True)
            except discord.HTTPException as exc:
                logger.warning("Failed to send error response", extra={"error": str(exc)})

    # --------------------------------------------------------------- #
    # Shutdown
    # --------------------------------------------------------------- #

    async def close(self) -> None:
        logger.info("Bot shutting down")
        await super().close()

    # --------------------------------------------------------------- #
    # Dependency access
    # --------------------------------------------------------------- #

    @property
    def config_manager(self) -> ConfigManager:
        return self._config_manager

    @property
    def service_container(self) -> ServiceContainer:
        return self._service_container

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus
