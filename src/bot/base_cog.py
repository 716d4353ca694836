"""
Base cog for every slash-command feature.

Responsibilities
----------------
- Resolve the actor's PermissionContext and the command's validation context
- Run the command's ValidatorPipeline before the handler body
- Offer the guild owner an override prompt for bypassable failures and
  replay the stored command once the override is confirmed
- Standardize replies (success/error/info embeds, ephemeral where useful)
- Convert domain exceptions into embeds and log everything else

Usage
-----
>>> class StaffCog(BaseCog):
...     HIRE = ValidatorPipeline.standard()
...
...     @staff.command(name="hire")
...     async def hire(self, interaction, member: discord.Member, role: str, roblox_username: str):
...         await self.run_validated(interaction, self.HIRE, self._hire)
...
...     async def _hire(self, interaction, context, bypass_reason=None):
...         options = context.options  # StaffHireOptions
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import discord
from discord.ext import commands

from src.core.logging.logger import LogContext, get_logger
from src.modules.shared.exceptions import ErrorSeverity, LawBotDomainException
from src.modules.shared.permission_context import PermissionContext, PermissionContextResolver
from src.modules.validation.context import extract_validation_context
from src.ui.embeds import EmbedFactory
from src.ui.views.bypass import BypassConfirmationView

if TYPE_CHECKING:
    from src.core.services.container import ServiceContainer
    from src.modules.validation.context import CommandValidationContext
    from src.modules.validation.pipeline import ValidatorPipeline

CommandHandler = Callable[[discord.Interaction, "CommandValidationContext", Optional[str]], Awaitable[None]]


class BaseCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        cog_name: str,
        service_container: Optional[ServiceContainer] = None,
    ) -> None:
        self.bot = bot
        self.cog_name = cog_name
        self.logger = get_logger(cog_name)
        self.service_container = service_container or getattr(bot, "service_container", None)

    # ========================================================================
    # VALIDATION
    # ========================================================================

    @staticmethod
    def permission_context(interaction: discord.Interaction) -> PermissionContext:
        return PermissionContextResolver.from_interaction(interaction)

    async def run_validated(
        self,
        interaction: discord.Interaction,
        pipeline: ValidatorPipeline,
        handler: CommandHandler,
    ) -> None:
        """
        Validate the invocation, then call ``handler(interaction, context, None)``.

        When validation fails the user sees every error. A guild owner whose
        failures are all bypassable instead gets an override prompt; on
        confirmation the stored context is validated again with
        ``bypass_confirmed`` and ``handler`` runs with the override reason.
        """
        validation = self.service_container.command_validation
        context = extract_validation_context(interaction, self.permission_context(interaction))

        async with LogContext(
            user_id=context.user_id,
            guild_id=context.guild_id,
            command=f"/{context.qualified_name.replace('.', ' ')}",
        ):
            self.log_command_use(context.qualified_name, context.user_id, context.guild_id)
            result = await pipeline.run(validation, context)

            if result.requires_confirmation and result.bypass_token:
                view = BypassConfirmationView(
                    validation,
                    context.user_id,
                    result.bypass_token,
                    on_override=self._override_callback(pipeline, handler),
                )
                await self.respond(interaction, embed=EmbedFactory.bypass_prompt(result), view=view, ephemeral=True)
                view.set_message(await interaction.original_response())
                return

            if not result.is_valid:
                await self.respond(interaction, embed=EmbedFactory.validation_failure(result), ephemeral=True)
                return

            await self._invoke(interaction, context, handler, None)

    def _override_callback(
        self,
        pipeline: ValidatorPipeline,
        handler: CommandHandler,
    ) -> Callable[[discord.Interaction, CommandValidationContext, str], Awaitable[None]]:
        async def on_override(
            interaction: discord.Interaction,
            context: CommandValidationContext,
            reason: str,
        ) -> None:
            await interaction.response.defer(ephemeral=True, thinking=True)
            result = await pipeline.run(self.service_container.command_validation, context, bypass_confirmed=True)
            if not result.is_valid:
                await self.respond(interaction, embed=EmbedFactory.validation_failure(result), ephemeral=True)
                return
            await self._invoke(interaction, context, handler, reason)

        return on_override

    async def _invoke(
        self,
        interaction: discord.Interaction,
        context: CommandValidationContext,
        handler: CommandHandler,
        bypass_reason: Optional[str],
    ) -> None:
        try:
            await handler(interaction, context, bypass_reason)
        except Exception as exc:
            if not await self.handle_standard_errors(interaction, exc):
                self.log_cog_error(context.qualified_name, exc, context.user_id, context.guild_id)
                await self.send_error(
                    interaction,
                    "Unexpected Error",
                    "Something went wrong while processing your command.",
                    help_text="The issue has been logged.",
                )

    # ========================================================================
    # USER FEEDBACK
    # ========================================================================

    async def respond(self, interaction: discord.Interaction, ephemeral: bool = False, **kwargs: Any) -> None:
        """Send via the initial response, or a followup once that is used."""
        try:
            if interaction.response.is_done():
                await interaction.followup.send(ephemeral=ephemeral, **kwargs)
            else:
                await interaction.response.send_message(ephemeral=ephemeral, **kwargs)
        except discord.HTTPException as exc:
            self.logger.error(
                "Failed to send interaction response",
                extra={"cog_name": self.cog_name, "error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    async def send_error(
        self,
        interaction: discord.Interaction,
        title: str,
        description: str,
        help_text: Optional[str] = None,
    ) -> None:
        await self.respond(interaction, embed=EmbedFactory.error(title, description, help_text), ephemeral=True)

    async def send_success(
        self,
        interaction: discord.Interaction,
        title: str,
        description: str,
        footer: Optional[str] = None,
    ) -> None:
        await self.respond(interaction, embed=EmbedFactory.success(title, description, footer))

    async def send_info(
        self,
        interaction: discord.Interaction,
        title: str,
        description: str,
        footer: Optional[str] = None,
        ephemeral: bool = False,
    ) -> None:
        await self.respond(interaction, embed=EmbedFactory.info(title, description, footer), ephemeral=ephemeral)

    async def send_result(
        self,
        interaction: discord.Interaction,
        result: dict,
        title: str,
        description: str,
        failure_title: str = "Action Failed",
    ) -> bool:
        """Reply to a ``{success, error}`` service result. Returns ``success``."""
        if not result.get("success"):
            await self.send_error(interaction, failure_title, result.get("error") or "Unknown error")
            return False
        await self.send_success(interaction, title, description)
        return True

    # ========================================================================
    # ERRORS AND LOGGING
    # ========================================================================

    async def handle_standard_errors(self, interaction: discord.Interaction, error: Exception) -> bool:
        """Render a domain exception. Returns False for anything else."""
        if not isinstance(error, LawBotDomainException):
            return False
        self.logger.warning("Domain exception in command handler", extra=error.to_dict())
        if error.severity in (ErrorSeverity.DEBUG, ErrorSeverity.INFO):
            embed = EmbedFactory.warning("Notice", error.message)
        else:
            embed = EmbedFactory.error("Error", error.message)
        await self.respond(interaction, embed=embed, ephemeral=True)
        return True

    def log_command_use(self, command_name: str, user_id: int, guild_id: Optional[int] = None, **kwargs: Any) -> None:
        self.logger.info(
            "Command used",
            extra={"cog_name": self.cog_name, "command": command_name, "user_id": user_id, "guild_id": guild_id, **kwargs},
        )

    def log_cog_error(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        self.logger.error(
            f"{self.cog_name}.{operation} failed: {error}",
            exc_info=error,
            extra={"operation": operation, "user_id": user_id, "guild_id": guild_id, **kwargs},
        )
