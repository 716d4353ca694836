"""
/retainer command group.

A lawyer offers an agreement with ``/retainer sign``; the client receives
it by DM and signs through a modal. When the DM cannot be delivered the
offer is withdrawn again so the client is not left with a pending
agreement they never saw.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.database.models.enums import RetainerStatus
from src.database.models.legal.retainer import Retainer
from src.modules.cases.retainer_service import format_agreement
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import PermissionStep, ValidatorPipeline
from src.ui.embeds import DESCRIPTION_LIMIT, EmbedFactory, truncate
from src.ui.views.retainer import RetainerSignView

STATUS_CHOICES = [app_commands.Choice(name=status.value.title(), value=status.value) for status in RetainerStatus]
LIST_LIMIT = 20


def agreement_embed(retainer: Retainer, client_name: str, lawyer_name: str, guild_name: str) -> discord.Embed:
    text = format_agreement(
        retainer.agreement_template,
        client_name,
        lawyer_name,
        signature=retainer.digital_signature,
        signed_at=retainer.signed_at,
    )
    title = "Retainer Agreement" if retainer.status == RetainerStatus.PENDING.value else "Retainer Agreement (Signed)"
    return EmbedFactory.primary(title, truncate(text, DESCRIPTION_LIMIT), footer=f"{guild_name} - Retainer #{retainer.id}")


class RetainerCog(BaseCog):
    LAWYER = ValidatorPipeline(PermissionStep())

    retainer = app_commands.Group(name="retainer", description="Client retainer agreements", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "RetainerCog")

    @retainer.command(name="sign", description="Send a retainer agreement to a client")
    @app_commands.describe(client="Client who will sign the agreement")
    async def sign(self, interaction: discord.Interaction, client: discord.Member) -> None:
        await self.run_validated(interaction, self.LAWYER, self._sign)

    @retainer.command(name="list", description="List retainer agreements")
    @app_commands.describe(status="Only show this status", mine="Only agreements you offered")
    @app_commands.choices(status=STATUS_CHOICES)
    async def list_retainers(
        self, interaction: discord.Interaction, status: Optional[str] = None, mine: bool = False
    ) -> None:
        await self.run_validated(interaction, self.LAWYER, self._list)

    @retainer.command(name="cancel", description="Withdraw a pending retainer agreement")
    @app_commands.describe(retainer_id="ID of the agreement")
    async def cancel(self, interaction: discord.Interaction, retainer_id: int) -> None:
        await self.run_validated(interaction, self.LAWYER, self._cancel)

    # ------------------------------------------------------------------ #

    async def _sign(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        client_id = context.options.client_id
        client = interaction.guild.get_member(client_id) if interaction.guild else None
        if client is None:
            await self.send_error(interaction, "Client Not Found", f"<@{client_id}> is not a member of this server.")
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        retainers = self.service_container.retainers
        result = await retainers.create_retainer(context.permission_context, client_id)
        if not result["success"]:
            await self.send_error(interaction, "Retainer Not Created", result["error"])
            return

        retainer = result["retainer"]
        lawyer_name = interaction.user.display_name
        guild_id = context.guild_id
        guild_name = interaction.guild.name

        async def on_sign(sign_interaction: discord.Interaction, username: str, signature: str) -> bool:
            signed = await retainers.sign_retainer(guild_id, retainer.id, client_id, username, signature)
            if not signed["success"]:
                await sign_interaction.response.send_message(
                    embed=EmbedFactory.error("Signing Failed", signed["error"]), ephemeral=True
                )
                return False
            await sign_interaction.response.send_message(
                embed=agreement_embed(signed["retainer"], client.display_name, lawyer_name, guild_name)
            )
            return True

        view = RetainerSignView(client_id, on_sign)
        try:
            message = await client.send(
                embed=agreement_embed(retainer, client.display_name, lawyer_name, guild_name), view=view
            )
        except discord.HTTPException as exc:
            self.logger.warning(
                "Could not DM retainer agreement", extra={"retainer_id": retainer.id, "client_id": client_id, "error": str(exc)}
            )
            await retainers.cancel_retainer(context.permission_context, retainer.id)
            await self.send_error(
                interaction,
                "Client Unreachable",
                f"<@{client_id}> does not accept direct messages, so the agreement was withdrawn.",
            )
            return

        view.set_message(message)
        await self.send_success(
            interaction, "Retainer Sent", f"Agreement `#{retainer.id}` was sent to <@{client_id}> for signature."
        )

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        retainers = await self.service_container.retainers.list_retainers(
            context.permission_context,
            status=options.status,
            lawyer_id=context.user_id if options.mine else None,
        )
        if not retainers:
            await self.send_info(interaction, "Retainers", "No retainer agreements found.", ephemeral=True)
            return

        lines = [
            f"`#{retainer.id}` <@{retainer.client_id}> - {retainer.status} (lawyer <@{retainer.lawyer_id}>)"
            for retainer in retainers[:LIST_LIMIT]
        ]
        footer = f"Showing {len(lines)} of {len(retainers)}" if len(retainers) > LIST_LIMIT else None
        await self.send_info(interaction, "Retainers", "\n".join(lines), footer=footer, ephemeral=True)

    async def _cancel(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        retainer_id = context.options.retainer_id
        result = await self.service_container.retainers.cancel_retainer(context.permission_context, retainer_id)
        await self.send_result(
            interaction,
            result,
            "Retainer Cancelled",
            f"Agreement `#{retainer_id}` was withdrawn.",
            failure_title="Cancellation Failed",
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(RetainerCog(bot))
