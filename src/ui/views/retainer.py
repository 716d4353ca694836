"""
Retainer signing, sent to the client by DM.

The client presses "Sign Agreement" and types their Roblox username and
full name. The view lives in memory only, so an unsigned offer must be
re-sent after a bot restart.
"""

from __future__ import annotations

from typing import Awaitable, Callable

import discord
from discord.ui import Modal, TextInput

from src.core.logging.logger import get_logger
from src.ui.embeds import EmbedFactory
from src.ui.views.base import BaseView

logger = get_logger(__name__)

SignCallback = Callable[[discord.Interaction, str, str], Awaitable[bool]]


class RetainerSignModal(Modal):
    def __init__(self, on_sign: SignCallback):
        super().__init__(title="Sign Retainer Agreement")
        self.on_sign = on_sign
        self.username_input = TextInput(
            label="Roblox username",
            placeholder="Your Roblox username",
            min_length=3,
            max_length=20,
        )
        self.signature_input = TextInput(
            label="Full name (digital signature)",
            placeholder="Type your full name to sign",
            min_length=2,
            max_length=100,
        )
        self.add_item(self.username_input)
        self.add_item(self.signature_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.on_sign(
            interaction,
            (self.username_input.value or "").strip(),
            (self.signature_input.value or "").strip(),
        )

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.error(f"Error in RetainerSignModal: {error}", exc_info=error)
        embed = EmbedFactory.error("Signing Failed", "The agreement could not be signed.")
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)


class RetainerSignView(BaseView):
    def __init__(self, client_id: int, on_sign: SignCallback, timeout: float = 86400):
        super().__init__(client_id, timeout, logger_name=__name__)
        self.on_sign = on_sign

    @discord.ui.button(label="Sign Agreement", style=discord.ButtonStyle.success)
    async def sign(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if not await self.check_user(interaction):
            return
        await interaction.response.send_modal(RetainerSignModal(self._signed))

    async def _signed(self, interaction: discord.Interaction, username: str, signature: str) -> bool:
        signed = await self.on_sign(interaction, username, signature)
        if signed and self.message is not None:
            self.disable_all()
            self.stop()
            try:
                await self.message.edit(view=self)
            except discord.HTTPException as exc:
                self.logger.warning(f"Failed to disable signing controls: {exc}")
        return signed
