"""
Base view for every interactive message the bot sends.

Provides:
- Actor validation (only the member who ran the command may press buttons)
- Timeout handling that disables controls
- Error reporting through an ephemeral embed

Usage:
    >>> class MyView(BaseView):
    ...     @discord.ui.button(label="Approve")
    ...     async def approve(self, interaction, button):
    ...         if not await self.check_user(interaction):
    ...             return
    ...         await interaction.response.send_message("Approved")
"""

from typing import Optional

import discord
from discord.ui import View

from src.core.logging.logger import get_logger
from src.ui.embeds import EmbedFactory


class BaseView(View):
    def __init__(
        self,
        user_id: int,
        timeout: float = 180,
        logger_name: Optional[str] = None,
    ):
        """
        Args:
            user_id: Discord user ID who can interact with this view
            timeout: Timeout in seconds (default 3 minutes)
            logger_name: Optional logger name for logging interactions
        """
        super().__init__(timeout=timeout)
        self.user_id = user_id
        self.message: Optional[discord.Message] = None
        self.logger = get_logger(logger_name or __name__)

    async def check_user(self, interaction: discord.Interaction) -> bool:
        """True when the presser is the view's owner; otherwise replies ephemerally."""
        if interaction.user.id != self.user_id:
            await interaction.response.send_message(
                embed=EmbedFactory.error("Not Your Action", "Only the member who ran this command can use these controls."),
                ephemeral=True,
            )
            return False
        return True

    def disable_all(self) -> None:
        for child in self.children:
            if isinstance(child, (discord.ui.Button, discord.ui.Select)):
                child.disabled = True

    async def on_timeout(self) -> None:
        if self.message:
            try:
                self.disable_all()
                await self.message.edit(view=self)
                self.logger.debug(f"View timed out for user {self.user_id}")
            except discord.HTTPException as e:
                self.logger.warning(f"Failed to edit message on timeout: {e}")

    async def on_error(
        self,
        interaction: discord.Interaction,
        error: Exception,
        item: discord.ui.Item,
    ) -> None:
        self.logger.error(f"Error in view for user {self.user_id}: {error}", exc_info=error)

        embed = EmbedFactory.error("Something Went Wrong", "An error occurred while processing your interaction.")
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            self.logger.warning("Failed to report view error to user", extra={"user_id": self.user_id})

    def set_message(self, message: discord.Message) -> None:
        self.message = message
