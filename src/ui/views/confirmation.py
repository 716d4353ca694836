"""
Yes/No confirmation dialog for destructive commands (fire, remove job,
server setup).

Usage:
    >>> view = ConfirmationView(user_id, on_confirm=do_fire, danger_mode=True)
    >>> await interaction.response.send_message(embed=embed, view=view, ephemeral=True)
"""

from typing import Awaitable, Callable, Optional

import discord
from discord.ui import Button

from src.ui.views.base import BaseView

InteractionCallback = Callable[[discord.Interaction], Awaitable[None]]


class ConfirmationView(BaseView):
    def __init__(
        self,
        user_id: int,
        on_confirm: Optional[InteractionCallback] = None,
        on_cancel: Optional[InteractionCallback] = None,
        confirm_label: str = "Confirm",
        cancel_label: str = "Cancel",
        danger_mode: bool = False,
        timeout: float = 60,
    ):
        """
        Args:
            user_id: Discord user ID
            on_confirm: Callback for confirm action
            on_cancel: Callback for cancel action
            danger_mode: If True, confirm button is red
            timeout: Timeout in seconds (default 1 minute)
        """
        super().__init__(user_id, timeout)
        self.on_confirm_callback = on_confirm
        self.on_cancel_callback = on_cancel
        self.confirmed: Optional[bool] = None

        confirm_button = Button(
            label=confirm_label,
            style=discord.ButtonStyle.danger if danger_mode else discord.ButtonStyle.success,
        )
        confirm_button.callback = self._confirm
        self.add_item(confirm_button)

        cancel_button = Button(label=cancel_label, style=discord.ButtonStyle.secondary)
        cancel_button.callback = self._cancel
        self.add_item(cancel_button)

    async def _finish(self, interaction: discord.Interaction, confirmed: bool) -> None:
        if not await self.check_user(interaction):
            return

        self.confirmed = confirmed
        self.disable_all()
        self.stop()

        callback = self.on_confirm_callback if confirmed else self.on_cancel_callback
        if callback:
            await callback(interaction)
        else:
            await interaction.response.edit_message(
                content="Confirmed." if confirmed else "Cancelled.",
                view=self,
            )

    async def _confirm(self, interaction: discord.Interaction) -> None:
        await self._finish(interaction, True)

    async def _cancel(self, interaction: discord.Interaction) -> None:
        await self._finish(interaction, False)
