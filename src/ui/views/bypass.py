"""
Guild-owner override flow.

1. A command fails a bypassable rule and the owner sees ``bypass_prompt``
   with a ``BypassConfirmationView``.
2. "Override" opens ``BypassReasonModal``: a reason (10-500 characters)
   and the word ``OVERRIDE`` typed out.
3. On a valid submission the pending bypass is confirmed, its stored
   command context is replayed once, and ``on_override`` re-runs the
   command with the failing rules skipped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

import discord
from discord.ui import Modal, TextInput

from src.core.logging.logger import get_logger
from src.ui.embeds import EmbedFactory
from src.ui.views.base import BaseView

if TYPE_CHECKING:
    from src.modules.validation.command_validation import CommandValidationService
    from src.modules.validation.context import CommandValidationContext

logger = get_logger(__name__)

CONFIRM_BUTTON_ID = "validation_bypass_confirm"
CANCEL_BUTTON_ID = "validation_bypass_cancel"
CONFIRMATION_WORD = "OVERRIDE"
REASON_MIN_LENGTH = 10
REASON_MAX_LENGTH = 500

OverrideCallback = Callable[[discord.Interaction, "CommandValidationContext", str], Awaitable[None]]


def check_bypass_submission(reason: str, confirmation: str) -> list:
    """Problems with a modal submission; empty when it is acceptable."""
    problems = []
    reason = reason.strip()
    if len(reason) < REASON_MIN_LENGTH:
        problems.append(f"Reason must be at least {REASON_MIN_LENGTH} characters.")
    elif len(reason) > REASON_MAX_LENGTH:
        problems.append(f"Reason must be at most {REASON_MAX_LENGTH} characters.")
    if confirmation.strip() != CONFIRMATION_WORD:
        problems.append(f"Type {CONFIRMATION_WORD} exactly to confirm.")
    return problems


class BypassReasonModal(Modal):
    def __init__(
        self,
        validation_service: CommandValidationService,
        user_id: int,
        token: str,
        on_override: OverrideCallback,
    ):
        super().__init__(title="Guild Owner Override")
        self.validation_service = validation_service
        self.user_id = user_id
        self.token = token
        self.on_override = on_override

        self.reason_input = TextInput(
            label="Reason for override",
            style=discord.TextStyle.paragraph,
            placeholder="Explain why this rule should be overridden",
            min_length=REASON_MIN_LENGTH,
            max_length=REASON_MAX_LENGTH,
            required=True,
        )
        self.confirmation_input = TextInput(
            label=f"Type {CONFIRMATION_WORD} to confirm",
            placeholder=CONFIRMATION_WORD,
            max_length=len(CONFIRMATION_WORD),
            required=True,
        )
        self.add_item(self.reason_input)
        self.add_item(self.confirmation_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        reason = self.reason_input.value or ""
        problems = check_bypass_submission(reason, self.confirmation_input.value or "")
        if problems:
            await interaction.response.send_message(
                embed=EmbedFactory.error("Override Not Confirmed", "\n".join(problems)),
                ephemeral=True,
            )
            return

        confirmed = await self.validation_service.handle_bypass_confirmation(
            interaction, self.user_id, reason.strip()
        )
        if not confirmed:
            return

        context = self.validation_service.replay_pending(self.token, self.user_id)
        if context is None:
            await interaction.response.send_message(
                embed=EmbedFactory.error("Override Expired", "This override was already used or has expired."),
                ephemeral=True,
            )
            return

        await self.on_override(interaction, context, reason.strip())

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.error(f"Error in BypassReasonModal: {error}", exc_info=error)
        embed = EmbedFactory.error("Override Failed", "An error occurred while applying the override.")
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)


class BypassConfirmationView(BaseView):
    def __init__(
        self,
        validation_service: CommandValidationService,
        user_id: int,
        token: str,
        on_override: OverrideCallback,
        timeout: float = 300,
    ):
        super().__init__(user_id, timeout, logger_name=__name__)
        self.validation_service = validation_service
        self.token = token
        self.on_override = on_override

    @discord.ui.button(label="Override", style=discord.ButtonStyle.danger, custom_id=CONFIRM_BUTTON_ID)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if not await self.check_user(interaction):
            return
        await interaction.response.send_modal(
            BypassReasonModal(self.validation_service, self.user_id, self.token, self.on_override)
        )

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary, custom_id=CANCEL_BUTTON_ID)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if not await self.check_user(interaction):
            return
        self.validation_service.discard_pending(self.token)
        self.disable_all()
        self.stop()
        await interaction.response.edit_message(
            embed=EmbedFactory.info("Override Cancelled", "The command was not executed."),
            view=self,
        )
