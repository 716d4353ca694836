"""
/remind command group.

Reminders are posted back in the channel they were set from. Pending
reminders are restored once the bot is ready.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import ValidatorPipeline
from src.ui.embeds import truncate


class ReminderCog(BaseCog):
    OPEN = ValidatorPipeline()

    remind = app_commands.Group(name="remind", description="Personal reminders", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "ReminderCog")
        self._restored = False

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        # on_ready fires again after every reconnect.
        if self._restored:
            return
        self._restored = True
        await self.service_container.reminders.start(self.bot)

    @remind.command(name="set", description="Remind yourself in this channel later")
    @app_commands.describe(time="Delay such as 10m, 2h or 1d (max 7 days)", message="What to remind you about")
    async def set_reminder(
        self, interaction: discord.Interaction, time: str, message: app_commands.Range[str, 1, 1000]
    ) -> None:
        await self.run_validated(interaction, self.OPEN, self._set)

    @remind.command(name="case", description="Set a reminder linked to this case channel")
    @app_commands.describe(time="Delay such as 10m, 2h or 1d (max 7 days)", message="What to remind you about")
    async def case(self, interaction: discord.Interaction, time: str, message: app_commands.Range[str, 1, 1000]) -> None:
        await self.run_validated(interaction, self.OPEN, self._case)

    @remind.command(name="list", description="Show your pending reminders")
    async def list_reminders(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.OPEN, self._list)

    @remind.command(name="cancel", description="Cancel a pending reminder")
    @app_commands.describe(reminder_id="ID shown by /remind list")
    async def cancel(self, interaction: discord.Interaction, reminder_id: int) -> None:
        await self.run_validated(interaction, self.OPEN, self._cancel)

    # ------------------------------------------------------------------ #

    async def _set(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        await self._create(interaction, context, require_case=False)

    async def _case(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        await self._create(interaction, context, require_case=True)

    async def _create(self, interaction: discord.Interaction, context: CommandValidationContext, require_case: bool) -> None:
        options = context.options
        result = await self.service_container.reminders.set_reminder(
            context.permission_context,
            options.time or "",
            options.message or "",
            channel_id=interaction.channel_id,
            require_case=require_case,
        )
        if not result["success"]:
            await self.send_error(interaction, "Reminder Not Set", result["error"])
            return

        reminder = result["reminder"]
        case = result["case"]
        when = discord.utils.format_dt(reminder.scheduled_for, "R")
        linked = f" for case **{case.case_number}**" if case else ""
        await self.send_info(
            interaction, "Reminder Set", f"Reminder `#{reminder.id}`{linked} will fire {when}.", ephemeral=True
        )

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        reminders = await self.service_container.reminders.list_reminders(context.permission_context)
        if not reminders:
            await self.send_info(interaction, "Reminders", "You have no pending reminders.", ephemeral=True)
            return
        lines = [
            f"`#{reminder.id}` {discord.utils.format_dt(reminder.scheduled_for, 'R')} - {truncate(reminder.message, 80)}"
            for reminder in reminders
        ]
        await self.send_info(interaction, "Your Reminders", "\n".join(lines), ephemeral=True)

    async def _cancel(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        reminder_id = context.options.reminder_id
        result = await self.service_container.reminders.cancel_reminder(context.permission_context, reminder_id)
        if not result["success"]:
            await self.send_error(interaction, "Reminder Not Cancelled", result["error"])
            return
        await self.send_info(interaction, "Reminder Cancelled", f"Reminder `#{reminder_id}` will not fire.", ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(ReminderCog(bot))
