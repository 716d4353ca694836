"""/feedback command group: clients rate staff members or the firm."""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.cases.feedback_service import MAX_RATING, MIN_RATING
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import ValidatorPipeline
from src.ui.embeds import EmbedFactory, truncate

STARS = "★"


def star_bar(rating: float) -> str:
    """
    >>> star_bar(3.6)
    '★★★★☆'
    """
    filled = int(round(rating))
    return STARS * filled + "☆" * (MAX_RATING - filled)


class FeedbackCog(BaseCog):
    OPEN = ValidatorPipeline()

    feedback = app_commands.Group(name="feedback", description="Client feedback", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "FeedbackCog")

    @feedback.command(name="submit", description="Rate a staff member or the firm")
    @app_commands.describe(
        rating="1 to 5 stars",
        comment="What went well or badly",
        staff="Staff member being rated; leave empty to rate the firm",
    )
    async def submit(
        self,
        interaction: discord.Interaction,
        rating: app_commands.Range[int, MIN_RATING, MAX_RATING],
        comment: app_commands.Range[str, 5, 1000],
        staff: Optional[discord.Member] = None,
    ) -> None:
        await self.run_validated(interaction, self.OPEN, self._submit)

    @feedback.command(name="view", description="Show rating statistics")
    @app_commands.describe(staff="Staff member; leave empty for the whole firm")
    async def view(self, interaction: discord.Interaction, staff: Optional[discord.Member] = None) -> None:
        await self.run_validated(interaction, self.OPEN, self._view)

    async def _submit(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.feedback.submit_feedback(
            context.permission_context, options.rating, options.comment or "", target_staff_id=options.staff_id
        )
        target = f"<@{options.staff_id}>" if options.staff_id else "the firm"
        if not result["success"]:
            await self.send_error(interaction, "Feedback Not Submitted", result["error"])
            return
        await self.respond(
            interaction,
            embed=EmbedFactory.success("Thank You", f"Your {star_bar(options.rating)} rating for {target} was recorded."),
            ephemeral=True,
        )

    async def _view(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        staff_id = context.options.staff_id
        stats = await self.service_container.feedback.get_feedback_stats(context.permission_context, staff_id=staff_id)
        subject = f"<@{staff_id}>" if staff_id else "the firm"
        if not stats["total"]:
            await self.send_info(interaction, "Feedback", f"No feedback recorded for {subject}.", ephemeral=True)
            return

        values = {
            "Average": f"{stats['average_rating']} {star_bar(stats['average_rating'])}",
            "Reviews": stats["total"],
        }
        values.update({f"{rating} {STARS}": count for rating, count in sorted(stats["distribution"].items(), reverse=True)})
        recent = "\n".join(f"{star_bar(entry.rating)} {truncate(entry.comment, 100)}" for entry in stats["recent"])
        await self.respond(
            interaction,
            embed=EmbedFactory.key_values("Feedback", values, description=f"Ratings for {subject}\n\n{recent}"),
            ephemeral=True,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(FeedbackCog(bot))
