"""
/rules command group.

Each rules channel holds one bot-managed embed. ``set`` creates or
replaces it (from a template or a title and intro), ``addrule`` and
``removerule`` edit single articles, and ``sync`` re-posts the stored
rules when the message was deleted or edited by hand.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.features.admin.admin_cog import TEMPLATE_CHOICES
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import PermissionStep, ValidatorPipeline
from src.ui.embeds import DESCRIPTION_LIMIT, truncate

SEVERITY_CHOICES = [
    app_commands.Choice(name=name.title(), value=name) for name in ("critical", "high", "medium", "low")
]


class RulesCog(BaseCog):
    MANAGE = ValidatorPipeline(PermissionStep())

    rules = app_commands.Group(name="rules", description="Manage rules channels", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "RulesCog")

    @rules.command(name="set", description="Create or replace the rules in a channel")
    @app_commands.describe(
        channel="Rules channel",
        title="Embed title (ignored when a template is used)",
        content="Introduction shown above the rules",
        template="Start from a built-in template",
    )
    @app_commands.choices(template=TEMPLATE_CHOICES)
    async def set_rules(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        title: Optional[app_commands.Range[str, 1, 256]] = None,
        content: Optional[app_commands.Range[str, 1, 2000]] = None,
        template: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.MANAGE, self._set)

    @rules.command(name="addrule", description="Append a rule to a rules channel")
    @app_commands.describe(
        channel="Rules channel",
        title="Rule title",
        content="Rule text",
        category="Section heading",
        severity="How serious a breach is",
    )
    @app_commands.choices(severity=SEVERITY_CHOICES)
    async def addrule(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        title: app_commands.Range[str, 1, 100],
        content: app_commands.Range[str, 1, 1000],
        category: Optional[app_commands.Range[str, 1, 50]] = None,
        severity: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.MANAGE, self._addrule)

    @rules.command(name="removerule", description="Remove a rule by its id")
    @app_commands.describe(channel="Rules channel", rule_id="Rule id shown by /rules list")
    async def removerule(self, interaction: discord.Interaction, channel: discord.TextChannel, rule_id: str) -> None:
        await self.run_validated(interaction, self.MANAGE, self._removerule)

    @rules.command(name="remove", description="Stop managing a rules channel and delete its message")
    @app_commands.describe(channel="Rules channel")
    async def remove(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self.run_validated(interaction, self.MANAGE, self._remove)

    @rules.command(name="list", description="List managed rules channels")
    async def list_channels(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.MANAGE, self._list)

    @rules.command(name="sync", description="Re-post the stored rules in a channel")
    @app_commands.describe(channel="Rules channel")
    async def sync(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self.run_validated(interaction, self.MANAGE, self._sync)

    # ------------------------------------------------------------------ #

    async def _set(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        rules_service = self.service_container.rules
        if options.template:
            data = rules_service.generate_default_rules(options.template)
            if options.content:
                data["content"] = options.content
        else:
            data = {field: value for field, value in (("title", options.title), ("content", options.content)) if value}

        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await rules_service.update_rules_channel(interaction.guild, options.channel_id, context.user_id, data)
        await self.send_result(
            interaction,
            result,
            "Rules Updated",
            f"The rules in <#{options.channel_id}> are up to date.",
            failure_title="Rules Not Updated",
        )

    async def _addrule(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        await interaction.response.defer(ephemeral=True, thinking=True)
        row = await self.service_container.rules.add_rule(
            interaction.guild,
            options.channel_id,
            {"title": options.title, "content": options.content, "category": options.category, "severity": options.severity},
            context.user_id,
        )
        if row is None:
            await self.send_error(
                interaction, "Not a Rules Channel", f"<#{options.channel_id}> has no rules yet. Use `/rules set` first."
            )
            return
        await self.send_success(
            interaction, "Rule Added", f"**{options.title}** is now article {len(row.rules)} in <#{options.channel_id}>."
        )

    async def _removerule(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        current = await self.service_container.rules.get_rules_channel(context.guild_id, options.channel_id)
        if current is None:
            await self.send_error(interaction, "Not a Rules Channel", f"<#{options.channel_id}> has no rules.")
            return
        if not any(rule.get("id") == options.rule_id for rule in current.rules or []):
            await self.send_error(interaction, "Rule Not Found", f"No rule `{options.rule_id}` in <#{options.channel_id}>.")
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        await self.service_container.rules.remove_rule(
            interaction.guild, options.channel_id, options.rule_id, context.user_id
        )
        await self.send_success(interaction, "Rule Removed", f"Rule `{options.rule_id}` was removed and the rest renumbered.")

    async def _remove(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        channel_id = context.options.channel_id
        await interaction.response.defer(ephemeral=True, thinking=True)
        if not await self.service_container.rules.delete_rules_channel(interaction.guild, channel_id):
            await self.send_error(interaction, "Not a Rules Channel", f"<#{channel_id}> has no managed rules.")
            return
        await self.send_success(interaction, "Rules Removed", f"<#{channel_id}> is no longer a rules channel.")

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        channels = await self.service_container.rules.list_rules_channels(context.guild_id)
        if not channels:
            await self.send_info(interaction, "Rules Channels", "No rules channels are configured.", ephemeral=True)
            return

        sections = []
        for row in channels:
            rule_ids = ", ".join(f"`{rule.get('id')}`" for rule in row.rules or []) or "no rules"
            sections.append(f"<#{row.channel_id}> **{row.title}** ({len(row.rules or [])} rules)\n{rule_ids}")
        await self.send_info(
            interaction, "Rules Channels", truncate("\n\n".join(sections), DESCRIPTION_LIMIT), ephemeral=True
        )

    async def _sync(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        channel_id = context.options.channel_id
        await interaction.response.defer(ephemeral=True, thinking=True)
        if await self.service_container.rules.sync_rules_message(interaction.guild, channel_id):
            await self.send_success(interaction, "Rules Synced", f"The rules message in <#{channel_id}> was refreshed.")
        else:
            await self.send_error(
                interaction, "Sync Failed", f"<#{channel_id}> has no stored rules or the message could not be posted."
            )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(RulesCog(bot))
