"""
/admin command group.

Covers guild permission configuration, the full server bootstrap, the
rules channel and the integrity scan/repair tools. Setup wipes the
guild, so it is restricted to the owner and asks for confirmation first.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.database.models.enums import PermissionAction
from src.modules.rules.templates import TEMPLATE_NAMES
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.cross_entity import IntegrityReport
from src.modules.validation.pipeline import CustomRuleStep, PermissionStep, ValidatorPipeline
from src.modules.validation.types import CommandValidationRule, ValidationResult
from src.ui.embeds import EmbedFactory
from src.ui.views.confirmation import ConfirmationView

ACTION_CHOICES = [app_commands.Choice(name=action.value, value=action.value) for action in PermissionAction]
TEMPLATE_CHOICES = [app_commands.Choice(name=name.title(), value=name) for name in TEMPLATE_NAMES]
ISSUE_PREVIEW = 10


async def _owner_only(context: CommandValidationContext) -> ValidationResult:
    if context.permission_context.is_guild_owner:
        return ValidationResult.ok()
    return ValidationResult.fail("Only the server owner can run this command")


OWNER_ONLY = CommandValidationRule(name="owner_only", validate=_owner_only, priority=100)


def _issue_lines(report: IntegrityReport) -> str:
    lines = [
        f"**{issue.severity.value}** {issue.entity_type} `{issue.entity_id}`: {issue.message}"
        for issue in report.issues[:ISSUE_PREVIEW]
    ]
    if len(report.issues) > ISSUE_PREVIEW:
        lines.append(f"...and {len(report.issues) - ISSUE_PREVIEW} more")
    return "\n".join(lines)


class AdminCog(BaseCog):
    ADMIN = ValidatorPipeline(PermissionStep("admin"))
    CONFIG = ValidatorPipeline(PermissionStep("config"))
    REPAIR = ValidatorPipeline(PermissionStep("repair"))
    SETUP = ValidatorPipeline(CustomRuleStep(OWNER_ONLY))
    SELF = ValidatorPipeline()

    admin = app_commands.Group(name="admin", description="Server administration", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "AdminCog")

    # ========================================================================
    # PERMISSIONS
    # ========================================================================

    @admin.command(name="add", description="Grant bot admin to a user or role")
    @app_commands.describe(user="User to make admin", role="Role to make admin")
    async def add(
        self,
        interaction: discord.Interaction,
        user: Optional[discord.Member] = None,
        role: Optional[discord.Role] = None,
    ) -> None:
        await self.run_validated(interaction, self.ADMIN, self._add)

    @admin.command(name="remove", description="Revoke bot admin from a user or role")
    @app_commands.describe(user="User to remove", role="Role to remove")
    async def remove(
        self,
        interaction: discord.Interaction,
        user: Optional[discord.Member] = None,
        role: Optional[discord.Role] = None,
    ) -> None:
        await self.run_validated(interaction, self.ADMIN, self._remove)

    @admin.command(name="list", description="Show bot admins and action permissions")
    async def list_admins(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.ADMIN, self._list)

    @admin.command(name="mypermissions", description="Show which bot actions you can use")
    async def mypermissions(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.SELF, self._mypermissions)

    @admin.command(name="setpermission", description="Grant an action permission to a role")
    @app_commands.describe(action="Permission to grant", role="Role receiving it")
    @app_commands.choices(action=ACTION_CHOICES)
    async def setpermission(self, interaction: discord.Interaction, action: str, role: discord.Role) -> None:
        await self.run_validated(interaction, self.CONFIG, self._setpermission)

    async def _add(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        await self._change_admins(interaction, context, add=True)

    async def _remove(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        await self._change_admins(interaction, context, add=False)

    async def _change_admins(
        self, interaction: discord.Interaction, context: CommandValidationContext, add: bool
    ) -> None:
        options = context.options
        if options.user_id is None and options.role_id is None:
            await self.send_error(interaction, "Missing Target", "Provide a user, a role, or both.")
            return

        permissions = self.service_container.permissions
        actor = context.permission_context
        changed = []
        if options.user_id is not None:
            if add:
                await permissions.add_admin_user(actor, options.user_id)
            else:
                await permissions.remove_admin_user(actor, options.user_id)
            changed.append(f"<@{options.user_id}>")
        if options.role_id is not None:
            if add:
                await permissions.add_admin_role(actor, options.role_id)
            else:
                await permissions.remove_admin_role(actor, options.role_id)
            changed.append(f"<@&{options.role_id}>")

        verb = "granted" if add else "revoked"
        await self.send_success(interaction, "Admins Updated", f"Admin {verb} for {', '.join(changed)}.")

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        config = await self.service_container.permissions.get_guild_config(context.guild_id)
        values: Dict[str, Any] = {
            "Admin Users": ", ".join(f"<@{user_id}>" for user_id in config.admin_users or []) or "None",
            "Admin Roles": ", ".join(f"<@&{role_id}>" for role_id in config.admin_roles or []) or "None",
        }
        for action in PermissionAction:
            role_ids = (config.permissions or {}).get(action.value, [])
            values[action.value] = ", ".join(f"<@&{role_id}>" for role_id in role_ids) or "None"
        await self.respond(interaction, embed=EmbedFactory.key_values("Bot Permissions", values), ephemeral=True)

    async def _mypermissions(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        summary = await self.service_container.permissions.get_permission_summary(context.permission_context)
        values: Dict[str, Any] = {
            "Server Owner": "Yes" if summary["is_guild_owner"] else "No",
            "Bot Admin": "Yes" if summary["is_admin"] else "No",
        }
        values.update({action: "Yes" if granted else "No" for action, granted in summary["permissions"].items()})
        await self.respond(interaction, embed=EmbedFactory.key_values("Your Permissions", values), ephemeral=True)

    async def _setpermission(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        try:
            action = PermissionAction(options.action)
        except ValueError:
            await self.send_error(interaction, "Unknown Permission", f"`{options.action}` is not a permission.")
            return

        permissions = self.service_container.permissions
        config = await permissions.get_guild_config(context.guild_id)
        current = list((config.permissions or {}).get(action.value, []))
        if options.role_id in current:
            await self.send_info(
                interaction, "No Change", f"<@&{options.role_id}> already has `{action.value}`.", ephemeral=True
            )
            return

        await permissions.set_action_roles(context.permission_context, action, current + [options.role_id])
        await self.send_success(
            interaction, "Permission Granted", f"<@&{options.role_id}> can now use `{action.value}` commands."
        )

    # ========================================================================
    # SERVER SETUP AND RULES
    # ========================================================================

    @admin.command(name="setup-server", description="Wipe and rebuild this server for the firm")
    async def setup_server(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.SETUP, self._setup_server)

    @admin.command(name="rules", description="Post the rules in a channel")
    @app_commands.describe(channel="Channel to post the rules in", template="Rules template")
    @app_commands.choices(template=TEMPLATE_CHOICES)
    async def rules(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        template: str = "anarchy",
    ) -> None:
        await self.run_validated(interaction, self.CONFIG, self._rules)

    async def _setup_server(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        async def run_setup(confirm_interaction: discord.Interaction) -> None:
            await confirm_interaction.response.edit_message(
                embed=EmbedFactory.info("Server Setup", "Setup in progress. This can take a few minutes."),
                view=None,
            )
            result = await self.service_container.server_setup.setup_anarchy_server(confirm_interaction.guild)
            created = result["created"]
            summary = EmbedFactory.key_values(
                "Server Setup Complete" if result["success"] else "Server Setup Finished With Errors",
                {
                    "Roles": len(created["roles"]),
                    "Categories": len(created["categories"]),
                    "Channels": len(created["channels"]),
                    "Jobs": created["jobs"],
                    "Errors": len(result["errors"]),
                },
                description=result["message"],
            )
            # The invoking channel is usually gone after the wipe.
            try:
                await confirm_interaction.user.send(embed=summary)
            except discord.HTTPException as exc:
                self.logger.warning("Could not DM setup summary", extra={"error": str(exc)})

        async def cancel(cancel_interaction: discord.Interaction) -> None:
            await cancel_interaction.response.edit_message(
                embed=EmbedFactory.info("Server Setup", "Setup cancelled. Nothing was changed."),
                view=None,
            )

        view = ConfirmationView(
            context.user_id,
            on_confirm=run_setup,
            on_cancel=cancel,
            confirm_label="Wipe and rebuild",
            danger_mode=True,
        )
        await self.respond(
            interaction,
            embed=EmbedFactory.warning(
                "Confirm Server Setup",
                "This deletes every channel, role and stored record in this server, then rebuilds "
                "the firm's structure. This cannot be undone.",
            ),
            view=view,
            ephemeral=True,
        )
        view.set_message(await interaction.original_response())

    async def _rules(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        await interaction.response.defer(ephemeral=True, thinking=True)
        rules_service = self.service_container.rules
        result = await rules_service.update_rules_channel(
            interaction.guild,
            options.channel_id,
            context.user_id,
            rules_service.generate_default_rules(options.template),
        )
        await self.send_result(
            interaction,
            result,
            "Rules Posted",
            f"The {options.template} rules are live in <#{options.channel_id}>.",
            failure_title="Rules Not Posted",
        )

    # ========================================================================
    # INTEGRITY
    # ========================================================================

    @admin.command(name="validate", description="Scan stored data for integrity issues")
    async def validate(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.REPAIR, self._validate)

    @admin.command(name="repair", description="Repair integrity issues that can be fixed automatically")
    @app_commands.describe(dry_run="Report what would be repaired without changing anything")
    async def repair(self, interaction: discord.Interaction, dry_run: bool = True) -> None:
        await self.run_validated(interaction, self.REPAIR, self._repair)

    async def _validate(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        report = await self.service_container.cross_entity.scan_for_integrity_issues(context.guild_id, self.bot)
        values: Dict[str, Any] = {"Entities Scanned": report.total_entities_scanned}
        values.update({severity.title(): count for severity, count in report.issues_by_severity.items()})
        description = _issue_lines(report) or "No integrity issues found."
        await self.respond(
            interaction, embed=EmbedFactory.key_values("Integrity Scan", values, description), ephemeral=True
        )

    async def _repair(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        dry_run = context.options.dry_run
        await interaction.response.defer(ephemeral=True, thinking=True)
        cross_entity = self.service_container.cross_entity
        report = await cross_entity.scan_for_integrity_issues(context.guild_id, self.bot)
        result = await cross_entity.repair_integrity_issues(context.guild_id, report.issues, dry_run=dry_run)

        values = {
            "Issues Found": result.total_issues_found,
            "Would Repair" if dry_run else "Repaired": result.issues_repaired,
            "Failed": result.issues_failed,
        }
        failures = "\n".join(f"- {issue.message}: {error}" for issue, error in result.failed_repairs[:ISSUE_PREVIEW])
        await self.respond(
            interaction,
            embed=EmbedFactory.key_values("Repair Preview" if dry_run else "Repair Complete", values, failures),
            ephemeral=True,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(AdminCog(bot))
