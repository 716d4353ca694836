"""
/staff command group.

Every subcommand runs through its ValidatorPipeline before touching the
StaffService. Hire and promote can be overridden by the guild owner when
the only failure is a role limit; the handler then receives the override
reason and passes it on so the audit trail records it.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.staff.roles import StaffRole
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import BusinessRuleStep, CustomRuleStep, PermissionStep, ValidatorPipeline
from src.modules.validation.types import CommandValidationRule, ValidationResult
from src.ui.embeds import EmbedFactory

ROLE_CHOICES = [app_commands.Choice(name=role.value, value=role.value) for role in StaffRole]


def _override_note(bypass_reason: Optional[str]) -> str:
    return f"\n\nOwner override: {bypass_reason}" if bypass_reason else ""


class StaffCog(BaseCog):
    """Hiring, firing and rank changes for the firm's staff roster."""

    HIRE = ValidatorPipeline(PermissionStep(), BusinessRuleStep())
    FIRE = ValidatorPipeline.standard()
    DEMOTE = ValidatorPipeline.standard()
    VIEW = ValidatorPipeline(PermissionStep("lawyer"))

    staff = app_commands.Group(name="staff", description="Manage the firm's staff", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "StaffCog")
        # Promotions fill a new role, so they share the hire-time role limit.
        self.PROMOTE = ValidatorPipeline.standard(
            None,
            CustomRuleStep(
                CommandValidationRule(
                    name="role_limit_check",
                    validate=self._promotion_role_limit,
                    priority=10,
                    bypassable=True,
                )
            ),
        )

    async def _promotion_role_limit(self, context: CommandValidationContext) -> ValidationResult:
        role = context.options.role
        if not role:
            return ValidationResult.ok()
        return await self.service_container.business_rules.validate_role_limit(context.permission_context, role)

    # ========================================================================
    # COMMANDS
    # ========================================================================

    @staff.command(name="hire", description="Hire a member into a staff role")
    @app_commands.describe(
        member="Member to hire",
        role="Staff role to assign",
        roblox_username="Member's Roblox username",
        reason="Why they are being hired",
    )
    @app_commands.choices(role=ROLE_CHOICES)
    async def hire(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        role: str,
        roblox_username: str,
        reason: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.HIRE, self._hire)

    @staff.command(name="fire", description="Terminate a staff member")
    @app_commands.describe(member="Staff member to fire", reason="Why they are being let go")
    async def fire(self, interaction: discord.Interaction, member: discord.Member, reason: Optional[str] = None) -> None:
        await self.run_validated(interaction, self.FIRE, self._fire)

    @staff.command(name="promote", description="Promote a staff member")
    @app_commands.describe(member="Staff member to promote", role="New, higher role", reason="Reason for promotion")
    @app_commands.choices(role=ROLE_CHOICES)
    async def promote(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        role: str,
        reason: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.PROMOTE, self._promote)

    @staff.command(name="demote", description="Demote a staff member")
    @app_commands.describe(member="Staff member to demote", role="New, lower role", reason="Reason for demotion")
    @app_commands.choices(role=ROLE_CHOICES)
    async def demote(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        role: str,
        reason: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.DEMOTE, self._demote)

    @staff.command(name="info", description="Show a staff member's record")
    @app_commands.describe(member="Staff member to look up")
    async def info(self, interaction: discord.Interaction, member: discord.Member) -> None:
        await self.run_validated(interaction, self.VIEW, self._info)

    @staff.command(name="list", description="List active staff")
    @app_commands.describe(role="Only show this role", page="Page number")
    @app_commands.choices(role=ROLE_CHOICES)
    async def list_staff(
        self,
        interaction: discord.Interaction,
        role: Optional[str] = None,
        page: app_commands.Range[int, 1, 100] = 1,
    ) -> None:
        await self.run_validated(interaction, self.VIEW, self._list)

    @staff.command(name="hierarchy", description="Show the firm's staff by rank")
    async def hierarchy(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.VIEW, self._hierarchy)

    # ========================================================================
    # HANDLERS
    # ========================================================================

    async def _hire(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.staff.hire_staff(
            context.permission_context,
            options.member_id,
            options.roblox_username or "",
            options.role or "",
            reason=options.reason,
            bypass_reason=bypass_reason,
            guild=interaction.guild,
        )
        await self.send_result(
            interaction,
            result,
            "Staff Hired",
            f"<@{options.member_id}> has been hired as **{options.role}**.{_override_note(bypass_reason)}",
            failure_title="Hire Failed",
        )

    async def _fire(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.staff.fire_staff(
            context.permission_context, options.member_id, reason=options.reason, guild=interaction.guild
        )
        await self.send_result(
            interaction,
            result,
            "Staff Terminated",
            f"<@{options.member_id}> has been removed from the firm.",
            failure_title="Termination Failed",
        )

    async def _promote(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.staff.promote_staff(
            context.permission_context,
            options.member_id,
            options.role or "",
            reason=options.reason,
            bypass_reason=bypass_reason,
            guild=interaction.guild,
        )
        await self.send_result(
            interaction,
            result,
            "Staff Promoted",
            f"<@{options.member_id}> was promoted from **{result.get('previous_role')}** to "
            f"**{options.role}**.{_override_note(bypass_reason)}",
            failure_title="Promotion Failed",
        )

    async def _demote(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.staff.demote_staff(
            context.permission_context, options.member_id, options.role or "", reason=options.reason, guild=interaction.guild
        )
        await self.send_result(
            interaction,
            result,
            "Staff Demoted",
            f"<@{options.member_id}> was demoted from **{result.get('previous_role')}** to **{options.role}**.",
            failure_title="Demotion Failed",
        )

    async def _info(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        member_id = context.options.member_id
        staff = await self.service_container.staff.get_staff_info(context.permission_context, member_id)
        if staff is None:
            await self.send_error(interaction, "Not Found", f"<@{member_id}> has no staff record in this server.")
            return

        embed = EmbedFactory.key_values(
            "Staff Record",
            {
                "Member": f"<@{staff.user_id}>",
                "Role": staff.role,
                "Status": staff.status,
                "Roblox": staff.roblox_username,
                "Hired": discord.utils.format_dt(staff.hired_at, "D") if staff.hired_at else "-",
                "Hired By": f"<@{staff.hired_by}>",
                "Role Changes": len(staff.promotion_history or []),
            },
        )
        await self.respond(interaction, embed=embed, ephemeral=True)

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        listing = await self.service_container.staff.get_staff_list(
            context.permission_context, role=options.role, page=options.page
        )
        if not listing["staff"]:
            await self.send_info(interaction, "Staff Roster", "No active staff found.", ephemeral=True)
            return

        lines = [f"**{member.role}** - <@{member.user_id}> ({member.roblox_username})" for member in listing["staff"]]
        await self.send_info(
            interaction,
            "Staff Roster" + (f" - {options.role}" if options.role else ""),
            "\n".join(lines),
            footer=f"Page {listing['page']}/{listing['total_pages']} - {listing['total']} active",
            ephemeral=True,
        )

    async def _hierarchy(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        hierarchy = await self.service_container.staff.get_staff_hierarchy(context.permission_context)
        values = {
            role: ", ".join(f"<@{member.user_id}>" for member in members)
            for role, members in hierarchy.items()
            if members
        }
        if not values:
            await self.send_info(interaction, "Firm Hierarchy", "No active staff found.", ephemeral=True)
            return
        await self.respond(interaction, embed=EmbedFactory.key_values("Firm Hierarchy", values), ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(StaffCog(bot))
