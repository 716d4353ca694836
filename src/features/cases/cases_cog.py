"""
/case command group.

Cases move pending -> in-progress on their first lawyer assignment and
can only be closed from in-progress.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.database.models.enums import CasePriority, CaseResult, CaseStatus
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import BusinessRuleStep, PermissionStep, ValidatorPipeline

PRIORITY_CHOICES = [app_commands.Choice(name=item.value.title(), value=item.value) for item in CasePriority]
RESULT_CHOICES = [app_commands.Choice(name=item.value.title(), value=item.value) for item in CaseResult]
STATUS_CHOICES = [app_commands.Choice(name=item.value.title(), value=item.value) for item in CaseStatus]


class CasesCog(BaseCog):
    CREATE = ValidatorPipeline(PermissionStep(), BusinessRuleStep())
    ASSIGN = ValidatorPipeline.standard()
    CLOSE = ValidatorPipeline.standard()
    VIEW = ValidatorPipeline(PermissionStep("lawyer"))

    case = app_commands.Group(name="case", description="Track client cases", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "CasesCog")

    @case.command(name="create", description="Open a new case for a client")
    @app_commands.describe(
        client="Client the case is for",
        title="Short case title",
        description="Case details",
        priority="Case priority",
    )
    @app_commands.choices(priority=PRIORITY_CHOICES)
    async def create(
        self,
        interaction: discord.Interaction,
        client: discord.Member,
        title: app_commands.Range[str, 3, 200],
        description: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.CREATE, self._create)

    @case.command(name="assign", description="Assign a lawyer to a case")
    @app_commands.describe(case_number="Case number", lawyer="Lawyer to assign", lead="Make them lead attorney")
    async def assign(
        self,
        interaction: discord.Interaction,
        case_number: str,
        lawyer: discord.Member,
        lead: bool = False,
    ) -> None:
        await self.run_validated(interaction, self.ASSIGN, self._assign)

    @case.command(name="close", description="Close a case with a result")
    @app_commands.describe(case_number="Case number", result="Outcome of the case", notes="Closing notes")
    @app_commands.choices(result=RESULT_CHOICES)
    async def close(
        self,
        interaction: discord.Interaction,
        case_number: str,
        result: str,
        notes: Optional[str] = None,
    ) -> None:
        await self.run_validated(interaction, self.CLOSE, self._close)

    @case.command(name="list", description="List cases")
    @app_commands.describe(status="Only show this status", page="Page number")
    @app_commands.choices(status=STATUS_CHOICES)
    async def list_cases(
        self,
        interaction: discord.Interaction,
        status: Optional[str] = None,
        page: app_commands.Range[int, 1, 100] = 1,
    ) -> None:
        await self.run_validated(interaction, self.VIEW, self._list)

    # ------------------------------------------------------------------ #

    async def _create(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        client = interaction.guild.get_member(options.client_id) if interaction.guild else None
        result = await self.service_container.cases.create_case(
            context.permission_context,
            options.client_id,
            client.name if client else str(options.client_id),
            options.title or "",
            description=options.description or "",
            priority=options.priority,
        )
        if not result["success"]:
            await self.send_error(interaction, "Case Not Created", result["error"])
            return

        case = result["case"]
        footer = " ".join(result["warnings"]) or None
        await self.send_success(
            interaction,
            "Case Created",
            f"Case `{case.case_number}` opened for <@{case.client_id}> with **{case.priority}** priority.",
            footer=footer,
        )

    async def _assign(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.cases.assign_lawyer(
            context.permission_context, options.case_number or "", options.lawyer_id, as_lead=options.lead
        )
        role = "lead attorney" if result.get("is_lead") else "counsel"
        await self.send_result(
            interaction,
            result,
            "Lawyer Assigned",
            f"<@{options.lawyer_id}> joined case `{options.case_number}` as {role}.",
            failure_title="Assignment Failed",
        )

    async def _close(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.cases.close_case(
            context.permission_context, options.case_number or "", options.result or "", notes=options.notes
        )
        await self.send_result(
            interaction,
            result,
            "Case Closed",
            f"Case `{options.case_number}` closed with result **{options.result}**.",
            failure_title="Close Failed",
        )

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        listing = await self.service_container.cases.list_cases(
            context.permission_context, status=options.status, page=options.page
        )
        if not listing["cases"]:
            await self.send_info(interaction, "Cases", "No cases found.", ephemeral=True)
            return

        lines = []
        for case in listing["cases"]:
            lead = f"<@{case.lead_attorney_id}>" if case.lead_attorney_id else "unassigned"
            lines.append(f"`{case.case_number}` **{case.title}** - {case.status}, lead {lead}")
        await self.send_info(
            interaction,
            "Cases",
            "\n".join(lines),
            footer=f"Page {listing['page']}/{listing['total_pages']} - {listing['total']} total",
            ephemeral=True,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(CasesCog(bot))
