"""
/job command group: posting, editing, closing and listing openings, the
application flow (apply, list, review), and the Discord role cleanup that
follows a closed posting.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.database.models.enums import ApplicationStatus
from src.features.staff.staff_cog import ROLE_CHOICES
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import EntityStep, PermissionStep, ValidatorPipeline
from src.ui.embeds import DESCRIPTION_LIMIT, EmbedFactory, truncate
from src.ui.views.application import JobApplicationModal

APPLICATION_STATUS_CHOICES = [
    app_commands.Choice(name=status.value.title(), value=status.value) for status in ApplicationStatus
]
DECISION_CHOICES = [
    app_commands.Choice(name="Accept", value="accept"),
    app_commands.Choice(name="Reject", value="reject"),
]
LIST_LIMIT = 20


class JobsCog(BaseCog):
    POST = ValidatorPipeline(PermissionStep())
    MUTATE = ValidatorPipeline(PermissionStep(), EntityStep())
    VIEW = ValidatorPipeline()
    CLEANUP = ValidatorPipeline(PermissionStep("admin"))
    HR = ValidatorPipeline(PermissionStep("hr"))
    REVIEW = ValidatorPipeline(PermissionStep("hr"), EntityStep())

    job = app_commands.Group(name="job", description="Manage job postings", guild_only=True)

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, "JobsCog")

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        for guild in self.bot.guilds:
            self.service_container.job_cleanup.schedule_automatic_cleanup(guild)

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        self.service_container.job_cleanup.schedule_automatic_cleanup(guild)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        await self.service_container.job_cleanup.stop_automatic_cleanup(guild.id)

    @job.command(name="post", description="Open a job posting for a staff role")
    @app_commands.describe(
        title="Posting title",
        description="What the role involves",
        role="Staff role being hired for",
        discord_role="Discord role granted to hires",
    )
    @app_commands.choices(role=ROLE_CHOICES)
    async def post(
        self,
        interaction: discord.Interaction,
        title: app_commands.Range[str, 5, 100],
        description: app_commands.Range[str, 20, 2000],
        role: str,
        discord_role: Optional[discord.Role] = None,
    ) -> None:
        await self.run_validated(interaction, self.POST, self._post)

    @job.command(name="close", description="Close a job posting")
    @app_commands.describe(job_id="ID of the posting")
    async def close(self, interaction: discord.Interaction, job_id: int) -> None:
        await self.run_validated(interaction, self.MUTATE, self._close)

    @job.command(name="remove", description="Delete a job posting")
    @app_commands.describe(job_id="ID of the posting")
    async def remove(self, interaction: discord.Interaction, job_id: int) -> None:
        await self.run_validated(interaction, self.MUTATE, self._remove)

    @job.command(name="list", description="List job postings")
    @app_commands.describe(open_only="Only show open postings", page="Page number")
    async def list_jobs(
        self,
        interaction: discord.Interaction,
        open_only: bool = True,
        page: app_commands.Range[int, 1, 100] = 1,
    ) -> None:
        await self.run_validated(interaction, self.VIEW, self._list)

    @job.command(name="info", description="Show a job posting")
    @app_commands.describe(job_id="ID of the posting")
    async def info(self, interaction: discord.Interaction, job_id: int) -> None:
        await self.run_validated(interaction, self.VIEW, self._info)

    @job.command(name="cleanup", description="Remove Discord roles of closed postings")
    @app_commands.describe(dry_run="Report without changing anything", expired="Also close stale postings")
    async def cleanup(self, interaction: discord.Interaction, dry_run: bool = False, expired: bool = False) -> None:
        await self.run_validated(interaction, self.CLEANUP, self._cleanup)

    @job.command(name="edit", description="Change an existing job posting")
    @app_commands.describe(
        job_id="ID of the posting",
        title="New title",
        description="New description",
        role="New staff role",
        discord_role="New Discord role granted to hires",
    )
    @app_commands.choices(role=ROLE_CHOICES)
    async def edit(
        self,
        interaction: discord.Interaction,
        job_id: int,
        title: Optional[app_commands.Range[str, 5, 100]] = None,
        description: Optional[app_commands.Range[str, 20, 2000]] = None,
        role: Optional[str] = None,
        discord_role: Optional[discord.Role] = None,
    ) -> None:
        await self.run_validated(interaction, self.POST, self._edit)

    @job.command(name="stats", description="Posting and application statistics")
    async def stats(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.POST, self._stats)

    @job.command(name="cleanup-report", description="Show postings waiting for cleanup")
    async def cleanup_report(self, interaction: discord.Interaction) -> None:
        await self.run_validated(interaction, self.CLEANUP, self._cleanup_report)

    @job.command(name="apply", description="Apply for an open position")
    @app_commands.describe(job_id="ID of the posting (see /job list)")
    async def apply(self, interaction: discord.Interaction, job_id: int) -> None:
        await self.run_validated(interaction, self.VIEW, self._apply)

    @job.command(name="applications", description="List applications")
    @app_commands.describe(job_id="Only this posting", status="Only this status")
    @app_commands.choices(status=APPLICATION_STATUS_CHOICES)
    async def applications(
        self, interaction: discord.Interaction, job_id: Optional[int] = None, status: Optional[str] = None
    ) -> None:
        await self.run_validated(interaction, self.HR, self._applications)

    @job.command(name="review", description="Accept or reject an application")
    @app_commands.describe(application_id="ID of the application", decision="Outcome", reason="Shown in the audit log")
    @app_commands.choices(decision=DECISION_CHOICES)
    async def review(
        self,
        interaction: discord.Interaction,
        application_id: int,
        decision: str,
        reason: Optional[app_commands.Range[str, 1, 500]] = None,
    ) -> None:
        await self.run_validated(interaction, self.REVIEW, self._review)

    # ------------------------------------------------------------------ #

    async def _post(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        result = await self.service_container.jobs.create_job(
            context.permission_context,
            options.title or "",
            options.description or "",
            options.role or "",
            role_id=options.discord_role_id,
        )
        job = result.get("job")
        await self.send_result(
            interaction,
            result,
            "Job Posted",
            f"**{options.title}** is now open for **{options.role}** (ID `{job.id if job else '?'}`).",
            failure_title="Posting Failed",
        )

    async def _close(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        job_id = context.options.job_id
        result = await self.service_container.jobs.close_job(context.permission_context, job_id)
        await self.send_result(
            interaction, result, "Job Closed", f"Job `{job_id}` is no longer accepting applications."
        )

    async def _remove(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        job_id = context.options.job_id
        result = await self.service_container.jobs.remove_job(context.permission_context, job_id)
        await self.send_result(interaction, result, "Job Removed", f"Job `{job_id}` has been deleted.")

    async def _list(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        listing = await self.service_container.jobs.list_jobs(
            context.permission_context, open_only=options.open_only, page=options.page
        )
        if not listing["jobs"]:
            await self.send_info(interaction, "Job Postings", "No job postings found.", ephemeral=True)
            return

        lines = [
            f"`{job.id}` **{job.title}** - {job.staff_role} ({'open' if job.is_open else 'closed'})"
            for job in listing["jobs"]
        ]
        await self.send_info(
            interaction,
            "Job Postings",
            "\n".join(lines),
            footer=f"Page {listing['page']}/{listing['total_pages']} - {listing['total']} total",
        )

    async def _info(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        job = await self.service_container.jobs.get_job_details(context.permission_context, context.options.job_id)
        if job is None:
            await self.send_error(interaction, "Not Found", "No job posting with that ID exists in this server.")
            return

        embed = EmbedFactory.key_values(
            job.title,
            {
                "Role": job.staff_role,
                "Status": "Open" if job.is_open else "Closed",
                "Openings": job.limit if job.limit is not None else "Unlimited",
                "Applications": job.application_count,
                "Hired": job.hired_count,
                "Questions": len(job.questions or []),
                "Posted By": f"<@{job.posted_by}>",
            },
            description=truncate(job.description, DESCRIPTION_LIMIT),
        )
        await self.respond(interaction, embed=embed)

    async def _cleanup(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        await interaction.response.defer(ephemeral=True, thinking=True)
        cleanup = self.service_container.job_cleanup

        roles = await cleanup.cleanup_job_roles(interaction.guild, dry_run=options.dry_run)
        values = {
            "Jobs Processed": roles.jobs_processed,
            "Roles Removed": roles.roles_removed,
        }
        errors = list(roles.errors)
        if options.expired:
            expired = await cleanup.cleanup_expired_jobs(context.guild_id, dry_run=options.dry_run)
            values["Expired Closed"] = expired.jobs_closed
            errors.extend(expired.errors)
        values["Errors"] = len(errors)

        title = "Cleanup Preview" if options.dry_run else "Cleanup Complete"
        description = "\n".join(f"- {error}" for error in errors[:10])
        await self.respond(interaction, embed=EmbedFactory.key_values(title, values, description), ephemeral=True)

    async def _edit(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        updates = options.updates()
        if not updates:
            await self.send_error(interaction, "Nothing to Change", "Provide at least one field to update.")
            return
        result = await self.service_container.jobs.update_job(context.permission_context, options.job_id, updates)
        await self.send_result(
            interaction,
            result,
            "Job Updated",
            f"Job `{options.job_id}` updated: {', '.join(sorted(updates))}.",
            failure_title="Update Failed",
        )

    async def _stats(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        stats = await self.service_container.jobs.get_job_statistics(context.permission_context)
        applications = await self.service_container.applications.get_application_stats(context.permission_context)
        values = {
            "Total Jobs": stats["total_jobs"],
            "Open": stats["open_jobs"],
            "Closed": stats["closed_jobs"],
            "Hired": stats["total_hired"],
            "Applications": applications["total"],
            "Pending Review": applications["pending"],
            "Accepted": applications["accepted"],
            "Rejected": applications["rejected"],
        }
        by_role = "\n".join(f"- {role}: {count}" for role, count in sorted(stats["jobs_by_role"].items()))
        await self.respond(
            interaction, embed=EmbedFactory.key_values("Job Statistics", values, by_role), ephemeral=True
        )

    async def _cleanup_report(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        report = await self.service_container.job_cleanup.get_cleanup_report(context.guild_id)
        values = {
            "Total Jobs": report["total_jobs"],
            "Open": report["open_jobs"],
            "Closed": report["closed_jobs"],
            "Roles To Remove": report["jobs_needing_role_cleanup"],
            f"Open Over {report['max_days_open']} Days": report["expired_jobs"],
        }
        await self.respond(interaction, embed=EmbedFactory.key_values("Cleanup Report", values), ephemeral=True)

    async def _apply(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        job_id = context.options.job_id
        applications = self.service_container.applications
        job = await applications.get_open_job(context.guild_id, job_id)
        if job is None:
            await self.send_error(interaction, "Not Available", "That posting does not exist or is closed.")
            return

        async def on_answers(modal_interaction: discord.Interaction, answers: dict) -> None:
            result = await applications.submit_application(context.permission_context, job_id, answers)
            if not result["success"]:
                await self.send_error(modal_interaction, "Application Not Submitted", result["error"])
                return
            await self.respond(
                modal_interaction,
                embed=EmbedFactory.success(
                    "Application Submitted",
                    f"Your application `#{result['application'].id}` for **{job.title}** is awaiting review.",
                ),
                ephemeral=True,
            )

        await interaction.response.send_modal(JobApplicationModal(job.title, job.questions or [], on_answers))

    async def _applications(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        applications = await self.service_container.applications.list_applications(
            context.permission_context, job_id=options.job_id, status=options.status, limit=LIST_LIMIT
        )
        if not applications:
            await self.send_info(interaction, "Applications", "No applications found.", ephemeral=True)
            return

        lines = [
            f"`#{application.id}` <@{application.applicant_id}> ({application.roblox_username}) "
            f"- job `{application.job_id}` - {application.status}"
            for application in applications
        ]
        await self.send_info(interaction, "Applications", "\n".join(lines), ephemeral=True)

    async def _review(
        self, interaction: discord.Interaction, context: CommandValidationContext, bypass_reason: Optional[str]
    ) -> None:
        options = context.options
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.service_container.applications.review_application(
            context.permission_context,
            options.application_id,
            accept=options.accept,
            reason=options.reason,
            guild=interaction.guild,
        )
        if not result["success"]:
            await self.send_error(interaction, "Review Failed", result["error"])
            return

        application = result["application"]
        if options.accept:
            description = f"<@{application.applicant_id}> was accepted and hired as **{result['staff'].role}**."
        else:
            description = f"Application `#{application.id}` from <@{application.applicant_id}> was rejected."
        await self.send_success(interaction, "Application Reviewed", description)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(JobsCog(bot))
