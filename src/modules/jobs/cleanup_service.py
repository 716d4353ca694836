"""
JobCleanupService - retire Discord roles and stale postings
===========================================================

Closed jobs can still own a Discord role. Cleanup deletes that role once
no open job uses it and no member holds it, then marks the job cleaned.
Open jobs older than ``jobs.max_days_open`` are closed by the system.

Every pass reports what it did instead of raising; per-job failures are
collected in ``errors`` and the pass continues.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import discord

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction
from src.modules.audit.service import SYSTEM_ACTOR_ID
from src.modules.jobs.repository import JobRepository
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService


@dataclass
class CleanupResult:
    success: bool = True
    jobs_processed: int = 0
    roles_removed: int = 0
    jobs_closed: int = 0
    errors: List[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.errors.append(message)
        self.success = False


class JobCleanupService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._repo = JobRepository(self.log)
        self._tasks: Dict[int, asyncio.Task] = {}

    async def find_jobs_needing_cleanup(self, guild_id: int) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            jobs = await self._repo.find_needing_role_cleanup(session, guild_id)
        return [
            {
                "id": job.id,
                "title": job.title,
                "role_id": job.role_id,
                "closed_at": job.closed_at,
                "closed_by": job.closed_by,
            }
            for job in jobs
        ]

    async def _mark_cleaned(self, guild_id: int, job: Dict[str, Any], reason: str, role_name: Optional[str] = None) -> None:
        async with DatabaseService.get_transaction() as session:
            await self._repo.update(
                session, job["id"], {"role_cleanup_completed": True, "role_cleanup_at": utc_now()}
            )
            await self._audit.log_action(
                guild_id=guild_id,
                action=AuditAction.JOB_REMOVED,
                actor_id=SYSTEM_ACTOR_ID,
                before={"status": "cleanup_needed"},
                after={"status": "cleanup_complete"},
                metadata={
                    "job_id": job["id"],
                    "title": job["title"],
                    "role_id": job["role_id"],
                    "role_name": role_name,
                    "reason": reason,
                },
                session=session,
            )

    async def _role_in_use(self, guild_id: int, role_id: int, job_id: int) -> bool:
        async with DatabaseService.get_session() as session:
            return await self._repo.count_open_for_role_id(session, guild_id, role_id, exclude_id=job_id) > 0

    async def cleanup_job_roles(self, guild: discord.Guild, dry_run: bool = False) -> CleanupResult:
        result = CleanupResult()
        try:
            pending = await self.find_jobs_needing_cleanup(guild.id)
        except Exception as exc:
            self.log_error("cleanup_job_roles", exc, guild_id=guild.id)
            result.fail(f"General cleanup error: {exc}")
            return result

        if not pending:
            self.log.info("No jobs need role cleanup", extra={"guild_id": guild.id})
            return result

        for job in pending:
            result.jobs_processed += 1
            try:
                role = guild.get_role(job["role_id"])
                if role is None:
                    if not dry_run:
                        await self._mark_cleaned(guild.id, job, "role_already_deleted")
                    continue

                if await self._role_in_use(guild.id, job["role_id"], job["id"]):
                    result.fail(f'Role "{role.name}" is still in use by other jobs')
                    continue
                if len(role.members) > 0:
                    result.fail(f'Role "{role.name}" still has {len(role.members)} members')
                    continue

                if dry_run:
                    self.log.info(f'[DRY RUN] Would delete role "{role.name}" for job "{job["title"]}"')
                    result.roles_removed += 1
                    continue

                await role.delete(reason=f"Automatic cleanup for closed job: {job['title']}")
                result.roles_removed += 1
                await self._mark_cleaned(guild.id, job, "closed_job", role_name=role.name)
            except discord.HTTPException as exc:
                result.fail(f"Failed to delete role for job \"{job['title']}\": {exc}")
                self.log_side_effect_failure("job_role_delete", exc, guild_id=guild.id, job_id=job["id"])
            except Exception as exc:
                result.fail(f"Error processing job \"{job['title']}\": {exc}")
                self.log_error("cleanup_job_roles", exc, guild_id=guild.id, job_id=job["id"])

        self.log.info(
            "Role cleanup completed",
            extra={
                "guild_id": guild.id,
                "processed": result.jobs_processed,
                "removed": result.roles_removed,
                "errors": len(result.errors),
                "dry_run": dry_run,
            },
        )
        return result

    async def cleanup_expired_jobs(
        self,
        guild_id: int,
        max_days_open: Optional[int] = None,
        dry_run: bool = False,
    ) -> CleanupResult:
        """Close open postings older than ``max_days_open`` days."""
        days = int(max_days_open if max_days_open is not None else self.get_config("jobs.max_days_open", 30))
        cutoff = utc_now() - timedelta(days=days)
        result = CleanupResult()

        async with DatabaseService.get_session() as session:
            expired = await self._repo.find_open_older_than(session, guild_id, cutoff)

        for job in expired:
            result.jobs_processed += 1
            if dry_run:
                result.jobs_closed += 1
                continue
            try:
                async with DatabaseService.get_transaction() as session:
                    await self._repo.update(
                        session, job.id, {"is_open": False, "closed_at": utc_now(), "closed_by": SYSTEM_ACTOR_ID}
                    )
                    await self._audit.log_action(
                        guild_id=guild_id,
                        action=AuditAction.JOB_CLOSED,
                        actor_id=SYSTEM_ACTOR_ID,
                        before={"status": "open"},
                        after={"status": "closed"},
                        reason=f"Automatically closed after {days} days",
                        metadata={"job_id": job.id, "title": job.title},
                        session=session,
                    )
                result.jobs_closed += 1
            except Exception as exc:
                result.fail(f'Failed to close expired job "{job.title}": {exc}')
                self.log_error("cleanup_expired_jobs", exc, guild_id=guild_id, job_id=job.id)

        self.log_operation(
            "cleanup_expired_jobs", guild_id=guild_id, closed=result.jobs_closed, dry_run=dry_run, max_days_open=days
        )
        return result

    async def get_cleanup_report(self, guild_id: int) -> Dict[str, Any]:
        days = int(self.get_config("jobs.max_days_open", 30))
        async with DatabaseService.get_session() as session:
            needing_cleanup = await self._repo.find_needing_role_cleanup(session, guild_id)
            expired = await self._repo.find_open_older_than(session, guild_id, utc_now() - timedelta(days=days))
            open_jobs = await self._repo.count_by_guild(session, guild_id, open_only=True)
            total_jobs = await self._repo.count_by_guild(session, guild_id)
        return {
            "total_jobs": total_jobs,
            "open_jobs": open_jobs,
            "closed_jobs": total_jobs - open_jobs,
            "jobs_needing_role_cleanup": len(needing_cleanup),
            "expired_jobs": len(expired),
            "max_days_open": days,
        }

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    def schedule_automatic_cleanup(self, guild: discord.Guild, interval_hours: Optional[float] = None) -> asyncio.Task:
        """Run role cleanup now and every ``interval_hours``; one task per guild."""
        existing = self._tasks.get(guild.id)
        if existing is not None and not existing.done():
            return existing

        hours = float(interval_hours if interval_hours is not None else self.get_config("jobs.cleanup_interval_hours", 24))
        task = asyncio.create_task(self._cleanup_loop(guild, hours * 3600))
        self._tasks[guild.id] = task
        self.log.info("Scheduled automatic role cleanup", extra={"guild_id": guild.id, "interval_hours": hours})
        return task

    async def _cleanup_loop(self, guild: discord.Guild, interval_seconds: float) -> None:
        while True:
            try:
                result = await self.cleanup_job_roles(guild)
                if result.errors:
                    self.log.warning(
                        "Scheduled cleanup finished with errors",
                        extra={"guild_id": guild.id, "errors": result.errors},
                    )
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                self.log.debug("Cleanup loop cancelled", extra={"guild_id": guild.id})
                break
            except Exception as exc:
                self.log_error("scheduled_cleanup", exc, guild_id=guild.id)
                await asyncio.sleep(interval_seconds)

    async def stop_automatic_cleanup(self, guild_id: Optional[int] = None) -> None:
        guild_ids = [guild_id] if guild_id is not None else list(self._tasks)
        for key in guild_ids:
            task = self._tasks.pop(key, None)
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
