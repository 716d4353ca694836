"""
JobService - job postings the firm hires from
=============================================

Policies:
- at most one open posting per staff role per guild (checked before
  create and before a role-changing update; not locked, see DESIGN.md)
- a posting's ``limit`` follows the role's configured max count
- application questions are the configured defaults plus any custom
  questions, validated together

Expected failures come back as ``{"success": False, "error": ...}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction
from src.database.models.staffing.job import Job
from src.modules.jobs.repository import JobRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import validate_job_questions, validate_length
from src.modules.staff.roles import StaffRoleHierarchy

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext

UPDATABLE_FIELDS = ("title", "description", "staff_role", "role_id", "questions")


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


class JobService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
        role_hierarchy: Optional[StaffRoleHierarchy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._roles = role_hierarchy or StaffRoleHierarchy.from_config(config_manager)
        self._repo = JobRepository(self.log)

    def _build_questions(self, custom: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """
        Raises:
            ValidationError: If the combined question list is malformed
        """
        defaults = [dict(question) for question in self.get_config("jobs.default_questions", []) or []]
        questions = defaults + [dict(question) for question in custom or []]
        validate_job_questions(questions)
        return questions

    async def create_job(
        self,
        context: PermissionContext,
        title: str,
        description: str,
        staff_role: str,
        role_id: Optional[int] = None,
        custom_questions: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if not self._roles.is_valid_role(staff_role):
            return _failure("Invalid staff role")
        try:
            validate_length(title, "Title", 5, 100)
            validate_length(description, "Description", 20, 2000)
            questions = self._build_questions(custom_questions)
        except ValidationError as exc:
            return _failure(exc.message)

        async with DatabaseService.get_transaction() as session:
            existing = await self._repo.find_open_for_role(session, context.guild_id, staff_role)
            if existing is not None:
                return _failure(
                    f"There is already an open job posting for {staff_role}. "
                    "Close the existing job before creating a new one."
                )

            job = await self._repo.add(
                session,
                Job(
                    guild_id=context.guild_id,
                    title=title.strip(),
                    description=description.strip(),
                    staff_role=staff_role,
                    role_id=role_id,
                    limit=self._roles.get_role_max_count(staff_role),
                    is_open=True,
                    questions=questions,
                    posted_by=context.user_id,
                    application_count=0,
                    hired_count=0,
                ),
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_CREATED,
                actor_id=context.user_id,
                after={"staff_role": staff_role},
                metadata={"job_id": job.id, "title": job.title, "role_id": role_id},
                session=session,
            )

        self.log_operation("create_job", guild_id=context.guild_id, job_id=job.id, staff_role=staff_role)
        await self.emit_event(
            "job.created",
            {"guild_id": context.guild_id, "job_id": job.id, "staff_role": staff_role, "posted_by": context.user_id},
        )
        return {"success": True, "job": job}

    async def update_job(
        self,
        context: PermissionContext,
        job_id: int,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        changes = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}
        unknown = sorted(set(updates) - set(UPDATABLE_FIELDS) - {"custom_questions"})
        if unknown:
            return _failure(f"Cannot update fields: {', '.join(unknown)}")

        new_role = changes.get("staff_role")
        if new_role is not None and not self._roles.is_valid_role(new_role):
            return _failure("Invalid staff role")
        try:
            if "title" in changes:
                validate_length(changes["title"], "Title", 5, 100)
            if "description" in changes:
                validate_length(changes["description"], "Description", 20, 2000)
            if "custom_questions" in updates:
                changes["questions"] = self._build_questions(updates["custom_questions"])
            elif "questions" in changes:
                validate_job_questions(changes["questions"])
        except ValidationError as exc:
            return _failure(exc.message)

        async with DatabaseService.get_transaction() as session:
            job = await self._repo.find_in_guild(session, context.guild_id, job_id)
            if job is None:
                return _failure("Job not found")

            before_role = job.staff_role
            if new_role is not None and new_role != job.staff_role:
                conflict = await self._repo.find_open_for_role(session, context.guild_id, new_role, exclude_id=job.id)
                if conflict is not None:
                    return _failure(f"There is already an open job posting for {new_role}")
                changes["limit"] = self._roles.get_role_max_count(new_role)

            updated = await self._repo.update(session, job.id, changes)
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_UPDATED,
                actor_id=context.user_id,
                before={"staff_role": before_role},
                after={"staff_role": updated.staff_role if updated else before_role},
                metadata={"job_id": job_id, "changes": sorted(changes)},
                session=session,
            )

        self.log_operation("update_job", guild_id=context.guild_id, job_id=job_id, fields=sorted(changes))
        return {"success": True, "job": updated}

    async def close_job(self, context: PermissionContext, job_id: int) -> Dict[str, Any]:
        async with DatabaseService.get_transaction() as session:
            job = await self._repo.find_in_guild(session, context.guild_id, job_id)
            if job is None or not job.is_open:
                return _failure("Job not found or already closed")

            updated = await self._repo.update(
                session,
                job.id,
                {"is_open": False, "closed_at": utc_now(), "closed_by": context.user_id},
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_CLOSED,
                actor_id=context.user_id,
                before={"status": "open"},
                after={"status": "closed"},
                metadata={"job_id": job_id, "title": job.title, "staff_role": job.staff_role},
                session=session,
            )

        self.log_operation("close_job", guild_id=context.guild_id, job_id=job_id)
        await self.emit_event(
            "job.closed",
            {"guild_id": context.guild_id, "job_id": job_id, "staff_role": job.staff_role, "closed_by": context.user_id},
        )
        return {"success": True, "job": updated}

    async def remove_job(self, context: PermissionContext, job_id: int) -> Dict[str, Any]:
        async with DatabaseService.get_transaction() as session:
            job = await self._repo.find_in_guild(session, context.guild_id, job_id)
            if job is None:
                return _failure("Job not found")

            await self._repo.delete(session, job.id)
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_REMOVED,
                actor_id=context.user_id,
                before={"status": "open" if job.is_open else "closed"},
                after={"status": "removed"},
                metadata={"job_id": job_id, "title": job.title, "staff_role": job.staff_role},
                session=session,
            )

        self.log_operation("remove_job", guild_id=context.guild_id, job_id=job_id)
        return {"success": True}

    async def list_jobs(self, context: PermissionContext, open_only: bool = True, page: int = 1) -> Dict[str, Any]:
        page_size = int(self.get_config("jobs.page_size", 5))
        page = max(page, 1)
        async with DatabaseService.get_transaction() as session:
            total = await self._repo.count_by_guild(session, context.guild_id, open_only=open_only)
            jobs = await self._repo.find_by_guild(
                session, context.guild_id, open_only=open_only, limit=page_size, offset=(page - 1) * page_size
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_LIST_VIEWED,
                actor_id=context.user_id,
                metadata={"open_only": open_only, "page": page, "result_count": len(jobs)},
                session=session,
            )
        return {
            "jobs": jobs,
            "total": total,
            "page": page,
            "total_pages": max((total + page_size - 1) // page_size, 1),
        }

    async def get_job_details(self, context: PermissionContext, job_id: int) -> Optional[Job]:
        async with DatabaseService.get_transaction() as session:
            job = await self._repo.find_in_guild(session, context.guild_id, job_id)
            if job is None:
                return None
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.JOB_INFO_VIEWED,
                actor_id=context.user_id,
                metadata={"job_id": job_id, "title": job.title},
                session=session,
            )
        return job

    async def get_job_statistics(self, context: PermissionContext) -> Dict[str, Any]:
        async with DatabaseService.get_session() as session:
            jobs = await self._repo.find_by_guild(session, context.guild_id)

        by_role: Dict[str, int] = {}
        for job in jobs:
            by_role[job.staff_role] = by_role.get(job.staff_role, 0) + 1
        open_jobs = sum(1 for job in jobs if job.is_open)
        return {
            "total_jobs": len(jobs),
            "open_jobs": open_jobs,
            "closed_jobs": len(jobs) - open_jobs,
            "total_applications": sum(job.application_count or 0 for job in jobs),
            "total_hired": sum(job.hired_count or 0 for job in jobs),
            "jobs_by_role": by_role,
        }
