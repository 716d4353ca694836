"""
ApplicationService - candidates applying to open job postings
=============================================================

Flow: ``/job apply`` collects answers to the posting's questions and stores
a pending Application. An HR reviewer then accepts or rejects it; accepting
hires the applicant into the posting's staff role through StaffService, so
role limits and username rules apply exactly as they do for ``/staff hire``.

Policies:
- only open postings take applications
- active staff cannot apply
- one pending application per applicant per posting
- reviewers cannot review their own application

Expected failures come back as ``{"success": False, "error": ...}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import discord

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import ApplicationStatus, AuditAction
from src.database.models.staffing.application import Application
from src.database.models.staffing.job import Job
from src.modules.jobs.repository import ApplicationRepository, JobRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.validators import roblox_username_error
from src.modules.staff.repository import StaffRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext
    from src.modules.staff.service import StaffService

USERNAME_QUESTION_ID = "roblox_username"
# A Discord modal holds five inputs; later questions are never asked.
MAX_FORM_QUESTIONS = 5


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def answer_errors(questions: List[Mapping[str, Any]], answers: Mapping[str, str]) -> List[str]:
    """
    Problems with ``answers`` (question id -> text) against ``questions``.

    >>> answer_errors([{"id": "age", "question": "Age?", "type": "number", "min_value": 13}], {"age": "9"})
    ['Age? must be at least 13']
    """
    errors: List[str] = []
    for question in questions:
        label = question.get("question") or question.get("id")
        answer = (answers.get(question["id"]) or "").strip()
        if not answer:
            if question.get("required", True):
                errors.append(f"{label} is required")
            continue

        max_length = question.get("max_length")
        if max_length and len(answer) > max_length:
            errors.append(f"{label} must be at most {max_length} characters")

        kind = question.get("type")
        if kind == "number":
            try:
                number = float(answer)
            except ValueError:
                errors.append(f"{label} must be a number")
                continue
            if question.get("min_value") is not None and number < question["min_value"]:
                errors.append(f"{label} must be at least {question['min_value']}")
            if question.get("max_value") is not None and number > question["max_value"]:
                errors.append(f"{label} must be at most {question['max_value']}")
        elif kind == "choice":
            choices = [str(choice).lower() for choice in question.get("choices") or []]
            if answer.lower() not in choices:
                errors.append(f"{label} must be one of: {', '.join(question.get('choices') or [])}")
    return errors


class ApplicationService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
        staff_service: StaffService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._staff = staff_service
        self._repo = ApplicationRepository(self.log)
        self._job_repo = JobRepository(self.log)
        self._staff_repo = StaffRepository(self.log)

    async def get_open_job(self, guild_id: int, job_id: int) -> Optional[Job]:
        async with DatabaseService.get_session() as session:
            job = await self._job_repo.find_in_guild(session, guild_id, job_id)
        return job if job is not None and job.is_open else None

    async def submit_application(
        self,
        context: PermissionContext,
        job_id: int,
        answers: Mapping[str, str],
    ) -> Dict[str, Any]:
        async with DatabaseService.get_transaction() as session:
            job = await self._job_repo.find_in_guild(session, context.guild_id, job_id)
            if job is None or not job.is_open:
                return _failure("Job not found or no longer accepting applications")

            if await self._staff_repo.find_active_by_user(session, context.guild_id, context.user_id):
                return _failure("Active staff members cannot apply for positions")

            if await self._repo.find_pending_for_applicant(session, context.guild_id, job_id, context.user_id):
                return _failure("You already have a pending application for this position")

            questions = list(job.questions or [])[:MAX_FORM_QUESTIONS]
            errors = answer_errors(questions, answers)
            username = (answers.get(USERNAME_QUESTION_ID) or "").strip()
            username_error = roblox_username_error(username)
            if username_error:
                errors.append(username_error)
            if errors:
                return _failure("; ".join(errors))

            application = await self._repo.add(
                session,
                Application(
                    guild_id=context.guild_id,
                    job_id=job.id,
                    applicant_id=context.user_id,
                    roblox_username=username,
                    answers=[
                        {
                            "question_id": question["id"],
                            "question": question.get("question", ""),
                            "answer": (answers.get(question["id"]) or "").strip(),
                        }
                        for question in questions
                    ],
                    status=ApplicationStatus.PENDING.value,
                ),
            )
            await self._job_repo.update(session, job.id, {"application_count": (job.application_count or 0) + 1})
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.APPLICATION_SUBMITTED,
                actor_id=context.user_id,
                metadata={"application_id": application.id, "job_id": job.id, "staff_role": job.staff_role},
                session=session,
            )

        self.log_operation("submit_application", guild_id=context.guild_id, job_id=job_id, application_id=application.id)
        await self.emit_event(
            "application.submitted",
            {
                "guild_id": context.guild_id,
                "application_id": application.id,
                "job_id": job_id,
                "applicant_id": context.user_id,
            },
        )
        return {"success": True, "application": application, "job": job}

    async def list_applications(
        self,
        context: PermissionContext,
        job_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: Optional[int] = 25,
    ) -> List[Application]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_filtered(session, context.guild_id, job_id=job_id, status=status, limit=limit)

    async def review_application(
        self,
        context: PermissionContext,
        application_id: int,
        accept: bool,
        reason: Optional[str] = None,
        guild: Optional[discord.Guild] = None,
    ) -> Dict[str, Any]:
        """
        Accept (and hire) or reject a pending application.

        The hire commits in its own transaction first; a failed hire leaves
        the application pending so the reviewer can retry or reject it.
        """
        async with DatabaseService.get_session() as session:
            application = await self._repo.find_in_guild(session, context.guild_id, application_id)
            job = (
                await self._job_repo.find_in_guild(session, context.guild_id, application.job_id)
                if application is not None
                else None
            )

        if application is None:
            return _failure("Application not found")
        if application.status != ApplicationStatus.PENDING.value:
            return _failure(f"Application has already been {application.status}")
        if application.applicant_id == context.user_id:
            return _failure("You cannot review your own application")
        if accept and job is None:
            return _failure("The job for this application no longer exists")

        hired = None
        if accept:
            hire = await self._staff.hire_staff(
                context,
                application.applicant_id,
                application.roblox_username,
                job.staff_role,
                reason=reason or f"Hired through application #{application.id}",
                guild=guild,
            )
            if not hire["success"]:
                return hire
            hired = hire["staff"]

        status = ApplicationStatus.ACCEPTED if accept else ApplicationStatus.REJECTED
        async with DatabaseService.get_transaction() as session:
            locked = await self._repo.find_in_guild(session, context.guild_id, application_id, for_update=True)
            if locked is None or locked.status != ApplicationStatus.PENDING.value:
                return _failure("Application was reviewed by someone else")

            updated = await self._repo.update(
                session,
                locked.id,
                {
                    "status": status.value,
                    "reviewed_by": context.user_id,
                    "reviewed_at": utc_now(),
                    "review_reason": reason,
                },
            )
            if accept:
                await self._job_repo.update(session, job.id, {"hired_count": (job.hired_count or 0) + 1})
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.APPLICATION_ACCEPTED if accept else AuditAction.APPLICATION_REJECTED,
                actor_id=context.user_id,
                target_id=application.applicant_id,
                before={"status": ApplicationStatus.PENDING.value},
                after={"status": status.value},
                reason=reason,
                metadata={"application_id": application_id, "job_id": application.job_id},
                session=session,
            )

        self.log_operation(
            "review_application", guild_id=context.guild_id, application_id=application_id, status=status.value
        )
        await self.emit_event(
            "application.reviewed",
            {
                "guild_id": context.guild_id,
                "application_id": application_id,
                "applicant_id": application.applicant_id,
                "status": status.value,
                "reviewed_by": context.user_id,
            },
        )
        return {"success": True, "application": updated, "staff": hired}

    async def get_application_stats(self, context: PermissionContext, job_id: Optional[int] = None) -> Dict[str, int]:
        applications = await self.list_applications(context, job_id=job_id, limit=None)
        stats = {"total": len(applications)}
        for status in (ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
            stats[status.value] = sum(1 for application in applications if application.status == status.value)
        return stats
