"""
Job and Application repositories.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from src.database.models.enums import ApplicationStatus
from src.database.models.staffing.application import Application
from src.database.models.staffing.job import Job
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class JobRepository(BaseRepository[Job]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Job, logger)

    async def find_in_guild(self, session: AsyncSession, guild_id: int, job_id: int) -> Optional[Job]:
        return await self.find_one_where(session, Job.guild_id == guild_id, Job.id == job_id)

    async def find_open_for_role(
        self,
        session: AsyncSession,
        guild_id: int,
        staff_role: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[Job]:
        """The open posting for ``staff_role``, ignoring ``exclude_id``."""
        conditions = [Job.guild_id == guild_id, Job.staff_role == staff_role, Job.is_open.is_(True)]
        if exclude_id is not None:
            conditions.append(Job.id != exclude_id)
        return await self.find_one_where(session, *conditions)

    async def find_by_guild(
        self,
        session: AsyncSession,
        guild_id: int,
        open_only: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Job]:
        conditions = [Job.guild_id == guild_id]
        if open_only:
            conditions.append(Job.is_open.is_(True))
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[Job.created_at.desc(), Job.id.desc()],
            limit=limit,
            offset=offset,
        )

    async def count_by_guild(self, session: AsyncSession, guild_id: int, open_only: bool = False) -> int:
        conditions = [Job.guild_id == guild_id]
        if open_only:
            conditions.append(Job.is_open.is_(True))
        return await self.count(session, *conditions)

    async def find_needing_role_cleanup(self, session: AsyncSession, guild_id: int) -> List[Job]:
        """Closed jobs that still own a Discord role not yet cleaned up."""
        return await self.find_many_where(
            session,
            Job.guild_id == guild_id,
            Job.is_open.is_(False),
            Job.role_id.is_not(None),
            Job.role_cleanup_completed.is_(False),
            order_by=[Job.closed_at.asc()],
        )

    async def find_open_older_than(self, session: AsyncSession, guild_id: int, cutoff: datetime) -> List[Job]:
        return await self.find_many_where(
            session,
            Job.guild_id == guild_id,
            Job.is_open.is_(True),
            Job.created_at < cutoff,
            order_by=[Job.created_at.asc()],
        )

    async def count_open_for_role_id(
        self, session: AsyncSession, guild_id: int, role_id: int, exclude_id: Optional[int] = None
    ) -> int:
        """Open jobs (other than ``exclude_id``) still granting ``role_id``."""
        conditions = [Job.guild_id == guild_id, Job.role_id == role_id, Job.is_open.is_(True)]
        if exclude_id is not None:
            conditions.append(Job.id != exclude_id)
        return await self.count(session, *conditions)


class ApplicationRepository(BaseRepository[Application]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Application, logger)

    async def find_by_guild(self, session: AsyncSession, guild_id: int) -> List[Application]:
        return await self.find_many_where(
            session, Application.guild_id == guild_id, order_by=[Application.created_at.asc()]
        )

    async def find_by_job(self, session: AsyncSession, guild_id: int, job_id: int) -> List[Application]:
        return await self.find_many_where(
            session,
            Application.guild_id == guild_id,
            Application.job_id == job_id,
            order_by=[Application.created_at.asc()],
        )

    async def count_pending_for_job(self, session: AsyncSession, guild_id: int, job_id: int) -> int:
        return await self.count(
            session,
            Application.guild_id == guild_id,
            Application.job_id == job_id,
            Application.status == ApplicationStatus.PENDING.value,
        )

    async def find_in_guild(
        self, session: AsyncSession, guild_id: int, application_id: int, for_update: bool = False
    ) -> Optional[Application]:
        return await self.find_one_where(
            session,
            Application.guild_id == guild_id,
            Application.id == application_id,
            for_update=for_update,
        )

    async def find_pending_for_applicant(
        self, session: AsyncSession, guild_id: int, job_id: int, applicant_id: int
    ) -> Optional[Application]:
        return await self.find_one_where(
            session,
            Application.guild_id == guild_id,
            Application.job_id == job_id,
            Application.applicant_id == applicant_id,
            Application.status == ApplicationStatus.PENDING.value,
        )

    async def find_filtered(
        self,
        session: AsyncSession,
        guild_id: int,
        job_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Application]:
        conditions = [Application.guild_id == guild_id]
        if job_id is not None:
            conditions.append(Application.job_id == job_id)
        if status:
            conditions.append(Application.status == status)
        return await self.find_many_where(
            session, *conditions, order_by=[Application.created_at.desc()], limit=limit
        )
