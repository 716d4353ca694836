"""
Staff repository: employment records and role counts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import func, select

from src.database.models.enums import StaffStatus
from src.database.models.staffing.staff import Staff
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class StaffRepository(BaseRepository[Staff]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Staff, logger)

    async def find_active_by_user(self, session: AsyncSession, guild_id: int, user_id: int) -> Optional[Staff]:
        return await self.find_one_where(
            session,
            Staff.guild_id == guild_id,
            Staff.user_id == user_id,
            Staff.status == StaffStatus.ACTIVE.value,
        )

    async def find_latest_by_user(self, session: AsyncSession, guild_id: int, user_id: int) -> Optional[Staff]:
        """Most recent record regardless of status."""
        records = await self.find_many_where(
            session,
            Staff.guild_id == guild_id,
            Staff.user_id == user_id,
            order_by=[Staff.hired_at.desc()],
            limit=1,
        )
        return records[0] if records else None

    async def find_by_roblox_username(
        self, session: AsyncSession, guild_id: int, roblox_username: str
    ) -> Optional[Staff]:
        """Active record using this Roblox name (case-insensitive)."""
        return await self.find_one_where(
            session,
            Staff.guild_id == guild_id,
            func.lower(Staff.roblox_username) == roblox_username.lower(),
            Staff.status == StaffStatus.ACTIVE.value,
        )

    async def count_active_by_role(self, session: AsyncSession, guild_id: int, role: str) -> int:
        return await self.count(
            session,
            Staff.guild_id == guild_id,
            Staff.role == role,
            Staff.status == StaffStatus.ACTIVE.value,
        )

    async def find_by_guild(
        self,
        session: AsyncSession,
        guild_id: int,
        status: Optional[str] = None,
        role: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Staff]:
        conditions = [Staff.guild_id == guild_id]
        if status:
            conditions.append(Staff.status == status)
        if role:
            conditions.append(Staff.role == role)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[Staff.hired_at.asc(), Staff.id.asc()],
            limit=limit,
            offset=offset,
        )

    async def count_by_guild(
        self, session: AsyncSession, guild_id: int, status: Optional[str] = None, role: Optional[str] = None
    ) -> int:
        conditions = [Staff.guild_id == guild_id]
        if status:
            conditions.append(Staff.status == status)
        if role:
            conditions.append(Staff.role == role)
        return await self.count(session, *conditions)

    async def get_role_counts(self, session: AsyncSession, guild_id: int) -> Dict[str, int]:
        stmt = (
            select(Staff.role, func.count())
            .where(Staff.guild_id == guild_id, Staff.status == StaffStatus.ACTIVE.value)
            .group_by(Staff.role)
        )
        result = await session.execute(stmt)
        counts = {role: int(count) for role, count in result.all()}
        self.log.debug("Repository.get_role_counts: Staff", extra={"guild_id": guild_id, "roles": len(counts)})
        return counts

    async def find_staff_hierarchy(
        self, session: AsyncSession, guild_id: int, role_order: List[str]
    ) -> Dict[str, List[Staff]]:
        """Active staff grouped by role, in ``role_order`` (highest first)."""
        members = await self.find_by_guild(session, guild_id, status=StaffStatus.ACTIVE.value)
        grouped: Dict[str, List[Staff]] = {role: [] for role in role_order}
        for member in members:
            grouped.setdefault(member.role, []).append(member)
        return grouped
