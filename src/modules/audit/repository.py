"""
Audit log repository.

Rows are append-only; the only queries are filtered searches ordered
newest first.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from src.database.models.guild.audit_log import AuditLog
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class AuditLogRepository(BaseRepository[AuditLog]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(AuditLog, logger)

    async def find_by_filters(
        self,
        session: AsyncSession,
        guild_id: int,
        action: Optional[str] = None,
        actor_id: Optional[int] = None,
        target_id: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AuditLog]:
        conditions = [AuditLog.guild_id == guild_id]
        if action:
            conditions.append(AuditLog.action == action)
        if actor_id is not None:
            conditions.append(AuditLog.actor_id == actor_id)
        if target_id is not None:
            conditions.append(AuditLog.target_id == target_id)
        if since is not None:
            conditions.append(AuditLog.timestamp >= since)
        if until is not None:
            conditions.append(AuditLog.timestamp <= until)

        return await self.find_many_where(
            session,
            *conditions,
            order_by=[AuditLog.timestamp.desc(), AuditLog.id.desc()],
            limit=limit,
            offset=offset,
        )
