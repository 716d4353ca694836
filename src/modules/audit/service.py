"""
AuditLogService - writes and searches the audit trail
======================================================

Every state-changing domain operation records one AuditLog row. Callers
already holding a transaction pass their ``session`` so the audit row
commits (or rolls back) with the change it describes; otherwise a short
transaction of its own is opened.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, AuditSeverity, BypassType
from src.database.models.guild.audit_log import AuditLog
from src.modules.audit.repository import AuditLogRepository
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus

SYSTEM_ACTOR_ID = 0


class AuditLogService(BaseService):
    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._repo = AuditLogRepository(self.log)

    async def log_action(
        self,
        guild_id: int,
        action: AuditAction,
        actor_id: int,
        target_id: Optional[int] = None,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        bypass_info: Optional[Dict[str, Any]] = None,
        severity: AuditSeverity = AuditSeverity.LOW,
        session: Optional[AsyncSession] = None,
    ) -> AuditLog:
        details: Dict[str, Any] = {}
        if before is not None:
            details["before"] = before
        if after is not None:
            details["after"] = after
        if reason:
            details["reason"] = reason
        if metadata:
            details["metadata"] = metadata
        if bypass_info:
            details["bypass_info"] = bypass_info

        entry = AuditLog(
            guild_id=guild_id,
            action=action.value,
            actor_id=actor_id,
            target_id=target_id,
            details=details,
            severity=severity.value,
            timestamp=utc_now(),
        )

        if session is not None:
            await self._repo.add(session, entry)
        else:
            async with DatabaseService.get_transaction() as own_session:
                await self._repo.add(own_session, entry)

        self.log.info(
            f"Audit: {action.value}",
            extra={
                "guild_id": guild_id,
                "audit_action": action.value,
                "actor_id": actor_id,
                "target_id": target_id,
                "severity": severity.value,
            },
        )
        return entry

    async def log_role_limit_bypass(
        self,
        guild_id: int,
        actor_id: int,
        target_id: int,
        role: str,
        current_count: int,
        max_count: int,
        reason: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> AuditLog:
        """Guild owner hired past a role's cap."""
        return await self.log_action(
            guild_id=guild_id,
            action=AuditAction.ROLE_LIMIT_BYPASSED,
            actor_id=actor_id,
            target_id=target_id,
            reason=reason or "Guild owner bypassed role limit",
            bypass_info={
                "bypass_type": BypassType.GUILD_OWNER.value,
                "original_validation_errors": [
                    f'Role "{role}" has reached its maximum limit ({current_count}/{max_count})'
                ],
                "role": role,
                "current_count": current_count,
                "max_count": max_count,
            },
            severity=AuditSeverity.HIGH,
            session=session,
        )

    async def log_business_rule_violation(
        self,
        guild_id: int,
        actor_id: int,
        rule: str,
        errors: List[str],
        target_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        return await self.log_action(
            guild_id=guild_id,
            action=AuditAction.BUSINESS_RULE_VIOLATION,
            actor_id=actor_id,
            target_id=target_id,
            reason="; ".join(errors),
            metadata={"rule": rule, **(metadata or {})},
            severity=AuditSeverity.MEDIUM,
        )

    async def search(
        self,
        guild_id: int,
        action: Optional[AuditAction] = None,
        actor_id: Optional[int] = None,
        target_id: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AuditLog]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_by_filters(
                session,
                guild_id,
                action=action.value if action else None,
                actor_id=actor_id,
                target_id=target_id,
                since=since,
                until=until,
                limit=limit,
                offset=offset,
            )
