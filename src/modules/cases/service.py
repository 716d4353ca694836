"""
CaseService - client cases from intake to close
===============================================

Case numbers look like ``AA-2026-0007-clientname``: firm prefix, year, a
per-guild yearly counter (atomic upsert) and the client's sanitized name.

Status flow: ``pending -> in-progress`` (first lawyer assigned) ``->
closed`` (with a result). Lead attorneys must hold at least a Senior
Associate role.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, CasePriority, CaseResult, CaseStatus
from src.database.models.legal.case import Case
from src.modules.cases.repository import CaseCounterRepository, CaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import validate_length
from src.modules.staff.repository import StaffRepository
from src.modules.staff.roles import StaffRoleHierarchy

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext
    from src.modules.validation.business_rules import BusinessRuleValidationService

CASE_NUMBER_PREFIX = "AA"
LEAD_ATTORNEY_MIN_LEVEL = 3
_USERNAME_UNSAFE = re.compile(r"[^a-z0-9]")


def generate_case_number(year: int, counter: int, client_username: str) -> str:
    """
    >>> generate_case_number(2026, 7, "John.Doe")
    'AA-2026-0007-johndoe'
    """
    username = _USERNAME_UNSAFE.sub("", client_username.lower()) or "client"
    return f"{CASE_NUMBER_PREFIX}-{year}-{counter:04d}-{username}"


def generate_channel_name(case_number: str) -> str:
    return f"case-{case_number.lower()}"[:100]


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


class CaseService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
        business_rules: BusinessRuleValidationService,
        role_hierarchy: Optional[StaffRoleHierarchy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._business_rules = business_rules
        self._roles = role_hierarchy or StaffRoleHierarchy.from_config(config_manager)
        self._repo = CaseRepository(self.log)
        self._counter_repo = CaseCounterRepository(self.log)
        self._staff_repo = StaffRepository(self.log)

    async def create_case(
        self,
        context: PermissionContext,
        client_id: int,
        client_username: str,
        title: str,
        description: str = "",
        priority: Optional[str] = None,
    ) -> Dict[str, Any]:
        priority = priority or CasePriority.MEDIUM.value
        if priority not in {item.value for item in CasePriority}:
            return _failure(f"Invalid priority: {priority}")
        try:
            validate_length(title, "Title", 3, 200)
        except ValidationError as exc:
            return _failure(exc.message)

        limit = await self._business_rules.validate_client_case_limit(context, client_id)
        if not limit.valid:
            return _failure(", ".join(limit.errors))

        async with DatabaseService.get_transaction() as session:
            year = utc_now().year
            counter = await self._counter_repo.next_value(session, context.guild_id, year)
            case = await self._repo.add(
                session,
                Case(
                    guild_id=context.guild_id,
                    case_number=generate_case_number(year, counter, client_username),
                    client_id=client_id,
                    client_username=client_username,
                    title=title.strip(),
                    description=(description or "").strip(),
                    status=CaseStatus.PENDING.value,
                    priority=priority,
                    assigned_lawyer_ids=[],
                ),
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.CASE_CREATED,
                actor_id=context.user_id,
                target_id=client_id,
                after={"case_number": case.case_number, "status": case.status, "priority": priority},
                session=session,
            )

        self.log_operation("create_case", guild_id=context.guild_id, case_number=case.case_number, client_id=client_id)
        await self.emit_event(
            "case.created",
            {"guild_id": context.guild_id, "case_number": case.case_number, "client_id": client_id},
        )
        return {"success": True, "case": case, "warnings": list(limit.warnings)}

    async def assign_lawyer(
        self,
        context: PermissionContext,
        case_number: str,
        lawyer_id: int,
        as_lead: bool = False,
    ) -> Dict[str, Any]:
        """
        Add ``lawyer_id`` to the case. The first lawyer on a case without a
        lead, or any lawyer with ``as_lead``, becomes lead attorney.
        """
        async with DatabaseService.get_transaction() as session:
            case = await self._repo.find_by_case_number(session, context.guild_id, case_number)
            if case is None:
                return _failure("Case not found")
            if case.status == CaseStatus.CLOSED.value:
                return _failure("Cannot assign lawyers to a closed case")

            lawyer = await self._staff_repo.find_active_by_user(session, context.guild_id, lawyer_id)
            if lawyer is None:
                return _failure("Lawyer must be an active staff member")

            becomes_lead = as_lead or not case.lead_attorney_id
            if becomes_lead and self._roles.get_role_level(lawyer.role) < LEAD_ATTORNEY_MIN_LEVEL:
                if as_lead:
                    return _failure(f"{lawyer.role} cannot be lead attorney on a case")
                becomes_lead = False

            assigned = list(case.assigned_lawyer_ids or [])
            if lawyer_id not in assigned:
                assigned.append(lawyer_id)

            changes: Dict[str, Any] = {"assigned_lawyer_ids": assigned}
            previous_lead = case.lead_attorney_id
            if becomes_lead:
                changes["lead_attorney_id"] = lawyer_id
            if case.status == CaseStatus.PENDING.value:
                changes["status"] = CaseStatus.IN_PROGRESS.value

            updated = await self._repo.update(session, case.id, changes)
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.LEAD_ATTORNEY_CHANGED if becomes_lead and previous_lead else AuditAction.CASE_ASSIGNED,
                actor_id=context.user_id,
                target_id=lawyer_id,
                before={"lead_attorney_id": previous_lead, "status": case.status},
                after={"lead_attorney_id": changes.get("lead_attorney_id", previous_lead), "status": updated.status},
                metadata={"case_number": case_number},
                session=session,
            )

        self.log_operation("assign_lawyer", guild_id=context.guild_id, case_number=case_number, lawyer_id=lawyer_id, lead=becomes_lead)
        return {"success": True, "case": updated, "is_lead": becomes_lead}

    async def close_case(
        self,
        context: PermissionContext,
        case_number: str,
        result: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        if result not in {item.value for item in CaseResult}:
            return _failure(f"Invalid case result: {result}")

        async with DatabaseService.get_transaction() as session:
            case = await self._repo.find_by_case_number(session, context.guild_id, case_number)
            if case is None:
                return _failure("Case not found")
            if case.status != CaseStatus.IN_PROGRESS.value:
                return _failure(f"Case cannot be closed - current status: {case.status}")

            updated = await self._repo.update(
                session,
                case.id,
                {
                    "status": CaseStatus.CLOSED.value,
                    "result": result,
                    "result_notes": notes,
                    "closed_at": utc_now(),
                    "closed_by": context.user_id,
                },
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.CASE_CLOSED,
                actor_id=context.user_id,
                target_id=case.client_id,
                before={"status": case.status},
                after={"status": CaseStatus.CLOSED.value, "result": result},
                reason=notes,
                metadata={"case_number": case_number},
                session=session,
            )

        self.log_operation("close_case", guild_id=context.guild_id, case_number=case_number, result=result)
        return {"success": True, "case": updated}

    async def list_cases(
        self,
        context: PermissionContext,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        page = max(page, 1)
        async with DatabaseService.get_session() as session:
            cases = await self._repo.find_by_guild(
                session, context.guild_id, status=status, limit=page_size, offset=(page - 1) * page_size
            )
            total = await self._repo.count(
                session,
                Case.guild_id == context.guild_id,
                *([Case.status == status] if status else []),
            )
        return {
            "cases": cases,
            "total": total,
            "page": page,
            "total_pages": max((total + page_size - 1) // page_size, 1),
        }
