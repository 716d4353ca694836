"""
StaffService - hire, promote, demote and fire firm staff
========================================================

Callers have already run the command's validator pipeline; this service
re-checks only what the pipeline cannot know (hierarchy between actor and
target, duplicate usernames, the exact role transition) and applies the
change.

Lifecycle: ``none -> active (hire) -> active[role] (promote/demote) ->
terminated (fire)``. A terminated member cannot be promoted or demoted;
hiring them again creates a fresh record.

Discord role changes run after the database transaction commits. Their
failure is logged through ``log_side_effect_failure`` and does not undo the
write.

Expected failures come back as ``{"success": False, "error": ...}``;
database errors propagate to the cog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import discord

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, PromotionActionType, StaffStatus
from src.database.models.staffing.staff import Staff
from src.modules.cases.repository import CaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.validators import roblox_username_error
from src.modules.staff.repository import StaffRepository
from src.modules.staff.roles import StaffRoleHierarchy

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext
    from src.modules.validation.business_rules import BusinessRuleValidationService

DEFAULT_PAGE_SIZE = 10


def _history_entry(
    from_role: str,
    to_role: str,
    actor_id: int,
    reason: Optional[str],
    action_type: PromotionActionType,
) -> Dict[str, Any]:
    return {
        "from_role": from_role,
        "to_role": to_role,
        "promoted_by": actor_id,
        "promoted_at": utc_now().isoformat(),
        "reason": reason,
        "action_type": action_type.value,
    }


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


class StaffService(BaseService):
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
        self._repo = StaffRepository(self.log)
        self._case_repo = CaseRepository(self.log)

    @property
    def roles(self) -> StaffRoleHierarchy:
        return self._roles

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def validate_roblox_username(self, username: str) -> Dict[str, Any]:
        error = roblox_username_error(username)
        if error:
            return {"is_valid": False, "username": username, "error": error}
        return {"is_valid": True, "username": username}

    async def _actor_role(self, session: AsyncSession, context: PermissionContext) -> Optional[str]:
        actor = await self._repo.find_active_by_user(session, context.guild_id, context.user_id)
        return actor.role if actor else None

    async def _sync_discord_role(
        self,
        guild: Optional[discord.Guild],
        user_id: int,
        remove_role: Optional[str],
        add_role: Optional[str],
        reason: str,
    ) -> None:
        """Mirror a committed role change onto the member; never raises."""
        if guild is None:
            return
        try:
            member = guild.get_member(user_id) or await guild.fetch_member(user_id)
            if remove_role:
                old = discord.utils.get(guild.roles, name=remove_role)
                if old is not None and old in member.roles:
                    await member.remove_roles(old, reason=reason)
            if add_role:
                new = discord.utils.get(guild.roles, name=add_role)
                if new is not None:
                    await member.add_roles(new, reason=reason)
        except discord.HTTPException as exc:
            self.log_side_effect_failure(
                "discord_role_sync",
                exc,
                guild_id=guild.id,
                user_id=user_id,
                removed=remove_role,
                added=add_role,
            )

    async def _limit_refused(
        self,
        context: PermissionContext,
        operation: str,
        user_id: int,
        role: str,
        errors: List[str],
    ) -> Dict[str, Any]:
        """Audit a refused role-limit breach and build the failure result."""
        await self._audit.log_business_rule_violation(
            guild_id=context.guild_id,
            actor_id=context.user_id,
            rule="role_limit",
            errors=errors,
            target_id=user_id,
            metadata={"operation": operation, "role": role},
        )
        return _failure(", ".join(errors))

    # ------------------------------------------------------------------ #
    # Hire
    # ------------------------------------------------------------------ #

    async def hire_staff(
        self,
        context: PermissionContext,
        user_id: int,
        roblox_username: str,
        role: str,
        reason: Optional[str] = None,
        bypass_reason: Optional[str] = None,
        guild: Optional[discord.Guild] = None,
    ) -> Dict[str, Any]:
        """
        Create an active staff record.

        ``bypass_reason`` is set when the guild owner confirmed overriding the
        role limit; the override is audited as ``role_limit_bypassed``.
        """
        if not self._roles.is_valid_role(role):
            return _failure(f"Invalid staff role: {role}")

        username_check = self.validate_roblox_username(roblox_username)
        if not username_check["is_valid"]:
            return _failure(username_check["error"])

        limit = await self._business_rules.validate_role_limit(context, role)
        bypassing = False
        if not limit.valid:
            if not (context.is_guild_owner and limit.bypass_available and bypass_reason):
                return await self._limit_refused(context, "hire", user_id, role, limit.errors)
            bypassing = True

        async with DatabaseService.get_transaction() as session:
            existing = await self._repo.find_active_by_user(session, context.guild_id, user_id)
            if existing is not None:
                return _failure("User is already an active staff member")

            username_owner = await self._repo.find_by_roblox_username(session, context.guild_id, roblox_username)
            if username_owner is not None:
                return _failure("Roblox username is already associated with another staff member")

            staff = await self._repo.add(
                session,
                Staff(
                    guild_id=context.guild_id,
                    user_id=user_id,
                    roblox_username=roblox_username,
                    role=role,
                    hired_at=utc_now(),
                    hired_by=context.user_id,
                    promotion_history=[
                        _history_entry(role, role, context.user_id, reason, PromotionActionType.HIRE)
                    ],
                    status=StaffStatus.ACTIVE.value,
                ),
            )

            if bypassing:
                await self._audit.log_role_limit_bypass(
                    guild_id=context.guild_id,
                    actor_id=context.user_id,
                    target_id=user_id,
                    role=role,
                    current_count=limit.current_count,
                    max_count=limit.max_count or 0,
                    reason=bypass_reason,
                    session=session,
                )

            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.STAFF_HIRED,
                actor_id=context.user_id,
                target_id=user_id,
                after={"role": role, "status": StaffStatus.ACTIVE.value},
                reason=reason,
                metadata={"roblox_username": roblox_username, "bypassed_role_limit": bypassing},
                session=session,
            )

        self.log_operation("hire_staff", guild_id=context.guild_id, user_id=user_id, role=role, bypass=bypassing)
        await self._sync_discord_role(guild, user_id, None, role, reason or "Hired")
        await self.emit_event(
            "staff.hired",
            {"guild_id": context.guild_id, "user_id": user_id, "role": role, "hired_by": context.user_id},
        )
        return {"success": True, "staff": staff, "bypassed": bypassing}

    # ------------------------------------------------------------------ #
    # Promote / demote
    # ------------------------------------------------------------------ #

    async def _change_role(
        self,
        context: PermissionContext,
        user_id: int,
        new_role: str,
        reason: Optional[str],
        promotion: bool,
        bypass_reason: Optional[str],
        guild: Optional[discord.Guild],
    ) -> Dict[str, Any]:
        verb = "promote" if promotion else "demote"
        if user_id == context.user_id:
            return _failure(f"Staff members cannot {verb} themselves")
        if not self._roles.is_valid_role(new_role):
            return _failure(f"Invalid staff role: {new_role}")

        bypassing = False
        if promotion:
            limit = await self._business_rules.validate_role_limit(context, new_role)
            if not limit.valid:
                if not (context.is_guild_owner and limit.bypass_available and bypass_reason):
                    return await self._limit_refused(context, "promote", user_id, new_role, limit.errors)
                bypassing = True

        async with DatabaseService.get_transaction() as session:
            staff = await self._repo.find_active_by_user(session, context.guild_id, user_id)
            if staff is None:
                return _failure("Staff member not found or inactive")

            current_role = staff.role
            current_level = self._roles.get_role_level(current_role)
            new_level = self._roles.get_role_level(new_role)
            if promotion and new_level <= current_level:
                return _failure("New role must be higher than current role for promotion")
            if not promotion and new_level >= current_level:
                return _failure("New role must be lower than current role for demotion")

            if not context.is_guild_owner:
                actor_role = await self._actor_role(session, context)
                allowed = (
                    self._roles.can_promote(actor_role, new_role)
                    if promotion
                    else self._roles.can_demote(actor_role, current_role)
                )
                if actor_role is None or not allowed:
                    return _failure(f"You cannot {verb} staff to or from a role at or above your own")

            action_type = PromotionActionType.PROMOTION if promotion else PromotionActionType.DEMOTION
            history = list(staff.promotion_history or [])
            history.append(_history_entry(current_role, new_role, context.user_id, reason, action_type))
            updated = await self._repo.update(session, staff.id, {"role": new_role, "promotion_history": history})

            if bypassing:
                await self._audit.log_role_limit_bypass(
                    guild_id=context.guild_id,
                    actor_id=context.user_id,
                    target_id=user_id,
                    role=new_role,
                    current_count=limit.current_count,
                    max_count=limit.max_count or 0,
                    reason=bypass_reason,
                    session=session,
                )

            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.STAFF_PROMOTED if promotion else AuditAction.STAFF_DEMOTED,
                actor_id=context.user_id,
                target_id=user_id,
                before={"role": current_role},
                after={"role": new_role},
                reason=reason,
                session=session,
            )

        self.log_operation(f"{verb}_staff", guild_id=context.guild_id, user_id=user_id, from_role=current_role, to_role=new_role)
        await self._sync_discord_role(guild, user_id, current_role, new_role, reason or verb.capitalize())
        await self.emit_event(
            "staff.promoted" if promotion else "staff.demoted",
            {
                "guild_id": context.guild_id,
                "user_id": user_id,
                "from_role": current_role,
                "to_role": new_role,
                "actor_id": context.user_id,
            },
        )
        return {"success": True, "staff": updated, "previous_role": current_role, "bypassed": bypassing}

    async def promote_staff(
        self,
        context: PermissionContext,
        user_id: int,
        new_role: str,
        reason: Optional[str] = None,
        bypass_reason: Optional[str] = None,
        guild: Optional[discord.Guild] = None,
    ) -> Dict[str, Any]:
        return await self._change_role(context, user_id, new_role, reason, True, bypass_reason, guild)

    async def demote_staff(
        self,
        context: PermissionContext,
        user_id: int,
        new_role: str,
        reason: Optional[str] = None,
        guild: Optional[discord.Guild] = None,
    ) -> Dict[str, Any]:
        return await self._change_role(context, user_id, new_role, reason, False, None, guild)

    # ------------------------------------------------------------------ #
    # Fire
    # ------------------------------------------------------------------ #

    async def fire_staff(
        self,
        context: PermissionContext,
        user_id: int,
        reason: Optional[str] = None,
        guild: Optional[discord.Guild] = None,
    ) -> Dict[str, Any]:
        """
        Terminate an active member and drop them from cases they assist on.

        Cases they lead block the command upstream (cross-entity check), so
        only ``assigned_lawyer_ids`` is touched here.
        """
        if user_id == context.user_id:
            return _failure("Staff members cannot fire themselves")

        async with DatabaseService.get_transaction() as session:
            staff = await self._repo.find_active_by_user(session, context.guild_id, user_id)
            if staff is None:
                return _failure("Staff member not found or inactive")

            if not context.is_guild_owner:
                actor_role = await self._actor_role(session, context)
                if actor_role is None or not self._roles.outranks(actor_role, staff.role):
                    return _failure("You can only fire staff members below your own role")

            removed_from: List[str] = []
            for case in await self._case_repo.find_open_for_attorney(session, context.guild_id, user_id):
                if case.lead_attorney_id == user_id:
                    continue
                remaining = [lawyer for lawyer in (case.assigned_lawyer_ids or []) if lawyer != user_id]
                await self._case_repo.update(session, case.id, {"assigned_lawyer_ids": remaining})
                removed_from.append(case.case_number)

            history = list(staff.promotion_history or [])
            history.append(_history_entry(staff.role, staff.role, context.user_id, reason, PromotionActionType.FIRE))
            updated = await self._repo.update(
                session,
                staff.id,
                {"status": StaffStatus.TERMINATED.value, "promotion_history": history},
            )

            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.STAFF_FIRED,
                actor_id=context.user_id,
                target_id=user_id,
                before={"role": staff.role, "status": StaffStatus.ACTIVE.value},
                after={"status": StaffStatus.TERMINATED.value},
                reason=reason,
                metadata={"roblox_username": staff.roblox_username, "removed_from_cases": removed_from},
                session=session,
            )

        self.log_operation("fire_staff", guild_id=context.guild_id, user_id=user_id, role=staff.role)
        await self._sync_discord_role(guild, user_id, staff.role, None, reason or "Fired")
        await self.emit_event(
            "staff.fired",
            {"guild_id": context.guild_id, "user_id": user_id, "role": staff.role, "fired_by": context.user_id},
        )
        return {"success": True, "staff": updated, "removed_from_cases": removed_from}

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def get_staff_info(self, context: PermissionContext, user_id: int) -> Optional[Staff]:
        async with DatabaseService.get_transaction() as session:
            staff = await self._repo.find_active_by_user(session, context.guild_id, user_id)
            if staff is None:
                staff = await self._repo.find_latest_by_user(session, context.guild_id, user_id)
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.STAFF_INFO_VIEWED,
                actor_id=context.user_id,
                target_id=user_id,
                metadata={"found": staff is not None},
                session=session,
            )
        return staff

    async def get_staff_list(
        self,
        context: PermissionContext,
        role: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page = max(page, 1)
        async with DatabaseService.get_transaction() as session:
            total = await self._repo.count_by_guild(session, context.guild_id, status=StaffStatus.ACTIVE.value, role=role)
            staff = await self._repo.find_by_guild(
                session,
                context.guild_id,
                status=StaffStatus.ACTIVE.value,
                role=role,
                limit=page_size,
                offset=(page - 1) * page_size,
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.STAFF_LIST_VIEWED,
                actor_id=context.user_id,
                metadata={"role_filter": role, "page": page, "result_count": len(staff)},
                session=session,
            )
        total_pages = max((total + page_size - 1) // page_size, 1)
        return {"staff": staff, "total": total, "page": page, "total_pages": total_pages}

    async def get_staff_hierarchy(self, context: PermissionContext) -> Dict[str, List[Staff]]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_staff_hierarchy(session, context.guild_id, self._roles.role_names())

    async def get_role_counts(self, context: PermissionContext) -> Dict[str, int]:
        async with DatabaseService.get_session() as session:
            counts = await self._repo.get_role_counts(session, context.guild_id)
        return {role: counts.get(role, 0) for role in self._roles.role_names()}
