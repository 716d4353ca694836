"""
BusinessRuleValidationService - one rule at a time against current state
=========================================================================

Rules:
- role limit: active staff holding a role vs. that role's max count
- client case limit: open/pending cases for a client vs. a fixed cap
- staff member: the target has an active staff record
- permission: the actor holds a role granted an action, is a configured
  admin, or owns the guild

Evaluators never mutate and never raise: a repository failure becomes a
failed result with a generic message and the detail goes to the log.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Iterable, List, Optional, Sequence

from src.core.database.service import DatabaseService
from src.database.models.enums import BypassType, PermissionAction, StaffStatus
from src.modules.cases.repository import CaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.staff.repository import StaffRepository
from src.modules.staff.roles import StaffRoleHierarchy
from src.modules.validation.types import (
    ClientCaseLimitResult,
    PermissionValidationResult,
    RoleLimitValidationResult,
    StaffValidationResult,
    ValidationResult,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.guild.permission_service import PermissionService
    from src.modules.shared.permission_context import PermissionContext


# Minimum staff level that implies each permission when checking a staff
# member's own capabilities.
STAFF_LEVEL_GRANTS = {
    PermissionAction.SENIOR_STAFF.value: 5,
    PermissionAction.LAWYER.value: 2,
    PermissionAction.LEAD_ATTORNEY.value: 3,
    PermissionAction.CASE.value: 2,
    PermissionAction.ADMIN.value: 6,
}


class BusinessRuleValidationService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        permission_service: PermissionService,
        role_hierarchy: Optional[StaffRoleHierarchy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._permissions = permission_service
        self._roles = role_hierarchy or StaffRoleHierarchy.from_config(config_manager)
        self._staff_repo = StaffRepository(self.log)
        self._case_repo = CaseRepository(self.log)

    # ------------------------------------------------------------------ #
    # Role limit
    # ------------------------------------------------------------------ #

    async def validate_role_limit(self, context: PermissionContext, role: str) -> RoleLimitValidationResult:
        max_count = self._roles.get_role_max_count(role)
        if max_count is None:
            return RoleLimitValidationResult(
                valid=True,
                role_name=role,
                metadata={"rule_type": "role-limit", "role": role, "unlimited": True},
            )

        try:
            async with DatabaseService.get_session() as session:
                current_count = await self._staff_repo.count_active_by_role(session, context.guild_id, role)
        except Exception as exc:
            self.log_error("validate_role_limit", exc, guild_id=context.guild_id, role=role)
            return RoleLimitValidationResult(
                valid=False,
                errors=["Failed to validate role limits"],
                current_count=0,
                max_count=0,
                role_name=role,
            )

        can_hire = current_count < max_count
        bypass = not can_hire and context.is_guild_owner
        result = RoleLimitValidationResult(
            valid=can_hire,
            errors=[] if can_hire else [
                f"Cannot hire {role}. Maximum limit of {max_count} reached (current: {current_count})"
            ],
            bypass_available=bypass,
            bypass_type=BypassType.GUILD_OWNER if bypass else None,
            current_count=current_count,
            max_count=max_count,
            role_name=role,
            metadata={
                "rule_type": "role-limit",
                "role": role,
                "current_count": current_count,
                "max_count": max_count,
            },
        )

        self.log.debug(
            "Role limit validation result",
            extra={
                "guild_id": context.guild_id,
                "role": role,
                "current_count": current_count,
                "max_count": max_count,
                "valid": result.valid,
                "bypass_available": result.bypass_available,
            },
        )
        return result

    # ------------------------------------------------------------------ #
    # Client case limit
    # ------------------------------------------------------------------ #

    async def validate_client_case_limit(self, context: PermissionContext, client_id: int) -> ClientCaseLimitResult:
        max_cases = int(self.get_config("cases.max_active_per_client", 5))
        warning_threshold = int(self.get_config("cases.warning_threshold", 3))

        try:
            async with DatabaseService.get_session() as session:
                active_count = await self._case_repo.count_active_for_client(session, context.guild_id, client_id)
        except Exception as exc:
            self.log_error("validate_client_case_limit", exc, guild_id=context.guild_id, client_id=client_id)
            return ClientCaseLimitResult(
                valid=False,
                errors=["Failed to validate client case limits"],
                max_cases=max_cases,
                client_id=client_id,
            )

        can_create = active_count < max_cases
        return ClientCaseLimitResult(
            valid=can_create,
            errors=[] if can_create else [
                f"Client has reached maximum active case limit ({max_cases}). Current active cases: {active_count}"
            ],
            warnings=(
                [f"Client has {active_count} active cases (limit: {max_cases})"]
                if active_count >= warning_threshold
                else []
            ),
            current_cases=active_count,
            max_cases=max_cases,
            client_id=client_id,
            metadata={"rule_type": "case-limit", "client_id": client_id, "current_cases": active_count},
        )

    # ------------------------------------------------------------------ #
    # Staff member
    # ------------------------------------------------------------------ #

    def _role_grants(self, staff_role: Optional[str], permission: str) -> bool:
        threshold = STAFF_LEVEL_GRANTS.get(permission)
        if staff_role is None or threshold is None:
            return False
        return self._roles.get_role_level(staff_role) >= threshold

    async def validate_staff_member(
        self,
        context: PermissionContext,
        user_id: int,
        required_permissions: Sequence[str] = (),
    ) -> StaffValidationResult:
        try:
            async with DatabaseService.get_session() as session:
                staff = await self._staff_repo.find_latest_by_user(session, context.guild_id, user_id)
        except Exception as exc:
            self.log_error("validate_staff_member", exc, guild_id=context.guild_id, target_id=user_id)
            return StaffValidationResult(valid=False, errors=["Failed to validate staff member"])

        is_active = staff is not None and staff.status == StaffStatus.ACTIVE.value
        current_role = staff.role if staff is not None else None
        granted = [perm for perm in required_permissions if self._role_grants(current_role, perm)]
        missing = [perm for perm in required_permissions if perm not in granted]

        errors: List[str] = []
        if staff is None:
            errors.append("User is not an active staff member")
        elif not is_active:
            errors.append(f"User is not an active staff member (status: {staff.status})")
        if missing:
            errors.append(f"User lacks required permissions: {', '.join(missing)}")

        return StaffValidationResult(
            valid=not errors,
            errors=errors,
            is_active_staff=is_active,
            current_role=current_role,
            has_required_permissions=not missing,
            metadata={
                "rule_type": "staff-validation",
                "user_id": user_id,
                "required_permissions": list(required_permissions),
                "granted_permissions": granted,
            },
        )

    # ------------------------------------------------------------------ #
    # Permission
    # ------------------------------------------------------------------ #

    async def validate_permission(
        self, context: PermissionContext, required_permission: str
    ) -> PermissionValidationResult:
        if context.is_guild_owner:
            return PermissionValidationResult(
                valid=True,
                bypass_available=True,
                bypass_type=BypassType.GUILD_OWNER,
                has_permission=True,
                required_permission=required_permission,
                granted_permissions=[required_permission],
                metadata={"rule_type": "permission-validation", "bypass_reason": BypassType.GUILD_OWNER.value},
            )

        try:
            action = PermissionAction(required_permission)
        except ValueError:
            return PermissionValidationResult(
                valid=False,
                errors=[f"Unknown permission: {required_permission}"],
                required_permission=required_permission,
            )

        try:
            granted = await self._permissions.get_granted_actions(context)
        except Exception as exc:
            self.log_error("validate_permission", exc, guild_id=context.guild_id, action=required_permission)
            return PermissionValidationResult(
                valid=False,
                errors=["Failed to validate permissions"],
                required_permission=required_permission,
            )

        has_permission = action.value in granted
        self.log.debug(
            "Permission validation result",
            extra={
                "guild_id": context.guild_id,
                "user_id": context.user_id,
                "required_permission": required_permission,
                "has_permission": has_permission,
            },
        )
        return PermissionValidationResult(
            valid=has_permission,
            errors=[] if has_permission else [f"Missing required permission: {required_permission}"],
            has_permission=has_permission,
            required_permission=required_permission,
            granted_permissions=list(granted),
            metadata={"rule_type": "permission-validation", "granted_permissions": list(granted)},
        )

    # ------------------------------------------------------------------ #
    # Aggregation
    # ------------------------------------------------------------------ #

    async def validate_multiple(self, validations: Iterable[Awaitable[ValidationResult]]) -> ValidationResult:
        """Run every evaluator and merge without short-circuiting."""
        try:
            results = await asyncio.gather(*validations)
        except Exception as exc:
            self.log_error("validate_multiple", exc)
            return ValidationResult(valid=False, errors=["Failed to validate multiple business rules"])

        bypass_available = any(result.bypass_available for result in results)
        return ValidationResult(
            valid=all(result.valid for result in results),
            errors=[error for result in results for error in result.errors],
            warnings=[warning for result in results for warning in result.warnings],
            bypass_available=bypass_available,
            bypass_type=BypassType.GUILD_OWNER if bypass_available else None,
            metadata={
                "rule_type": "multiple-validation",
                "validation_count": len(results),
                "valid_results": sum(1 for result in results if result.valid),
                "invalid_results": sum(1 for result in results if not result.valid),
            },
        )
