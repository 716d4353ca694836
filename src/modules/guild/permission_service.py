"""
PermissionService - action permissions and admin lists
======================================================

Resolution order for every check:
1. Guild owner: always granted
2. ``GuildConfig.admin_users`` contains the actor
3. Actor holds one of ``GuildConfig.admin_roles``
4. Actor holds one of ``GuildConfig.permissions[action]``

Lookups never write: a guild without a stored config reads as an unsaved
default, and rows are created only when something is changed.
``has_action_permission`` and ``is_admin`` deny on a failed lookup;
``get_granted_actions`` lets the failure propagate to its caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, PermissionAction
from src.modules.guild.repository import GuildConfigRepository
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.database.models.guild.guild_config import GuildConfig
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext


class PermissionService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: Optional[AuditLogService] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._repo = GuildConfigRepository(self.log)
        self._audit = audit_service

    # -------------------------------------------------------------------------
    # Config access
    # -------------------------------------------------------------------------

    async def get_guild_config(self, guild_id: int) -> GuildConfig:
        """Stored config, or an unsaved default when the guild has none yet."""
        async with DatabaseService.get_session() as session:
            config = await self._repo.find_by_guild(session, guild_id)
        return config or self._repo.build_default(guild_id)

    async def update_guild_config(self, guild_id: int, changes: Dict[str, Any]) -> Optional[GuildConfig]:
        async with DatabaseService.get_transaction() as session:
            await self._repo.ensure_guild_config(session, guild_id)
            return await self._repo.update_config(session, guild_id, changes)

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_config_admin(config: GuildConfig, context: PermissionContext) -> bool:
        if context.user_id in (config.admin_users or []):
            return True
        return context.has_any_role(config.admin_roles or [])

    async def has_action_permission(self, context: PermissionContext, action: PermissionAction) -> bool:
        if context.is_guild_owner:
            self.log.debug("Permission granted to guild owner", extra={"action": action.value})
            return True

        try:
            config = await self.get_guild_config(context.guild_id)
        except Exception as exc:
            self.log_error("has_action_permission", exc, action=action.value, guild_id=context.guild_id)
            return False

        if self._is_config_admin(config, context):
            self.log.debug("Permission granted via admin list", extra={"action": action.value})
            return True

        granted = context.has_any_role((config.permissions or {}).get(action.value, []))
        self.log.debug(
            "Permission check",
            extra={"action": action.value, "user_id": context.user_id, "granted": granted},
        )
        return granted

    async def is_admin(self, context: PermissionContext) -> bool:
        if context.is_guild_owner:
            return True
        try:
            config = await self.get_guild_config(context.guild_id)
        except Exception as exc:
            self.log_error("is_admin", exc, guild_id=context.guild_id)
            return False
        return self._is_config_admin(config, context)

    async def can_manage_admins(self, context: PermissionContext) -> bool:
        return context.is_guild_owner or await self.has_action_permission(context, PermissionAction.ADMIN)

    async def can_manage_config(self, context: PermissionContext) -> bool:
        return await self.is_admin(context) or await self.has_action_permission(context, PermissionAction.CONFIG)

    async def get_granted_actions(self, context: PermissionContext) -> List[str]:
        """Every action the actor may perform, from a single config load."""
        if context.is_guild_owner:
            return [action.value for action in PermissionAction]
        config = await self.get_guild_config(context.guild_id)
        if self._is_config_admin(config, context):
            return [action.value for action in PermissionAction]
        permissions = config.permissions or {}
        return [action.value for action in PermissionAction if context.has_any_role(permissions.get(action.value, []))]

    async def get_permission_summary(self, context: PermissionContext) -> Dict[str, Any]:
        granted = set(await self.get_granted_actions(context))
        permissions = {action.value: action.value in granted for action in PermissionAction}
        return {
            "is_admin": await self.is_admin(context),
            "is_guild_owner": context.is_guild_owner,
            "permissions": permissions,
        }

    # -------------------------------------------------------------------------
    # Admin list management
    # -------------------------------------------------------------------------

    async def _update_id_list(
        self,
        context: PermissionContext,
        field_name: str,
        item_id: int,
        add: bool,
    ) -> List[int]:
        async with DatabaseService.get_transaction() as session:
            config = await self._repo.ensure_guild_config(session, context.guild_id)
            current = list(getattr(config, field_name) or [])
            before = list(current)
            if add and item_id not in current:
                current.append(item_id)
            elif not add:
                current = [value for value in current if value != item_id]

            if current != before:
                await self._repo.update(session, config.id, {field_name: current})
                if self._audit:
                    await self._audit.log_action(
                        guild_id=context.guild_id,
                        action=AuditAction.CONFIG_UPDATED,
                        actor_id=context.user_id,
                        target_id=item_id,
                        before={field_name: before},
                        after={field_name: current},
                        session=session,
                    )

        self.log_operation(
            "update_admin_list",
            guild_id=context.guild_id,
            field=field_name,
            item_id=item_id,
            added=add,
        )
        return current

    async def add_admin_user(self, context: PermissionContext, user_id: int) -> List[int]:
        return await self._update_id_list(context, "admin_users", user_id, add=True)

    async def remove_admin_user(self, context: PermissionContext, user_id: int) -> List[int]:
        return await self._update_id_list(context, "admin_users", user_id, add=False)

    async def add_admin_role(self, context: PermissionContext, role_id: int) -> List[int]:
        return await self._update_id_list(context, "admin_roles", role_id, add=True)

    async def remove_admin_role(self, context: PermissionContext, role_id: int) -> List[int]:
        return await self._update_id_list(context, "admin_roles", role_id, add=False)

    async def set_action_roles(
        self,
        context: PermissionContext,
        action: PermissionAction,
        role_ids: Iterable[int],
    ) -> Dict[str, List[int]]:
        """Replace the role list granted ``action``."""
        async with DatabaseService.get_transaction() as session:
            config = await self._repo.ensure_guild_config(session, context.guild_id)
            before = dict(config.permissions or {})
            permissions = {key: list(value) for key, value in before.items()}
            permissions[action.value] = sorted(set(role_ids))
            await self._repo.update(session, config.id, {"permissions": permissions})
            if self._audit:
                await self._audit.log_action(
                    guild_id=context.guild_id,
                    action=AuditAction.CONFIG_UPDATED,
                    actor_id=context.user_id,
                    before={"permissions": {action.value: before.get(action.value, [])}},
                    after={"permissions": {action.value: permissions[action.value]}},
                    session=session,
                )

        self.log_operation("set_action_roles", guild_id=context.guild_id, action=action.value)
        return permissions
