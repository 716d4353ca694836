"""
AnarchyServerSetupService - one-shot guild bootstrap
====================================================

``setup_anarchy_server`` wipes the guild and rebuilds it from the
``server_setup`` template:

1. Wipe: every guild-scoped table except GuildConfig, then all channels
   (system and community rules channels excepted) and every role the bot
   is allowed to delete.
2. Roles in template order (first is highest).
3. Categories and their channels, with permission overwrites.
4. GuildConfig: channel and category ids, client role, action
   permissions, guild owner as admin user.
5. The firm's rules message in the rules channel.
6. Default job postings.

Each step collects errors and carries on; the result reports what was
created and wiped alongside every error. This is destructive and is only
reachable from the admin ``setup-server`` command after confirmation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import discord

from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, AuditSeverity
from src.database.models.guild.audit_log import AuditLog
from src.database.models.guild.rules_channel import RulesChannel
from src.database.models.legal.case import Case, CaseCounter
from src.database.models.legal.feedback import Feedback
from src.database.models.legal.reminder import Reminder
from src.database.models.legal.retainer import Retainer
from src.database.models.staffing.application import Application
from src.database.models.staffing.job import Job
from src.database.models.staffing.staff import Staff
from src.modules.guild.repository import GuildConfigRepository, default_permissions
from src.modules.jobs.repository import JobRepository
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import validate_job_questions
from src.modules.staff.roles import StaffRoleHierarchy

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.rules.service import RulesChannelService

WIPE_REASON = "Complete server wipe for Anarchy setup"
SETUP_REASON = "Anarchy & Associates server setup"

# Wiped in this order; GuildConfig survives.
WIPED_MODELS = (
    ("applications", Application),
    ("reminders", Reminder),
    ("feedback", Feedback),
    ("retainers", Retainer),
    ("cases", Case),
    ("case_counters", CaseCounter),
    ("jobs", Job),
    ("staff", Staff),
    ("rules_channels", RulesChannel),
    ("audit_logs", AuditLog),
)

NAMED_COLORS = {
    "DarkRed": 0x8B0000,
    "Red": 0xFF0000,
    "Blue": 0x0000FF,
    "Aqua": 0x00FFFF,
    "Purple": 0x800080,
    "Green": 0x008000,
    "Orange": 0xFFA500,
    "DarkGreen": 0x006400,
    "Yellow": 0xFFFF00,
    "Grey": 0x808080,
}
DEFAULT_ROLE_COLOR = 0x99AAB5


def parse_color(value: Any) -> int:
    """
    >>> parse_color("#112233"), parse_color("Blue"), parse_color("nope")
    (1122867, 255, 10070709)
    """
    if isinstance(value, int):
        return value
    text = str(value or "")
    if text.startswith("#"):
        try:
            return int(text[1:], 16)
        except ValueError:
            return DEFAULT_ROLE_COLOR
    return NAMED_COLORS.get(text, DEFAULT_ROLE_COLOR)


def build_permissions(names: List[str]) -> discord.Permissions:
    """Unknown permission names are ignored."""
    valid = {name: True for name in names or [] if name in discord.Permissions.VALID_FLAGS}
    return discord.Permissions(**valid)


def _empty_result() -> Dict[str, Any]:
    return {
        "created": {"roles": [], "categories": [], "channels": [], "jobs": 0},
        "wiped": {"collections": [], "channels": 0, "roles": 0},
        "errors": [],
    }


class AnarchyServerSetupService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
        rules_service: RulesChannelService,
        role_hierarchy: Optional[StaffRoleHierarchy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._rules = rules_service
        self._roles = role_hierarchy or StaffRoleHierarchy.from_config(config_manager)
        self._guild_repo = GuildConfigRepository(self.log)
        self._job_repo = JobRepository(self.log)

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def setup_anarchy_server(
        self,
        guild: discord.Guild,
        config: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        template = dict(config or self.get_config("server_setup", {}) or {})
        result = _empty_result()
        errors: List[str] = result["errors"]

        self.log.warning("Starting server setup with full wipe", extra={"guild_id": guild.id})

        await self._wipe_database(guild.id, result)
        await self._wipe_discord(guild, result)

        role_map = await self._create_roles(guild, template.get("roles") or [], result)
        channel_map, category_map = await self._create_channels(guild, template, role_map, result)

        try:
            await self._write_guild_config(guild, template, role_map, channel_map, category_map)
        except Exception as exc:
            self.log_error("setup_guild_config", exc, guild_id=guild.id)
            errors.append(f"Failed to update guild configuration: {exc}")

        rules_channel_id = channel_map.get(template.get("rules_channel", "rules"))
        if rules_channel_id:
            outcome = await self._rules.update_rules_channel(
                guild,
                rules_channel_id,
                guild.owner_id,
                self._rules.generate_default_rules(template.get("rules_template", "anarchy")),
            )
            if not outcome["success"]:
                errors.append(f"Failed to create rules message: {outcome['error']}")

        result["created"]["jobs"] = await self._create_default_jobs(
            guild, template.get("default_jobs") or [], role_map, errors
        )

        created = result["created"]
        total = len(created["roles"]) + len(created["categories"]) + len(created["channels"]) + created["jobs"]
        suffix = f" with {len(errors)} errors" if errors else ""
        result["success"] = not errors
        result["message"] = f"Anarchy & Associates server setup completed. Created {total} items{suffix}."

        await self._audit.log_action(
            guild_id=guild.id,
            action=AuditAction.SERVER_SETUP,
            actor_id=guild.owner_id or 0,
            after={"created": created, "wiped": result["wiped"]},
            metadata={"error_count": len(errors)},
            severity=AuditSeverity.CRITICAL,
        )
        self.log_operation("setup_anarchy_server", guild_id=guild.id, created=total, errors=len(errors))
        return result

    # =========================================================================
    # WIPE
    # =========================================================================

    async def _wipe_database(self, guild_id: int, result: Dict[str, Any]) -> None:
        for name, model in WIPED_MODELS:
            repo = BaseRepository(model, self.log)
            try:
                async with DatabaseService.get_transaction() as session:
                    count = await repo.delete_many_where(session, model.guild_id == guild_id)
            except Exception as exc:
                self.log_error("wipe_table", exc, guild_id=guild_id, table=name)
                result["errors"].append(f"Failed to wipe {name}: {exc}")
                continue
            result["wiped"]["collections"].append(f"{name} ({count} records)")

        async with DatabaseService.get_transaction() as session:
            await self._guild_repo.ensure_guild_config(session, guild_id)
            await self._guild_repo.update_config(
                session,
                guild_id,
                {
                    "feedback_channel_id": None,
                    "retainer_channel_id": None,
                    "modlog_channel_id": None,
                    "application_channel_id": None,
                    "default_information_channel_id": None,
                    "default_rules_channel_id": None,
                    "case_review_category_id": None,
                    "case_archive_category_id": None,
                    "client_role_id": None,
                    "permissions": default_permissions(),
                    "admin_roles": [],
                    "admin_users": [],
                },
            )

    @staticmethod
    def _deletable_role(guild: discord.Guild, role: discord.Role) -> bool:
        top = guild.me.top_role if guild.me else None
        if role.is_default() or role.managed:
            return False
        return top is None or role < top

    async def _wipe_discord(self, guild: discord.Guild, result: Dict[str, Any]) -> None:
        protected = {guild.system_channel.id if guild.system_channel else None}
        protected.add(guild.rules_channel.id if guild.rules_channel else None)

        for channel in list(guild.channels):
            if channel.id in protected:
                continue
            try:
                await channel.delete(reason=WIPE_REASON)
                result["wiped"]["channels"] += 1
            except discord.HTTPException as exc:
                result["errors"].append(f"Failed to delete channel {channel.name}: {exc}")

        for role in list(guild.roles):
            if not self._deletable_role(guild, role):
                continue
            try:
                await role.delete(reason=WIPE_REASON)
                result["wiped"]["roles"] += 1
            except discord.HTTPException as exc:
                result["errors"].append(f"Failed to delete role {role.name}: {exc}")

    # =========================================================================
    # BUILD
    # =========================================================================

    async def _create_roles(
        self,
        guild: discord.Guild,
        roles: List[Mapping[str, Any]],
        result: Dict[str, Any],
    ) -> Dict[str, discord.Role]:
        role_map: Dict[str, discord.Role] = {}
        for entry in roles:
            try:
                role = await guild.create_role(
                    name=entry["name"],
                    colour=discord.Colour(parse_color(entry.get("color"))),
                    permissions=build_permissions(entry.get("permissions") or []),
                    hoist=bool(entry.get("hoist", True)),
                    mentionable=bool(entry.get("mentionable", True)),
                    reason=SETUP_REASON,
                )
            except discord.HTTPException as exc:
                result["errors"].append(f"Failed to create role {entry['name']}: {exc}")
                continue
            role_map[entry["name"]] = role
            result["created"]["roles"].append(role.name)
        return role_map

    @staticmethod
    def _overwrites(
        guild: discord.Guild,
        category: Mapping[str, Any],
        role_map: Mapping[str, discord.Role],
    ) -> Dict[Any, discord.PermissionOverwrite]:
        """
        ``public`` categories are visible to everyone; anything else is
        hidden except to ``access_roles`` (read/write) and ``view_roles``
        (read only).
        """
        overwrites: Dict[Any, discord.PermissionOverwrite] = {}
        if category.get("visibility") == "public":
            overwrites[guild.default_role] = discord.PermissionOverwrite(view_channel=True, read_message_history=True)
        else:
            overwrites[guild.default_role] = discord.PermissionOverwrite(view_channel=False)

        for name in category.get("access_roles") or []:
            if name in role_map:
                overwrites[role_map[name]] = discord.PermissionOverwrite(
                    view_channel=True, send_messages=True, read_message_history=True
                )
        for name in category.get("view_roles") or []:
            if name in role_map:
                overwrites[role_map[name]] = discord.PermissionOverwrite(
                    view_channel=True, read_message_history=True, send_messages=False
                )
        return overwrites

    def _channel_overwrites(
        self,
        guild: discord.Guild,
        category: Mapping[str, Any],
        channel: Mapping[str, Any],
        role_map: Mapping[str, discord.Role],
        managers: List[str],
    ) -> Dict[Any, discord.PermissionOverwrite]:
        overwrites = self._overwrites(guild, category, role_map)
        if channel.get("read_only"):
            everyone = overwrites[guild.default_role]
            everyone.update(send_messages=False)
            for name in managers:
                if name in role_map:
                    overwrites[role_map[name]] = discord.PermissionOverwrite(
                        view_channel=True, send_messages=True, manage_messages=True
                    )
        return overwrites

    async def _create_channels(
        self,
        guild: discord.Guild,
        template: Mapping[str, Any],
        role_map: Mapping[str, discord.Role],
        result: Dict[str, Any],
    ) -> tuple:
        channel_map: Dict[str, int] = {}
        category_map: Dict[str, int] = {}
        managers = list(template.get("management_roles") or [])

        for category_def in template.get("categories") or []:
            try:
                category = await guild.create_category(
                    category_def["name"],
                    overwrites=self._overwrites(guild, category_def, role_map),
                    reason=SETUP_REASON,
                )
            except discord.HTTPException as exc:
                result["errors"].append(f"Failed to create category {category_def['name']}: {exc}")
                continue
            category_map[category_def["name"]] = category.id
            result["created"]["categories"].append(category.name)

            for channel_def in category_def.get("channels") or []:
                overwrites = self._channel_overwrites(guild, category_def, channel_def, role_map, managers)
                try:
                    if channel_def.get("type", "text") == "voice":
                        channel = await guild.create_voice_channel(
                            channel_def["name"], category=category, overwrites=overwrites, reason=SETUP_REASON
                        )
                    else:
                        channel = await guild.create_text_channel(
                            channel_def["name"], category=category, overwrites=overwrites, reason=SETUP_REASON
                        )
                except discord.HTTPException as exc:
                    result["errors"].append(f"Failed to create channel {channel_def['name']}: {exc}")
                    continue
                channel_map[channel_def["name"]] = channel.id
                result["created"]["channels"].append(channel.name)

        return channel_map, category_map

    async def _write_guild_config(
        self,
        guild: discord.Guild,
        template: Mapping[str, Any],
        role_map: Mapping[str, discord.Role],
        channel_map: Mapping[str, int],
        category_map: Mapping[str, int],
    ) -> None:
        changes: Dict[str, Any] = {}
        for field, channel_name in (template.get("config_channels") or {}).items():
            changes[field] = channel_map.get(channel_name)
        for field, category_name in (template.get("config_categories") or {}).items():
            changes[field] = category_map.get(category_name)

        client_role = role_map.get(template.get("client_role", "Client"))
        changes["client_role_id"] = client_role.id if client_role else None

        permissions = default_permissions()
        for role_name, actions in (template.get("role_permissions") or {}).items():
            role = role_map.get(role_name)
            if role is None:
                continue
            for action in actions:
                if action in permissions and role.id not in permissions[action]:
                    permissions[action] = permissions[action] + [role.id]
        changes["permissions"] = permissions
        changes["admin_users"] = [guild.owner_id] if guild.owner_id else []

        async with DatabaseService.get_transaction() as session:
            await self._guild_repo.ensure_guild_config(session, guild.id)
            await self._guild_repo.update_config(session, guild.id, changes)

    async def _create_default_jobs(
        self,
        guild: discord.Guild,
        jobs: List[Mapping[str, Any]],
        role_map: Mapping[str, discord.Role],
        errors: List[str],
    ) -> int:
        defaults = [dict(question) for question in self.get_config("jobs.default_questions", []) or []]
        created = 0
        for entry in jobs:
            if not entry.get("auto_create", True):
                continue
            role = role_map.get(entry["role"])
            if role is None:
                errors.append(f"Role {entry['role']} not found for job {entry['title']}")
                continue
            questions = defaults + [dict(question) for question in entry.get("questions") or []]
            try:
                validate_job_questions(questions)
            except ValidationError as exc:
                errors.append(f"Invalid questions for job {entry['title']}: {exc.message}")
                continue

            async with DatabaseService.get_transaction() as session:
                await self._job_repo.add(
                    session,
                    Job(
                        guild_id=guild.id,
                        title=entry["title"],
                        description=entry.get("description", ""),
                        staff_role=entry["role"],
                        role_id=role.id,
                        limit=self._roles.get_role_max_count(entry["role"]),
                        is_open=bool(entry.get("open", True)),
                        questions=questions,
                        posted_by=guild.owner_id or 0,
                        application_count=0,
                        hired_count=0,
                    ),
                )
            created += 1
        return created
