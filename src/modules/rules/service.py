"""
RulesChannelService - the rules embed kept in a guild text channel.

Each configured channel has one RulesChannel row and one bot message. The
message is edited in place; when it has been deleted a new one is posted and
its id stored.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import discord

from src.core.database.service import DatabaseService
from src.database.models.guild.rules_channel import RulesChannel
from src.modules.rules.repository import RulesChannelRepository
from src.modules.rules.templates import generate_default_rules
from src.modules.shared.base_service import BaseService
from src.ui.embeds import DESCRIPTION_LIMIT, FIELD_VALUE_LIMIT, FOOTER_LIMIT, MAX_FIELDS, TITLE_LIMIT, truncate

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus

RULE_FIELDS = ("title", "content", "category", "severity")
CONTENT_FIELDS = ("title", "content", "rules", "color", "footer", "show_numbers", "additional_fields")
SEVERITY_BADGES = {"critical": " ⚠️", "high": " ⚡", "medium": " •"}
UNCATEGORIZED = "General Provisions"


def _format_rule(rule: Mapping[str, Any], show_numbers: bool) -> str:
    number = f"**Article {rule.get('order')}** - " if show_numbers else ""
    badge = SEVERITY_BADGES.get(rule.get("severity") or "", "")
    return f"{number}**{rule.get('title', '')}**{badge}\n> {rule.get('content', '')}"


class RulesChannelService(BaseService):
    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._repo = RulesChannelRepository(self.log)

    @staticmethod
    def generate_default_rules(template: str = "general") -> Dict[str, Any]:
        return generate_default_rules(template)

    @staticmethod
    def create_rules_embed(data: Mapping[str, Any]) -> discord.Embed:
        """
        Render rules grouped by category, in ``order``. Inactive rules are
        left out. Accepts a template dict or a RulesChannel row.
        """
        if isinstance(data, RulesChannel):
            data = {field: getattr(data, field) for field in CONTENT_FIELDS}

        embed = discord.Embed(
            title=truncate(data.get("title") or "Rules", TITLE_LIMIT),
            description=truncate(data.get("content") or "", DESCRIPTION_LIMIT),
            color=data.get("color") or 0x000000,
            timestamp=discord.utils.utcnow(),
        )
        if data.get("footer"):
            embed.set_footer(text=truncate(data["footer"], FOOTER_LIMIT))

        show_numbers = data.get("show_numbers", True) is not False
        rules = sorted(
            (rule for rule in data.get("rules") or [] if rule.get("is_active", True)),
            key=lambda rule: rule.get("order", 0),
        )
        grouped: Dict[str, List[Mapping[str, Any]]] = {}
        for rule in rules:
            grouped.setdefault(rule.get("category") or UNCATEGORIZED, []).append(rule)

        for category, category_rules in grouped.items():
            text = "\n\n".join(_format_rule(rule, show_numbers) for rule in category_rules)
            embed.add_field(name=f"§ {category}", value=truncate(text, FIELD_VALUE_LIMIT), inline=False)

        for extra in data.get("additional_fields") or []:
            if len(embed.fields) >= MAX_FIELDS:
                break
            embed.add_field(
                name=truncate(extra["name"], TITLE_LIMIT),
                value=truncate(extra["value"], FIELD_VALUE_LIMIT),
                inline=bool(extra.get("inline", False)),
            )
        return embed

    @staticmethod
    def _text_channel(guild: discord.Guild, channel_id: int) -> Optional[discord.TextChannel]:
        channel = guild.get_channel(channel_id)
        return channel if isinstance(channel, discord.TextChannel) else None

    async def _publish(
        self,
        channel: discord.TextChannel,
        embed: discord.Embed,
        message_id: Optional[int],
    ) -> int:
        """Edit the stored message, or post a new one. Returns the message id."""
        if message_id:
            try:
                message = await channel.fetch_message(message_id)
                await message.edit(embed=embed)
                return message.id
            except discord.NotFound:
                self.log.warning(
                    "Rules message missing, posting a new one",
                    extra={"channel_id": channel.id, "message_id": message_id},
                )
        message = await channel.send(embed=embed)
        return message.id

    async def update_rules_channel(
        self,
        guild: discord.Guild,
        channel_id: int,
        updated_by: int,
        data: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Post or refresh the rules embed in ``channel_id`` and upsert its row.

        ``data`` holds any of title, content, rules, color, footer,
        show_numbers and additional_fields; ``title`` is required for a
        channel that has no rules yet.
        """
        channel = self._text_channel(guild, channel_id)
        if channel is None:
            return {"success": False, "error": "Channel not found or is not a text channel"}

        async with DatabaseService.get_session() as session:
            existing = await self._repo.find_by_channel(session, guild.id, channel_id)

        content = {field: data[field] for field in CONTENT_FIELDS if field in data}
        if existing is None and not content.get("title"):
            return {"success": False, "error": "A title is required for a new rules channel"}

        merged = dict(content)
        if existing is not None:
            merged = {field: content.get(field, getattr(existing, field)) for field in CONTENT_FIELDS}

        message_id = await self._publish(
            channel,
            self.create_rules_embed(merged),
            existing.message_id if existing else None,
        )

        async with DatabaseService.get_transaction() as session:
            if existing is None:
                row = await self._repo.add(
                    session,
                    RulesChannel(
                        guild_id=guild.id,
                        channel_id=channel_id,
                        message_id=message_id,
                        title=merged["title"],
                        content=merged.get("content") or "",
                        rules=list(merged.get("rules") or []),
                        color=merged.get("color"),
                        footer=merged.get("footer"),
                        show_numbers=merged.get("show_numbers", True),
                        additional_fields=list(merged.get("additional_fields") or []),
                        last_updated_by=updated_by,
                    ),
                )
            else:
                row = await self._repo.update(
                    session,
                    existing.id,
                    {**content, "message_id": message_id, "last_updated_by": updated_by},
                )

        self.log_operation("update_rules_channel", guild_id=guild.id, channel_id=channel_id, message_id=message_id)
        return {"success": True, "rules_channel": row}

    async def get_rules_channel(self, guild_id: int, channel_id: int) -> Optional[RulesChannel]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_by_channel(session, guild_id, channel_id)

    async def list_rules_channels(self, guild_id: int) -> List[RulesChannel]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_by_guild(session, guild_id)

    async def delete_rules_channel(self, guild: discord.Guild, channel_id: int) -> bool:
        async with DatabaseService.get_transaction() as session:
            existing = await self._repo.find_by_channel(session, guild.id, channel_id)
            if existing is None:
                return False
            message_id = existing.message_id
            deleted = await self._repo.delete(session, existing.id)

        channel = self._text_channel(guild, channel_id)
        if message_id and channel is not None:
            try:
                message = await channel.fetch_message(message_id)
                await message.delete()
            except discord.HTTPException as exc:
                self.log_side_effect_failure("delete_rules_message", exc, guild_id=guild.id, channel_id=channel_id)

        self.log_operation("delete_rules_channel", guild_id=guild.id, channel_id=channel_id)
        return deleted

    async def sync_rules_message(self, guild: discord.Guild, channel_id: int) -> bool:
        """Re-render the stored rules into the channel. Discord failures return False."""
        row = await self.get_rules_channel(guild.id, channel_id)
        channel = self._text_channel(guild, channel_id)
        if row is None or channel is None:
            return False

        try:
            message_id = await self._publish(channel, self.create_rules_embed(row), row.message_id)
        except discord.HTTPException as exc:
            self.log_side_effect_failure("sync_rules_message", exc, guild_id=guild.id, channel_id=channel_id)
            return False

        if message_id != row.message_id:
            async with DatabaseService.get_transaction() as session:
                await self._repo.update(session, row.id, {"message_id": message_id})
        return True

    async def add_rule(
        self,
        guild: discord.Guild,
        channel_id: int,
        rule: Mapping[str, Any],
        updated_by: int,
    ) -> Optional[RulesChannel]:
        """Append ``rule`` with the next order number and a fresh id."""
        async with DatabaseService.get_transaction() as session:
            row = await self._repo.find_by_channel(session, guild.id, channel_id, for_update=True)
            if row is None:
                return None
            rules = list(row.rules or [])
            new_rule = {field: rule.get(field) for field in RULE_FIELDS}
            new_rule.update(id=f"rule_{uuid.uuid4().hex[:8]}", order=len(rules) + 1, is_active=True)
            row = await self._repo.update(
                session, row.id, {"rules": rules + [new_rule], "last_updated_by": updated_by}
            )

        await self.sync_rules_message(guild, channel_id)
        self.log_operation("add_rule", guild_id=guild.id, channel_id=channel_id, rule_id=new_rule["id"])
        return row

    async def remove_rule(
        self,
        guild: discord.Guild,
        channel_id: int,
        rule_id: str,
        updated_by: int,
    ) -> Optional[RulesChannel]:
        """Drop ``rule_id`` and renumber the remaining rules from 1."""
        async with DatabaseService.get_transaction() as session:
            row = await self._repo.find_by_channel(session, guild.id, channel_id, for_update=True)
            if row is None:
                return None
            remaining = [dict(rule) for rule in row.rules or [] if rule.get("id") != rule_id]
            for order, rule in enumerate(remaining, start=1):
                rule["order"] = order
            row = await self._repo.update(session, row.id, {"rules": remaining, "last_updated_by": updated_by})

        await self.sync_rules_message(guild, channel_id)
        self.log_operation("remove_rule", guild_id=guild.id, channel_id=channel_id, rule_id=rule_id)
        return row
