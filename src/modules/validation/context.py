"""
CommandValidationContext: everything validation needs about one slash
command invocation, extracted once and reused as the cache key source.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from src.modules.shared.permission_context import PermissionContext
from src.modules.validation.options import CommandOptions, parse_command_options

if TYPE_CHECKING:
    import discord

# discord.AppCommandOptionType values for subcommand and subcommand group
_SUB_COMMAND = 1
_SUB_COMMAND_GROUP = 2
# user, channel, role, mentionable: delivered as snowflake strings
_SNOWFLAKE_TYPES = {6, 7, 8, 9}


@dataclass(frozen=True)
class CommandValidationContext:
    command_name: str
    subcommand_name: Optional[str]
    options: CommandOptions
    raw_options: Dict[str, Any]
    permission_context: PermissionContext
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def guild_id(self) -> int:
        return self.permission_context.guild_id

    @property
    def user_id(self) -> int:
        return self.permission_context.user_id

    @property
    def qualified_name(self) -> str:
        if self.subcommand_name:
            return f"{self.command_name}.{self.subcommand_name}"
        return self.command_name

    @classmethod
    def build(
        cls,
        command_name: str,
        subcommand_name: Optional[str],
        raw_options: Mapping[str, Any],
        permission_context: PermissionContext,
        channel_id: Optional[int] = None,
        timestamp: Optional[float] = None,
    ) -> "CommandValidationContext":
        raw = dict(raw_options)
        return cls(
            command_name=command_name,
            subcommand_name=subcommand_name,
            options=parse_command_options(command_name, subcommand_name, raw),
            raw_options=raw,
            permission_context=permission_context,
            metadata={
                "guild_id": permission_context.guild_id,
                "user_id": permission_context.user_id,
                "channel_id": channel_id,
                "timestamp": timestamp if timestamp is not None else time.time(),
            },
        )

    def to_payload(self) -> Dict[str, Any]:
        """Plain-data form stored for a pending bypass."""
        return {
            "command_name": self.command_name,
            "subcommand_name": self.subcommand_name,
            "raw_options": dict(self.raw_options),
            "permission_context": self.permission_context.to_payload(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CommandValidationContext":
        metadata = dict(payload.get("metadata") or {})
        return cls.build(
            command_name=payload["command_name"],
            subcommand_name=payload.get("subcommand_name"),
            raw_options=payload.get("raw_options") or {},
            permission_context=PermissionContext.from_payload(payload["permission_context"]),
            channel_id=metadata.get("channel_id"),
            timestamp=metadata.get("timestamp"),
        )


def _flatten_options(options: List[Dict[str, Any]]) -> tuple:
    """Walk the raw interaction payload; returns (subcommand, {name: value})."""
    subcommand: Optional[str] = None
    values: Dict[str, Any] = {}
    for option in options or []:
        option_type = option.get("type")
        if option_type in (_SUB_COMMAND, _SUB_COMMAND_GROUP):
            nested_sub, nested_values = _flatten_options(option.get("options") or [])
            subcommand = nested_sub or option.get("name")
            values.update(nested_values)
            continue
        value = option.get("value")
        if value is None:
            continue
        if option_type in _SNOWFLAKE_TYPES:
            try:
                value = int(value)
            except (TypeError, ValueError):
                pass
        values[option["name"]] = value
    return subcommand, values


def extract_validation_context(
    interaction: discord.Interaction,
    permission_context: PermissionContext,
) -> CommandValidationContext:
    """
    Build the validation context for a slash command interaction.

    The command name is the root command; the subcommand name is the
    innermost subcommand, and every leaf option is flattened into one map.
    """
    data = interaction.data or {}
    command = interaction.command
    root_name = getattr(getattr(command, "root_parent", None), "name", None)
    command_name = root_name or data.get("name") or getattr(command, "name", "")

    subcommand, values = _flatten_options(data.get("options") or [])

    return CommandValidationContext.build(
        command_name=command_name,
        subcommand_name=subcommand,
        raw_options=values,
        permission_context=permission_context,
        channel_id=interaction.channel_id,
    )
