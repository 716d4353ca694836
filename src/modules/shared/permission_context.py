"""
Per-invocation actor context.

Built fresh for each slash command from the ``discord.Interaction`` and
never persisted. Every permission and business-rule check consumes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Tuple

if TYPE_CHECKING:
    import discord


@dataclass(frozen=True)
class PermissionContext:
    guild_id: int
    user_id: int
    user_roles: Tuple[int, ...] = field(default_factory=tuple)
    is_guild_owner: bool = False

    def has_any_role(self, role_ids) -> bool:
        wanted = set(role_ids or ())
        return any(role_id in wanted for role_id in self.user_roles)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "user_id": self.user_id,
            "user_roles": list(self.user_roles),
            "is_guild_owner": self.is_guild_owner,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PermissionContext":
        return cls(
            guild_id=int(payload["guild_id"]),
            user_id=int(payload["user_id"]),
            user_roles=tuple(int(role_id) for role_id in payload.get("user_roles", ())),
            is_guild_owner=bool(payload.get("is_guild_owner", False)),
        )


class PermissionContextResolver:
    """Derives a PermissionContext from the actor of an interaction."""

    @staticmethod
    def from_interaction(interaction: discord.Interaction) -> PermissionContext:
        guild = interaction.guild
        if guild is None:
            raise ValueError("Commands must be used inside a server")

        user = interaction.user
        # @everyone carries the guild id and grants nothing
        roles = tuple(role.id for role in getattr(user, "roles", ()) if role.id != guild.id)

        return PermissionContext(
            guild_id=guild.id,
            user_id=user.id,
            user_roles=roles,
            is_guild_owner=guild.owner_id == user.id,
        )
