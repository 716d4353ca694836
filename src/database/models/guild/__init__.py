"""Guild-level models: configuration, rules channels and the audit log."""

from .audit_log import AuditLog
from .guild_config import GuildConfig
from .rules_channel import RulesChannel

__all__ = ["AuditLog", "GuildConfig", "RulesChannel"]
