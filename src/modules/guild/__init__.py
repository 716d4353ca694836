"""
Guild Module
============

Per-guild configuration and permission resolution.

Exports:
- GuildConfigRepository: lazily-created per-guild settings row
- PermissionService: action permissions, admin users and admin roles
"""

from .permission_service import PermissionService
from .repository import GuildConfigRepository, default_permissions

__all__ = ["GuildConfigRepository", "PermissionService", "default_permissions"]
