"""
Staff role hierarchy.

A total order over the firm's positions. Levels drive every hierarchy
check (promote, demote, fire, act-on-lower-only); max counts drive the
role-limit business rule. Definitions can be overridden through the
``staff.roles`` config key.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from src.core.config.config_manager import ConfigManager


class StaffRole(str, Enum):
    MANAGING_PARTNER = "Managing Partner"
    SENIOR_PARTNER = "Senior Partner"
    JUNIOR_PARTNER = "Junior Partner"
    SENIOR_ASSOCIATE = "Senior Associate"
    JUNIOR_ASSOCIATE = "Junior Associate"
    PARALEGAL = "Paralegal"


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    level: int
    max_count: Optional[int]


DEFAULT_ROLE_DEFINITIONS = (
    RoleDefinition(StaffRole.MANAGING_PARTNER.value, 6, 1),
    RoleDefinition(StaffRole.SENIOR_PARTNER.value, 5, 3),
    RoleDefinition(StaffRole.JUNIOR_PARTNER.value, 4, 5),
    RoleDefinition(StaffRole.SENIOR_ASSOCIATE.value, 3, 10),
    RoleDefinition(StaffRole.JUNIOR_ASSOCIATE.value, 2, 10),
    RoleDefinition(StaffRole.PARALEGAL.value, 1, 10),
)

# Minimum level allowed to promote or demote anyone.
MANAGEMENT_LEVEL = 5


class StaffRoleHierarchy:
    """
    Lookup and comparison helpers over a set of role definitions.

    Example:
        >>> hierarchy = StaffRoleHierarchy()
        >>> hierarchy.get_next_promotion("Paralegal")
        'Junior Associate'
        >>> hierarchy.can_promote("Senior Partner", "Junior Partner")
        True
    """

    def __init__(self, definitions: Iterable[RoleDefinition] = DEFAULT_ROLE_DEFINITIONS) -> None:
        self._by_name: Dict[str, RoleDefinition] = {item.name: item for item in definitions}
        self._by_level: Dict[int, RoleDefinition] = {item.level: item for item in self._by_name.values()}

    @classmethod
    def from_config(cls, config_manager: ConfigManager) -> "StaffRoleHierarchy":
        raw = config_manager.get("staff.roles")
        if not raw:
            return cls()
        return cls(
            RoleDefinition(
                name=str(item["name"]),
                level=int(item["level"]),
                max_count=int(item["max_count"]) if item.get("max_count") is not None else None,
            )
            for item in raw
        )

    def is_valid_role(self, role: Optional[str]) -> bool:
        return role in self._by_name

    def get_role_level(self, role: Optional[str]) -> int:
        """Level of ``role``; 0 for unknown roles."""
        definition = self._by_name.get(role or "")
        return definition.level if definition else 0

    def get_role_max_count(self, role: Optional[str]) -> Optional[int]:
        """Configured hiring cap, or ``None`` when the role is unlimited or unknown."""
        definition = self._by_name.get(role or "")
        return definition.max_count if definition else None

    def get_next_promotion(self, role: str) -> Optional[str]:
        target = self._by_level.get(self.get_role_level(role) + 1)
        return target.name if target and self.is_valid_role(role) else None

    def get_previous_demotion(self, role: str) -> Optional[str]:
        target = self._by_level.get(self.get_role_level(role) - 1)
        return target.name if target and self.is_valid_role(role) else None

    def can_promote(self, actor_role: str, target_role: str) -> bool:
        actor_level = self.get_role_level(actor_role)
        return actor_level >= MANAGEMENT_LEVEL and self.get_role_level(target_role) < actor_level

    def can_demote(self, actor_role: str, target_role: str) -> bool:
        return self.can_promote(actor_role, target_role)

    def outranks(self, actor_role: Optional[str], target_role: Optional[str]) -> bool:
        """Strictly higher level; unknown roles rank below everything."""
        return self.get_role_level(actor_role) > self.get_role_level(target_role)

    def all_roles(self) -> List[RoleDefinition]:
        """Highest level first."""
        return sorted(self._by_name.values(), key=lambda item: item.level, reverse=True)

    def role_names(self) -> List[str]:
        return [item.name for item in self.all_roles()]
