"""
Validation result values.

Every rule evaluator returns one of these; CommandValidationService folds
them into a single CommandValidationResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from src.database.models.enums import BypassType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from src.modules.validation.context import CommandValidationContext


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    bypass_available: bool = False
    bypass_type: Optional[BypassType] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, warnings: Optional[List[str]] = None, **metadata: Any) -> "ValidationResult":
        return cls(valid=True, warnings=list(warnings or []), metadata=metadata)

    @classmethod
    def fail(cls, *errors: str, **metadata: Any) -> "ValidationResult":
        return cls(valid=False, errors=list(errors), metadata=metadata)


@dataclass(frozen=True)
class RoleLimitValidationResult(ValidationResult):
    current_count: int = 0
    max_count: Optional[int] = None
    role_name: str = ""


@dataclass(frozen=True)
class ClientCaseLimitResult(ValidationResult):
    current_cases: int = 0
    max_cases: int = 0
    client_id: Optional[int] = None


@dataclass(frozen=True)
class StaffValidationResult(ValidationResult):
    is_active_staff: bool = False
    current_role: Optional[str] = None
    has_required_permissions: bool = False


@dataclass(frozen=True)
class PermissionValidationResult(ValidationResult):
    has_permission: bool = False
    required_permission: str = ""
    granted_permissions: List[str] = field(default_factory=list)


# --------------------------------------------------------------------------- #
# Command-level aggregation
# --------------------------------------------------------------------------- #


@dataclass
class CommandValidationRule:
    """A named check run by CommandValidationService. Higher priority runs first."""

    name: str
    validate: Callable[["CommandValidationContext"], Awaitable[ValidationResult]]
    priority: int = 0
    bypassable: bool = False


@dataclass
class BypassRequest:
    validation_result: ValidationResult
    context: "CommandValidationContext"
    rule_name: Optional[str] = None
    bypass_reason: Optional[str] = None


@dataclass
class CommandValidationOptions:
    skip_permission_check: bool = False
    skip_business_rules: bool = False
    skip_entity_validation: bool = False
    required_permission: Optional[str] = None
    custom_rules: List[CommandValidationRule] = field(default_factory=list)
    # Set when replaying a confirmed bypass: cache is skipped and bypassable
    # failures become warnings.
    bypass_confirmed: bool = False


@dataclass
class CommandValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    bypass_requests: List[BypassRequest] = field(default_factory=list)
    requires_confirmation: bool = False
    bypass_token: Optional[str] = None


# --------------------------------------------------------------------------- #
# Cross-entity integrity
# --------------------------------------------------------------------------- #


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


RepairAction = Callable[["AsyncSession"], Awaitable[None]]


@dataclass
class ValidationIssue:
    severity: IssueSeverity
    entity_type: str
    entity_id: str
    message: str
    field: Optional[str] = None
    can_auto_repair: bool = False
    repair_action: Optional[RepairAction] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "field": self.field,
            "message": self.message,
            "can_auto_repair": self.can_auto_repair,
        }
