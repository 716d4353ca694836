"""
Shared domain foundations.

- BaseService: logging, config access, event emission
- BaseRepository: type-safe async data access
- Domain exceptions: actor-facing errors and business rule violations
- Validators: raise-on-error input checks

Usage
-----
    from src.modules.shared import BaseService, BaseRepository, NotFoundError
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    BusinessRuleViolationError,
    InvalidOperationError,
    LawBotDomainException,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    get_error_severity,
    should_alert,
)
from .validators import (
    validate_job_questions,
    validate_length,
    validate_range,
    validate_roblox_username,
)

__all__ = [
    "BaseService",
    "BaseRepository",
    "LawBotDomainException",
    "NotFoundError",
    "ValidationError",
    "InvalidOperationError",
    "PermissionDeniedError",
    "BusinessRuleViolationError",
    "get_error_severity",
    "should_alert",
    "validate_roblox_username",
    "validate_length",
    "validate_range",
    "validate_job_questions",
]
