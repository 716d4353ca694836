"""
Domain exceptions.

Purpose
-------
Structured exceptions raised by domain services for business rule
violations and actor-facing errors. Cogs translate them into error or
warning embeds; nothing here is shown as a stack trace.

Design Notes
------------
- All domain exceptions inherit from ``LawBotDomainException`` and share the
  same metadata as infrastructure errors (``details``, ``severity``,
  ``is_retryable``, ``error_code``).
- Validation services never raise these across their boundary; they return
  structured results. Domain services raise them for preconditions that a
  command handler could not have checked in advance.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from src.core.exceptions import ErrorSeverity


class LawBotDomainException(Exception):
    """
    Base exception for domain-level errors.

    Args:
        message: Human-readable error message (safe to show the actor)
        details: Additional structured data about the error
        severity: Severity used by log handlers
        is_retryable: Whether retrying the same command could succeed
        error_code: Stable identifier for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.INFO
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class NotFoundError(LawBotDomainException):
    """A referenced entity does not exist in this guild."""

    def __init__(self, resource_type: str, identifier: Any) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(
            f"{resource_type} not found: {identifier}",
            details={"resource_type": resource_type, "identifier": str(identifier)},
            error_code="NOT_FOUND",
        )


class ValidationError(LawBotDomainException):
    """A single input field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(
            f"Validation failed for {field}: {message}",
            details={"field": field, "message": message},
            error_code="VALIDATION_ERROR",
        )


class InvalidOperationError(LawBotDomainException):
    """The operation is not allowed in the entity's current state."""

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action}: {reason}",
            details={"action": action, "reason": reason},
            error_code="INVALID_OPERATION",
        )


class PermissionDeniedError(LawBotDomainException):
    """The actor lacks the permission action required for the operation."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            reason,
            details={"action": action},
            error_code="PERMISSION_DENIED",
        )


class BusinessRuleViolationError(LawBotDomainException):
    """One or more business rules failed and no bypass was confirmed."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, rule: str, errors: List[str]) -> None:
        self.rule = rule
        self.errors = list(errors)
        super().__init__(
            "; ".join(self.errors) or f"Business rule '{rule}' failed",
            details={"rule": rule, "errors": self.errors},
            error_code="BUSINESS_RULE_VIOLATION",
        )


def get_error_severity(exc: Exception) -> ErrorSeverity:
    if isinstance(exc, LawBotDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
