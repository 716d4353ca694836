"""
Base Service Foundation

Purpose
-------
Common constructor and helpers for every domain service. Services apply
validated mutations through repositories, write audit records and emit
events after their transaction commits.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access (``get_config``)
- Event emission that never fails the calling operation
- A single place to log side-effect failures (Discord role or message
  sync) at WARNING without rolling back the database write

What this class does NOT do:
- Manage database transactions (DatabaseService does)
- Talk to Discord directly

Usage
-----
    class StaffService(BaseService):
        def __init__(self, config_manager, event_bus, logger, ...):
            super().__init__(config_manager, event_bus, logger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Application configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event; publishing failures are logged, not raised."""
        try:
            await self._events.publish(event_type, {**data, **(context or {})})
        except Exception as exc:
            self.log.warning(
                f"Event emission failed: {event_type}",
                extra={"event": event_type, "error": str(exc)},
            )

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=error,
        )

    def log_side_effect_failure(self, step: str, error: Exception, **context: Any) -> None:
        """
        The primary write already committed; Discord and the database may now
        disagree until an operator re-runs the sync.
        """
        self.log.warning(
            f"Side effect '{step}' failed after commit: {error}",
            extra={
                "operation": step,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "compensated": False,
                **context,
            },
        )
