"""
Logging infrastructure.

Exports the logging setup/teardown helpers and the ContextVar-backed
LogContext used to tag every record emitted while handling a command.
"""

from src.core.logging.logger import (
    LogContext,
    clear_log_context,
    get_logger,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "set_log_context",
    "clear_log_context",
]
