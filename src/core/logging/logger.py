"""
Logging subsystem.

Purpose
-------
Single place where the process-wide logging stack is configured:

- Context propagation (user, guild, command, correlation id) through a
  ContextVar so every record emitted while handling a command carries it.
- Non-blocking output through a bounded QueueHandler/QueueListener pair.
- Console output as colored text in development and JSON in production.
- A daily-rotating JSON file in ``Config.LOGS_DIR`` as a local backup.

Public API
----------
- setup_logging() / shutdown_logging()
- get_logger(name)
- LogContext (sync + async context manager)
- set_log_context() / clear_log_context()

Extra fields passed as ``logger.info("msg", extra={...})`` are merged into
the JSON output under ``"extra"``.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from src.core.config.config import Config


_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

_INITIALIZED_FLAG = "_lawbot_logging_initialized"


@dataclass(frozen=True)
class LoggerSettings:
    """Formats and limits for the logging stack."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "lawbot.json.log"
    DAILY_BACKUP_COUNT: int = 3
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def log_level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return Config.is_production()
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and sys.stdout.isatty()

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()


SETTINGS = LoggerSettings()

_queue_listener: Optional[QueueListener] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copies the active LogContext onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get({})
        record.user_id = context.get("user_id", "N/A")
        record.guild_id = context.get("guild_id", "N/A")
        record.command = context.get("command", "N/A")
        record.correlation_id = context.get("correlation_id", "N/A")
        record.operation = context.get("operation", "N/A")
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        color = self.COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unknown record attributes go under ``extra``."""

    RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}
    CONTEXT_ATTRS = ("user_id", "guild_id", "command", "correlation_id", "operation")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                payload[attr] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED and key not in self.CONTEXT_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


class DroppingQueueHandler(QueueHandler):
    """QueueHandler that drops records instead of blocking when the queue is full."""

    dropped: int = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            DroppingQueueHandler.dropped += 1


# ============================================================================
# Setup
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(SETTINGS.log_level)
    if SETTINGS.use_json:
        handler.setFormatter(JSONFormatter())
    elif SETTINGS.use_colors:
        handler.setFormatter(ColoredFormatter(SETTINGS.CONSOLE_FORMAT, SETTINGS.DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(SETTINGS.CONSOLE_FORMAT, SETTINGS.DATE_FORMAT))
    return handler


def _build_file_handler() -> logging.Handler:
    SETTINGS.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(SETTINGS.logs_dir / SETTINGS.DAILY_BASENAME),
        when="midnight",
        backupCount=SETTINGS.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(SETTINGS.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Configure the root logger once; later calls are no-ops."""
    global _queue_listener

    root = logging.getLogger()
    if getattr(root, _INITIALIZED_FLAG, False):
        return

    root.setLevel(SETTINGS.log_level)
    root.handlers.clear()

    handlers = [_build_console_handler()]
    if not Config.is_testing():
        handlers.append(_build_file_handler())

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(SETTINGS.QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    for noisy in ("discord", "discord.http", "discord.gateway", "asyncio", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    setattr(root, _INITIALIZED_FLAG, True)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(SETTINGS.log_level),
            "json": SETTINGS.use_json,
        },
    )


def shutdown_logging() -> None:
    """Flush and stop the queue listener."""
    global _queue_listener

    root = logging.getLogger()
    if not getattr(root, _INITIALIZED_FLAG, False):
        return

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None

    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    setattr(root, _INITIALIZED_FLAG, False)


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Binds command context to every log record emitted inside the block.

    Usage:
        async with LogContext(user_id=..., guild_id=..., command="/staff hire"):
            ...
    """

    def __init__(
        self,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        command: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "user_id": str(user_id) if user_id is not None else "N/A",
            "guild_id": str(guild_id) if guild_id is not None else "N/A",
            "command": command or "N/A",
            "operation": operation or "N/A",
            "correlation_id": correlation_id or str(uuid.uuid4())[:8],
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge fields into the active context without a ``with`` block."""
    current = _log_context.get({}).copy()
    for key, value in fields.items():
        if value is None:
            continue
        current[key] = str(value) if key in ("user_id", "guild_id") else value
    _log_context.set(current)


def clear_log_context() -> None:
    _log_context.set({})


setup_logging()
