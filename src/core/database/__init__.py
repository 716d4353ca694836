"""
Database subsystem.

Async SQLAlchemy engine and session management plus the ORM base classes
and mixins used by every model.
"""

from src.core.database.base import (
    Base,
    IdMixin,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    utc_now,
)
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "JSONType",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
