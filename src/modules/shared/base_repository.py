"""
Base Repository Pattern

Purpose
-------
Generic, type-safe data access over SQLAlchemy 2.0 async sessions. Every
entity repository builds on this class and adds only entity-specific
queries.

Design Notes
------------
This base repository provides:
- find by primary key or by arbitrary conditions (with ordering and paging)
- ``add`` that stamps ``created_at``/``updated_at`` and flushes for an id
- ``update(id, partial)`` returning the updated row or ``None``
- ``delete(id) -> bool`` and ``delete_many_where(...) -> int``
- existence and counting helpers
- DEBUG logging for every operation

What this class does NOT do:
- Manage transactions (callers pass a session from DatabaseService)
- Contain business logic
- Lock rows for read-then-write checks (role limits are checked without
  locking; see DESIGN.md)

Usage
-----
    class StaffRepository(BaseRepository[Staff]):
        async def find_active_by_user(self, session, guild_id, user_id):
            return await self.find_one_where(
                session,
                Staff.guild_id == guild_id,
                Staff.user_id == user_id,
                Staff.status == StaffStatus.ACTIVE.value,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select

from src.core.database.base import utc_now

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key."""
        instance = await session.get(self.model_class, id_value)
        self.log.debug(
            f"Repository.get: {self._model_name}",
            extra={"model": self._model_name, "id": id_value, "found": instance is not None},
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """First record matching all conditions, or ``None``."""
        stmt = select(self.model_class).where(*conditions).limit(1)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalars().first()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={"model": self._model_name, "found": instance is not None, "locked": for_update},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        """
        Records matching all conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results
            offset: Optional number of rows to skip
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={"model": self._model_name, "found_count": len(instances), "limit": limit},
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = int(result.scalar_one())

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": count},
        )
        return count

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def add(self, session: AsyncSession, instance: T) -> T:
        """
        Add a new instance, stamping timestamps, and flush so the primary
        key is populated.
        """
        now = utc_now()
        if hasattr(instance, "created_at") and getattr(instance, "created_at", None) is None:
            setattr(instance, "created_at", now)
        if hasattr(instance, "updated_at"):
            setattr(instance, "updated_at", now)

        session.add(instance)
        await session.flush()

        self.log.debug(
            f"Repository.add: {self._model_name}",
            extra={"model": self._model_name, "id": getattr(instance, "id", None)},
        )
        return instance

    async def update(
        self, session: AsyncSession, id_value: Any, changes: Dict[str, Any]
    ) -> Optional[T]:
        """
        Apply a partial update by primary key.

        Returns:
            The updated instance, or ``None`` if no row has that id.
        """
        instance = await session.get(self.model_class, id_value)
        if instance is None:
            self.log.debug(
                f"Repository.update: {self._model_name} missing",
                extra={"model": self._model_name, "id": id_value},
            )
            return None

        for field_name, value in changes.items():
            if not hasattr(instance, field_name):
                raise AttributeError(f"{self._model_name} has no field '{field_name}'")
            setattr(instance, field_name, value)
        if hasattr(instance, "updated_at"):
            setattr(instance, "updated_at", utc_now())

        await session.flush()

        self.log.debug(
            f"Repository.update: {self._model_name}",
            extra={"model": self._model_name, "id": id_value, "fields": sorted(changes)},
        )
        return instance

    async def delete(self, session: AsyncSession, id_value: Any) -> bool:
        instance = await session.get(self.model_class, id_value)
        if instance is None:
            return False

        await session.delete(instance)
        await session.flush()

        self.log.debug(
            f"Repository.delete: {self._model_name}",
            extra={"model": self._model_name, "id": id_value},
        )
        return True

    async def delete_many_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Bulk delete; returns the number of rows removed."""
        result = await session.execute(sa_delete(self.model_class).where(*conditions))
        deleted = int(result.rowcount or 0)

        self.log.debug(
            f"Repository.delete_many_where: {self._model_name}",
            extra={"model": self._model_name, "deleted": deleted},
        )
        return deleted

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
