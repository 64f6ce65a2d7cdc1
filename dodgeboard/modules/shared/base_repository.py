"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction for database operations
following SQLAlchemy 2.0 async patterns. Repositories encapsulate data access
and never open or commit transactions themselves.

Design Notes
------------
This base repository provides:
- Lookup by primary key
- Filtered multi-row lookups
- Counting and deletion helpers
- A dialect-aware `insert()` so ON CONFLICT statements work on both
  PostgreSQL (production) and SQLite (tests)

Usage
-----
    class ScoreRepository(BaseRepository[ScoreRecord]):
        async def best_for_player(self, session, player_id):
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


def dialect_insert(session: AsyncSession, model_class: Type[Any]):
    """
    Return an INSERT construct supporting `on_conflict_*` for the session's dialect.

    Both PostgreSQL and SQLite implement `on_conflict_do_nothing` /
    `on_conflict_do_update` with the same keyword arguments.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model_class)
    if dialect == "sqlite":
        return sqlite.insert(model_class)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported on {dialect}")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key (no lock)."""
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )

        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class)
        if conditions:
            stmt = stmt.where(*conditions)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        return instance

    async def delete_where(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        """Bulk delete; returns the number of rows removed."""
        result = await session.execute(delete(self.model_class).where(*conditions))
        return int(result.rowcount or 0)
