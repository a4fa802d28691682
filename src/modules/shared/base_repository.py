"""
Base Repository Pattern

Purpose
-------
A type-safe generic repository over one ORM table, following SQLAlchemy 2.0
async conventions. The SQL record store composes one repository per table
and keeps all statement building here.

Design Notes
------------
- Every method takes the session explicitly; transactions are opened by
  `DatabaseService.get_transaction()` in the caller.
- No business logic and no domain conversion.
- Debug-level structured logging for each statement.

Usage
-----
    class ActivityRowRepository(BaseRepository[ActivityRow]):
        ...

    repo = BaseRepository(ActivityRow, logger)
    rows = await repo.find_many_where(
        session, ActivityRow.profile_id == "p-1", order_by=[ActivityRow.occurred_at.desc()]
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic repository for one mapped class.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, *primary_key: Any) -> Optional[T]:
        """Get a single row by primary key (composite keys in column order)."""
        key = primary_key[0] if len(primary_key) == 1 else tuple(primary_key)
        instance = await session.get(self.model_class, key)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": str(key),
                "found": instance is not None,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
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
            extra={"model": self.model_class.__name__, "count": len(instances)},
        )
        return instances

    async def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Bulk delete; returns the number of rows removed."""
        result = await session.execute(delete(self.model_class).where(*conditions))
        removed = int(result.rowcount or 0)
        self.log.debug(
            f"Repository.delete_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "removed": removed},
        )
        return removed
