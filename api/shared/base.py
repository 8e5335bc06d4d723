"""Base repository with the CRUD operations shared by feature repositories."""
from abc import ABC
from typing import Any, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.entities.base import BaseEntity

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(ABC, Generic[T]):
    """Repository bound to one session; callers own commit and rollback."""

    model: Type[T]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, entity: T) -> T:
        """Create new entity."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def get_by_id(self, entity_id: str) -> Optional[T]:
        """Get entity by ID."""
        stmt = select(self.model).where(self.model.id == entity_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_by_id(self, entity_id: str, **kwargs: Any) -> Optional[T]:
        """Update entity by ID with field values."""
        stmt = (
            update(self.model)
            .where(self.model.id == entity_id)
            .values(**kwargs)
            .returning(self.model)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        entity = result.scalar_one_or_none()
        if entity:
            await self.session.refresh(entity)
        return entity

    async def delete(self, entity_id: str) -> bool:
        """Delete entity by ID."""
        stmt = delete(self.model).where(self.model.id == entity_id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        order_by: Optional[str] = None,
        **filters: Any,
    ) -> Tuple[List[T], int]:
        """List entities with pagination and equality filters.

        A ``None`` filter value matches SQL ``NULL``.
        """
        count_stmt = select(func.count(self.model.id))
        stmt = select(self.model)

        for field_name, value in filters.items():
            if not hasattr(self.model, field_name):
                continue
            field = getattr(self.model, field_name)
            if value is None:
                condition = field.is_(None)
            elif isinstance(value, (list, tuple)):
                condition = field.in_(value)
            else:
                condition = field == value
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        if order_by:
            descending = order_by.startswith("-")
            field_name = order_by.lstrip("-")
            if hasattr(self.model, field_name):
                field = getattr(self.model, field_name)
                stmt = stmt.order_by(field.desc() if descending else field.asc())

        stmt = stmt.offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        count_result = await self.session.execute(count_stmt)

        total = count_result.scalar() or 0
        return list(result.scalars().all()), int(total)
