"""Repository for memory items."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert

from api.features.memory.entities.memory import ChatMemory
from api.shared.base import BaseRepository


class MemoryRepository(BaseRepository[ChatMemory]):
    model = ChatMemory

    @staticmethod
    def _live(now: datetime):
        return or_(ChatMemory.expires_at.is_(None), ChatMemory.expires_at > now)

    async def upsert(
        self,
        *,
        owner_id: str,
        key: str,
        value: str,
        category: Optional[str],
        importance: Optional[float],
        expires_at: Optional[datetime],
    ) -> ChatMemory:
        """Insert or merge on ``(owner_id, key)``; omitted fields keep their value."""
        stmt = insert(ChatMemory).values(
            owner_id=owner_id,
            key=key,
            value=value,
            category=category or "general",
            importance=5 if importance is None else importance,
            expires_at=expires_at,
        )
        merged = {
            "value": stmt.excluded.value,
            "updated_at": func.now(),
        }
        if expires_at is not None:
            merged["expires_at"] = stmt.excluded.expires_at
        if category is not None:
            merged["category"] = stmt.excluded.category
        if importance is not None:
            merged["importance"] = stmt.excluded.importance
        stmt = stmt.on_conflict_do_update(
            constraint="uq_chat_memory_owner_key", set_=merged
        ).returning(ChatMemory)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one()

    async def get_by_key(self, owner_id: str, key: str, now: datetime) -> Optional[ChatMemory]:
        stmt = select(ChatMemory).where(
            ChatMemory.owner_id == owner_id, ChatMemory.key == key, self._live(now)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_owner(
        self,
        owner_id: str,
        now: datetime,
        *,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ChatMemory]:
        """Most important first, then most recently updated."""
        stmt = select(ChatMemory).where(ChatMemory.owner_id == owner_id, self._live(now))
        if category is not None:
            stmt = stmt.where(ChatMemory.category == category)
        stmt = stmt.order_by(ChatMemory.importance.desc(), ChatMemory.updated_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_by_key(self, owner_id: str, key: str) -> bool:
        stmt = delete(ChatMemory).where(
            ChatMemory.owner_id == owner_id, ChatMemory.key == key
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0
