"""Memory store over PostgreSQL; implements the engine's memory gateway."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import structlog

from api.features.memory.entities.memory import ChatMemory
from api.features.memory.repository import MemoryRepository
from api.shared.db import session_scope
from chat.gateways import render_memory_context
from chat.types import MemoryItem, utcnow
from infra.resources import DatabaseResource

logger = structlog.get_logger("api.memory.service")


def _owner(owner_id: Optional[str]) -> str:
    # NULL never conflicts in a unique constraint; anonymous owners share "".
    return owner_id or ""


def to_memory_item(entity: ChatMemory) -> MemoryItem:
    return MemoryItem(
        owner_id=entity.owner_id or None,
        key=entity.key,
        value=entity.value,
        category=entity.category,
        importance=entity.importance,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        expires_at=entity.expires_at,
    )


class MemoryService:
    def __init__(self, database: DatabaseResource):
        self.database = database

    async def upsert_memory(
        self,
        *,
        owner_id: Optional[str],
        key: str,
        value: str,
        category: Optional[str] = None,
        importance: Optional[float] = None,
        expires_at: Optional[datetime] = None,
    ) -> MemoryItem:
        async with session_scope(self.database) as session:
            entity = await MemoryRepository(session).upsert(
                owner_id=_owner(owner_id),
                key=key,
                value=value,
                category=category,
                importance=importance,
                expires_at=expires_at,
            )
            item = to_memory_item(entity)
        logger.debug("memory.upserted", owner_id=owner_id, key=key)
        return item

    async def get_memory(self, owner_id: Optional[str], key: str) -> Optional[MemoryItem]:
        async with session_scope(self.database) as session:
            entity = await MemoryRepository(session).get_by_key(_owner(owner_id), key, utcnow())
            return to_memory_item(entity) if entity else None

    async def list_memory(
        self, owner_id: Optional[str], *, category: Optional[str] = None
    ) -> List[MemoryItem]:
        async with session_scope(self.database) as session:
            entities = await MemoryRepository(session).list_for_owner(
                _owner(owner_id), utcnow(), category=category
            )
            return [to_memory_item(e) for e in entities]

    async def delete_memory(self, owner_id: Optional[str], key: str) -> bool:
        async with session_scope(self.database) as session:
            return await MemoryRepository(session).delete_by_key(_owner(owner_id), key)

    async def build_context_from_memory(
        self, owner_id: Optional[str], *, limit: int = 10
    ) -> str:
        async with session_scope(self.database) as session:
            entities = await MemoryRepository(session).list_for_owner(
                _owner(owner_id), utcnow(), limit=limit
            )
            items = [to_memory_item(e) for e in entities]
        return render_memory_context(items, limit=limit)
