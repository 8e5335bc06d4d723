"""Controller for the Memory feature."""
from typing import Optional

from api.features.memory.dtos import (
    MemoryContextResponse,
    MemoryItemDTO,
    MemoryListResponse,
    UpsertMemoryRequest,
)
from chat.exceptions import NotFoundError
from chat.gateways import MemoryGateway
from chat.text_utils import truncate_text


class MemoryController:
    def __init__(
        self,
        memory: MemoryGateway,
        context_limit: int = 10,
        context_max_chars: int = 2000,
    ) -> None:
        self.memory = memory
        self.context_limit = context_limit
        self.context_max_chars = context_max_chars

    async def list_memory(
        self, *, owner_id: Optional[str], category: Optional[str]
    ) -> MemoryListResponse:
        items = await self.memory.list_memory(owner_id, category=category)
        dtos = [MemoryItemDTO.model_validate(i.model_dump()) for i in items]
        return MemoryListResponse(items=dtos, total=len(dtos))

    async def get_memory(self, *, owner_id: Optional[str], key: str) -> MemoryItemDTO:
        item = await self.memory.get_memory(owner_id, key)
        if item is None:
            raise NotFoundError("memory", key)
        return MemoryItemDTO.model_validate(item.model_dump())

    async def upsert_memory(
        self, *, owner_id: Optional[str], key: str, request: UpsertMemoryRequest
    ) -> MemoryItemDTO:
        item = await self.memory.upsert_memory(
            owner_id=owner_id,
            key=key,
            value=request.value,
            category=request.category,
            importance=request.importance,
            expires_at=request.expires_at,
        )
        return MemoryItemDTO.model_validate(item.model_dump())

    async def delete_memory(self, *, owner_id: Optional[str], key: str) -> None:
        if not await self.memory.delete_memory(owner_id, key):
            raise NotFoundError("memory", key)

    async def get_context(self, *, owner_id: Optional[str]) -> MemoryContextResponse:
        text = await self.memory.build_context_from_memory(
            owner_id, limit=self.context_limit
        )
        return MemoryContextResponse(text=truncate_text(text, self.context_max_chars))
