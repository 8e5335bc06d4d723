"""Repositories for conversation and message persistence."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select, update

from api.features.conversation.entities.conversation import ChatConversation, ChatMessage
from api.shared.base import BaseRepository


class ConversationRepository(BaseRepository[ChatConversation]):
    model = ChatConversation

    async def list_active(
        self, owner_id: Optional[str], *, limit: int, offset: int = 0
    ) -> List[ChatConversation]:
        entities, _ = await self.list(
            offset=offset,
            limit=limit,
            order_by="-updated_at",
            owner_id=owner_id,
            is_active=True,
            archived_at=None,
        )
        return entities

    async def list_archived(
        self, owner_id: Optional[str], *, limit: int, offset: int = 0
    ) -> List[ChatConversation]:
        owner = (
            ChatConversation.owner_id.is_(None)
            if owner_id is None
            else ChatConversation.owner_id == owner_id
        )
        stmt = (
            select(ChatConversation)
            .where(owner, ChatConversation.archived_at.is_not(None))
            .order_by(ChatConversation.archived_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def archive(self, conversation_id: str) -> Optional[ChatConversation]:
        return await self.update_by_id(
            conversation_id, is_active=False, archived_at=func.now()
        )

    async def restore(self, conversation_id: str) -> Optional[ChatConversation]:
        return await self.update_by_id(
            conversation_id, is_active=True, archived_at=None, updated_at=func.now()
        )

    async def touch(self, conversation_id: str) -> None:
        """Bump ``updated_at`` for recency ordering."""
        await self.session.execute(
            update(ChatConversation)
            .where(ChatConversation.id == conversation_id)
            .values(updated_at=func.now())
        )


class MessageRepository(BaseRepository[ChatMessage]):
    model = ChatMessage

    async def list_for_conversation(
        self, conversation_id: str, *, limit: int, offset: int = 0
    ) -> List[ChatMessage]:
        """Chronological by ``sequence``."""
        entities, _ = await self.list(
            offset=offset,
            limit=limit,
            order_by="sequence",
            conversation_id=conversation_id,
        )
        return entities
