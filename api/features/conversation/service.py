"""Conversation persistence over PostgreSQL.

Implements the engine's persistence gateway. Every call is its own unit of
work; message order comes from the database-assigned ``sequence``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from api.features.conversation.entities.conversation import ChatConversation, ChatMessage
from api.features.conversation.repository import ConversationRepository, MessageRepository
from api.shared.db import session_scope
from api.shared.utils import is_valid_uuid
from chat.exceptions import NotFoundError
from chat.types import Conversation, Message, Role
from infra.resources import DatabaseResource

logger = structlog.get_logger("api.conversation.service")

UPDATABLE_FIELDS = ("title", "metadata", "is_active")


def to_conversation(entity: ChatConversation) -> Conversation:
    return Conversation(
        id=str(entity.id),
        owner_id=entity.owner_id,
        title=entity.title,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        is_active=entity.is_active,
        archived_at=entity.archived_at,
        metadata=entity.meta or {},
    )


def to_message(entity: ChatMessage) -> Message:
    return Message(
        id=str(entity.id),
        conversation_id=str(entity.conversation_id),
        role=Role(entity.role),
        content=entity.content,
        created_at=entity.created_at,
        sequence=entity.sequence,
        metadata=entity.meta or {},
    )


class ConversationService:
    def __init__(self, database: DatabaseResource):
        self.database = database

    @staticmethod
    def _check_id(conversation_id: str) -> None:
        if not is_valid_uuid(conversation_id):
            raise NotFoundError("conversation", conversation_id)

    async def create_conversation(
        self,
        *,
        owner_id: Optional[str],
        title: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Conversation:
        async with session_scope(self.database) as session:
            entity = await ConversationRepository(session).create(
                ChatConversation(owner_id=owner_id, title=title, meta=dict(metadata or {}))
            )
            conversation = to_conversation(entity)
        logger.info("conversation.persisted", conversation_id=conversation.id)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        self._check_id(conversation_id)
        async with session_scope(self.database) as session:
            entity = await ConversationRepository(session).get_by_id(conversation_id)
            if entity is None:
                raise NotFoundError("conversation", conversation_id)
            return to_conversation(entity)

    async def list_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]:
        async with session_scope(self.database) as session:
            entities = await ConversationRepository(session).list_active(
                owner_id, limit=limit, offset=offset
            )
            return [to_conversation(e) for e in entities]

    async def list_archived_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]:
        async with session_scope(self.database) as session:
            entities = await ConversationRepository(session).list_archived(
                owner_id, limit=limit, offset=offset
            )
            return [to_conversation(e) for e in entities]

    async def update_conversation(self, conversation_id: str, **patch: Any) -> Conversation:
        self._check_id(conversation_id)
        values = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
        if "metadata" in values:
            values["meta"] = values.pop("metadata")
        async with session_scope(self.database) as session:
            repository = ConversationRepository(session)
            entity = (
                await repository.update_by_id(conversation_id, **values)
                if values
                else await repository.get_by_id(conversation_id)
            )
            if entity is None:
                raise NotFoundError("conversation", conversation_id)
            return to_conversation(entity)

    async def delete_conversation(self, conversation_id: str) -> None:
        self._check_id(conversation_id)
        async with session_scope(self.database) as session:
            entity = await ConversationRepository(session).archive(conversation_id)
            if entity is None:
                raise NotFoundError("conversation", conversation_id)
        logger.info("conversation.archived", conversation_id=conversation_id)

    async def restore_conversation(self, conversation_id: str) -> Conversation:
        self._check_id(conversation_id)
        async with session_scope(self.database) as session:
            entity = await ConversationRepository(session).restore(conversation_id)
            if entity is None:
                raise NotFoundError("conversation", conversation_id)
            return to_conversation(entity)

    async def create_message(
        self,
        *,
        conversation_id: str,
        role: Role,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        self._check_id(conversation_id)
        async with session_scope(self.database) as session:
            conversations = ConversationRepository(session)
            conversation = await conversations.get_by_id(conversation_id)
            if conversation is None or not conversation.is_alive():
                raise NotFoundError("conversation", conversation_id)
            entity = await MessageRepository(session).create(
                ChatMessage(
                    conversation_id=conversation_id,
                    role=Role(role).value,
                    content=content,
                    meta=dict(metadata or {}),
                )
            )
            await conversations.touch(conversation_id)
            return to_message(entity)

    async def get_messages(
        self, conversation_id: str, *, limit: int = 50, offset: int = 0
    ) -> List[Message]:
        self._check_id(conversation_id)
        async with session_scope(self.database) as session:
            entities = await MessageRepository(session).list_for_conversation(
                conversation_id, limit=limit, offset=offset
            )
            return [to_message(e) for e in entities]
