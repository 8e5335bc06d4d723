"""Process-local persistence and memory store.

Implements both the persistence and the memory gateway. Used when
``USE_DATABASE`` is off and throughout the test suite.
"""
from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from chat.exceptions import NotFoundError
from chat.gateways import render_memory_context
from chat.types import Conversation, MemoryItem, Message, Role, new_id, utcnow


class InMemoryStore:
    def __init__(self) -> None:
        self.conversations: Dict[str, Conversation] = {}
        self.messages: Dict[str, List[Message]] = {}
        self.memory: Dict[Tuple[Optional[str], str], MemoryItem] = {}
        self._sequence = itertools.count(1)

    def _conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    # Conversations

    async def create_conversation(
        self,
        *,
        owner_id: Optional[str],
        title: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Conversation:
        conversation = Conversation(
            id=new_id(), owner_id=owner_id, title=title, metadata=dict(metadata or {})
        )
        self.conversations[conversation.id] = conversation
        self.messages[conversation.id] = []
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return self._conversation(conversation_id)

    def _owned(self, owner_id: Optional[str], alive: bool) -> List[Conversation]:
        return sorted(
            (
                c
                for c in self.conversations.values()
                if c.owner_id == owner_id and c.is_alive == alive
            ),
            key=lambda c: c.updated_at,
            reverse=True,
        )

    async def list_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]:
        return self._owned(owner_id, True)[offset : offset + limit]

    async def list_archived_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]:
        return self._owned(owner_id, False)[offset : offset + limit]

    async def update_conversation(self, conversation_id: str, **patch: Any) -> Conversation:
        conversation = self._conversation(conversation_id)
        allowed = {k: v for k, v in patch.items() if k in ("title", "metadata", "is_active")}
        updated = conversation.model_copy(update={**allowed, "updated_at": utcnow()})
        self.conversations[conversation_id] = updated
        return updated

    async def delete_conversation(self, conversation_id: str) -> None:
        conversation = self._conversation(conversation_id)
        self.conversations[conversation_id] = conversation.model_copy(
            update={"is_active": False, "archived_at": utcnow()}
        )

    async def restore_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._conversation(conversation_id).model_copy(
            update={"is_active": True, "archived_at": None, "updated_at": utcnow()}
        )
        self.conversations[conversation_id] = conversation
        return conversation

    # Messages

    async def create_message(
        self,
        *,
        conversation_id: str,
        role: Role,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        conversation = self._conversation(conversation_id)
        if not conversation.is_alive:
            raise NotFoundError("conversation", conversation_id)
        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            sequence=next(self._sequence),
            metadata=dict(metadata or {}),
        )
        self.messages[conversation_id].append(message)
        self.conversations[conversation_id] = conversation.model_copy(
            update={"updated_at": utcnow()}
        )
        return message

    async def get_messages(
        self, conversation_id: str, *, limit: int = 50, offset: int = 0
    ) -> List[Message]:
        self._conversation(conversation_id)
        ordered = sorted(self.messages[conversation_id], key=lambda m: m.sequence or 0)
        return ordered[offset : offset + limit]

    # Memory

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
        existing = self.memory.get((owner_id, key))
        now = utcnow()
        if existing is None:
            item = MemoryItem(
                owner_id=owner_id,
                key=key,
                value=value,
                category=category or "general",
                importance=5 if importance is None else importance,
                created_at=now,
                updated_at=now,
                expires_at=expires_at,
            )
        else:
            item = existing.model_copy(
                update={
                    "value": value,
                    "category": category or existing.category,
                    "importance": existing.importance if importance is None else importance,
                    "expires_at": existing.expires_at if expires_at is None else expires_at,
                    "updated_at": now,
                }
            )
        self.memory[(owner_id, key)] = item
        return item

    async def get_memory(self, owner_id: Optional[str], key: str) -> Optional[MemoryItem]:
        item = self.memory.get((owner_id, key))
        if item is None or item.is_expired():
            return None
        return item

    async def list_memory(
        self, owner_id: Optional[str], *, category: Optional[str] = None
    ) -> List[MemoryItem]:
        items = [
            item
            for (owner, _), item in self.memory.items()
            if owner == owner_id
            and not item.is_expired()
            and (category is None or item.category == category)
        ]
        return sorted(items, key=lambda m: (m.importance or 0, m.updated_at), reverse=True)

    async def delete_memory(self, owner_id: Optional[str], key: str) -> bool:
        return self.memory.pop((owner_id, key), None) is not None

    async def build_context_from_memory(
        self, owner_id: Optional[str], *, limit: int = 10
    ) -> str:
        return render_memory_context(await self.list_memory(owner_id), limit=limit)
