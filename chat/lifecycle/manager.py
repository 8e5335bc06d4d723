"""Conversation Lifecycle Manager: lazy creation, selection, deletion, listing."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Set

import structlog

from chat.exceptions import PersistenceError
from chat.gateways import Notifier, PersistenceGateway
from chat.resilience import GatewayCaller
from chat.state import SessionState
from chat.types import Conversation, utcnow

logger = structlog.get_logger("chat.lifecycle")


def conversation_metadata() -> Dict[str, Any]:
    now = utcnow()
    hour = now.hour % 12 or 12
    return {
        "auto": True,
        "timestamp": now.isoformat(),
        "date": f"{now:%b} {now.day}",
        "time": f"{hour}:{now:%M} {now:%p}",
    }


class ConversationLifecycleManager:
    def __init__(
        self,
        *,
        state: SessionState,
        persistence: PersistenceGateway,
        notifier: Notifier,
        owner_id: Optional[str],
        caller: Optional[GatewayCaller] = None,
        placeholder_title: str = "New Conversation",
        list_limit: int = 20,
        history_limit: int = 50,
        on_deleted: Optional[Callable[[str], None]] = None,
    ):
        self.state = state
        self.persistence = persistence
        self.notifier = notifier
        self.owner_id = owner_id
        self.caller = caller or GatewayCaller()
        self.placeholder_title = placeholder_title
        self.list_limit = list_limit
        self.history_limit = history_limit
        self.on_deleted = on_deleted
        self.deleted: Set[str] = set()

    def is_alive(self, conversation_id: str) -> bool:
        return conversation_id not in self.deleted

    async def open_conversation(self) -> Conversation:
        """Create the remote row. Raises ``PersistenceError``."""
        conversation = await self.caller.write(
            "create_conversation",
            lambda: self.persistence.create_conversation(
                owner_id=self.owner_id,
                title=self.placeholder_title,
                metadata=conversation_metadata(),
            ),
        )
        logger.info("conversation.created", conversation_id=conversation.id, owner_id=self.owner_id)
        return conversation

    async def ensure_conversation(self) -> Conversation:
        """Return the current conversation, creating and selecting one if needed."""
        current = self.state.current_conversation
        if current is not None:
            return current
        epoch = self.state.epoch
        conversation = await self.open_conversation()
        if self.state.epoch == epoch and self.state.current_conversation is None:
            self.state.set_current(conversation)
        return conversation

    def create_conversation(self) -> None:
        """Start a new chat locally; nothing is persisted until the first message."""
        self.state.reset()
        logger.info("conversation.draft.started", draft_key=self.state.draft_key)

    def clear(self) -> None:
        self.state.reset()

    async def load_conversation(self, conversation_id: str) -> Optional[Conversation]:
        self.state.begin_loading()
        try:
            conversation, messages = await asyncio.gather(
                self.caller.read(
                    "get_conversation",
                    lambda: self.persistence.get_conversation(conversation_id),
                ),
                self.caller.read(
                    "get_messages",
                    lambda: self.persistence.get_messages(
                        conversation_id, limit=self.history_limit
                    ),
                ),
            )
        except PersistenceError as e:
            logger.warning("conversation.load.failed", conversation_id=conversation_id, error=e.message)
            self.notifier.error("Could not load conversation", conversation_id=conversation_id)
            return None
        finally:
            self.state.end_loading()
        if not conversation.is_alive:
            logger.info("conversation.load.refused", conversation_id=conversation_id, reason="archived")
            self.notifier.error("Conversation has been deleted", conversation_id=conversation_id)
            return None
        ordered = sorted(messages, key=lambda m: (m.sequence is None, m.sequence or 0))
        self.state.reset(conversation, ordered)
        logger.info(
            "conversation.loaded",
            conversation_id=conversation_id,
            messages=len(ordered),
        )
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        try:
            await self.caller.write(
                "delete_conversation",
                lambda: self.persistence.delete_conversation(conversation_id),
            )
        except PersistenceError as e:
            logger.warning("conversation.delete.failed", conversation_id=conversation_id, error=e.message)
            self.notifier.error("Could not delete conversation", conversation_id=conversation_id)
            return False
        self.deleted.add(conversation_id)
        if self.on_deleted is not None:
            self.on_deleted(conversation_id)
        current = self.state.current_conversation
        if current is not None and current.id == conversation_id:
            self.state.reset()
        await self.refresh_conversations()
        logger.info("conversation.deleted", conversation_id=conversation_id)
        return True

    async def restore_conversation(self, conversation_id: str) -> Optional[Conversation]:
        try:
            conversation = await self.caller.write(
                "restore_conversation",
                lambda: self.persistence.restore_conversation(conversation_id),
            )
        except PersistenceError as e:
            logger.warning("conversation.restore.failed", conversation_id=conversation_id, error=e.message)
            self.notifier.error("Could not restore conversation", conversation_id=conversation_id)
            return None
        self.deleted.discard(conversation_id)
        await self.refresh_conversations()
        return conversation

    async def list_conversations(self) -> List[Conversation]:
        return await self.caller.read(
            "list_conversations",
            lambda: self.persistence.list_conversations(
                self.owner_id, limit=self.list_limit
            ),
        )

    async def list_archived_conversations(self) -> List[Conversation]:
        return await self.caller.read(
            "list_archived_conversations",
            lambda: self.persistence.list_archived_conversations(
                self.owner_id, limit=self.list_limit
            ),
        )

    async def refresh_conversations(self) -> List[Conversation]:
        self.state.set_loading_conversations(True)
        try:
            conversations = await self.list_conversations()
        except PersistenceError as e:
            logger.warning("conversation.list.failed", owner_id=self.owner_id, error=e.message)
            return self.state.conversations
        finally:
            self.state.set_loading_conversations(False)
        self.state.set_conversations(conversations)
        return conversations
