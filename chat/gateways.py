"""Interfaces of the collaborators the engine talks to.

The engine never imports a concrete store or model client; implementations
live in ``api.features.*.service`` (PostgreSQL) and ``infra.gateways``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog

from chat.types import Conversation, MemoryItem, Message, Role


class PersistenceGateway(Protocol):
    async def create_conversation(
        self,
        *,
        owner_id: Optional[str],
        title: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Conversation: ...

    async def list_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]: ...

    async def list_archived_conversations(
        self, owner_id: Optional[str], *, limit: int = 20, offset: int = 0
    ) -> List[Conversation]: ...

    async def update_conversation(
        self, conversation_id: str, **patch: Any
    ) -> Conversation: ...

    async def delete_conversation(self, conversation_id: str) -> None: ...

    async def restore_conversation(self, conversation_id: str) -> Conversation: ...

    async def create_message(
        self,
        *,
        conversation_id: str,
        role: Role,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message: ...

    async def get_messages(
        self, conversation_id: str, *, limit: int = 50, offset: int = 0
    ) -> List[Message]: ...


class MemoryGateway(Protocol):
    async def upsert_memory(
        self,
        *,
        owner_id: Optional[str],
        key: str,
        value: str,
        category: Optional[str] = None,
        importance: Optional[float] = None,
        expires_at: Optional[datetime] = None,
    ) -> MemoryItem: ...

    async def get_memory(self, owner_id: Optional[str], key: str) -> Optional[MemoryItem]: ...

    async def list_memory(
        self, owner_id: Optional[str], *, category: Optional[str] = None
    ) -> List[MemoryItem]: ...

    async def delete_memory(self, owner_id: Optional[str], key: str) -> bool: ...

    async def build_context_from_memory(
        self, owner_id: Optional[str], *, limit: int = 10
    ) -> str: ...


class CompletionGateway(Protocol):
    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        form_context: Optional[Mapping[str, Any]] = None,
    ) -> str: ...


class Notifier(Protocol):
    """User-facing notifications (toasts) for failures outside the transcript."""

    def info(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


class LoggingNotifier:
    """Notifier that only logs; the default when no UI channel is attached."""

    def __init__(self, name: str = "chat.notifier"):
        self._logger = structlog.get_logger(name)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info("notify.info", message=message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.warning("notify.error", message=message, **context)


def render_memory_context(items: Sequence[MemoryItem], *, limit: int = 10) -> str:
    """Render memory items the way every memory gateway exposes them.

    Items are ranked by importance, then most recently updated.
    """
    ranked = sorted(
        items,
        key=lambda m: (m.importance or 0, m.updated_at),
        reverse=True,
    )[:limit]
    if not ranked:
        return ""
    lines = "\n".join(f"{m.key}: {m.value}" for m in ranked)
    return f"User Context:\n{lines}"
