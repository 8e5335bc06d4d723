"""Memory Curator: best-effort fact extraction and memory context loading.

Nothing here raises to the caller. Extraction runs as a background task after
each completed turn; failures are logged and the turn is unaffected.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional

import structlog

from chat.exceptions import BackgroundTaskError, NotFoundError
from chat.gateways import MemoryGateway, PersistenceGateway
from chat.memory.extractors import MemoryCandidate, extract_candidates
from chat.resilience import GatewayCaller
from chat.text_utils import truncate_text
from chat.types import MemoryItem, Message

logger = structlog.get_logger("chat.memory.curator")

Extractor = Callable[[Iterable[Message]], List[MemoryCandidate]]


class MemoryCurator:
    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        memory: MemoryGateway,
        owner_id: Optional[str],
        caller: Optional[GatewayCaller] = None,
        transcript_limit: int = 100,
        context_limit: int = 10,
        context_max_chars: int = 2000,
        extractor: Extractor = extract_candidates,
    ):
        self.persistence = persistence
        self.memory = memory
        self.owner_id = owner_id
        self.caller = caller or GatewayCaller()
        self.transcript_limit = transcript_limit
        self.context_limit = context_limit
        self.context_max_chars = context_max_chars
        self.extractor = extractor

    async def extract_memory(self, conversation_id: str) -> int:
        """Upsert facts found in the conversation; returns how many were written."""
        try:
            return await self._extract(conversation_id)
        except Exception as e:
            error = BackgroundTaskError(
                "extract_memory", str(e), {"conversation_id": conversation_id}
            )
            logger.warning(
                "memory.extract.failed",
                conversation_id=conversation_id,
                error=error.message,
                exc_info=True,
            )
            return 0

    async def _extract(self, conversation_id: str) -> int:
        try:
            conversation = await self.caller.read(
                "get_conversation",
                lambda: self.persistence.get_conversation(conversation_id),
            )
        except NotFoundError:
            logger.info("memory.extract.skipped", conversation_id=conversation_id, reason="deleted")
            return 0
        if not conversation.is_alive:
            logger.info("memory.extract.skipped", conversation_id=conversation_id, reason="archived")
            return 0

        transcript = await self.caller.read(
            "get_messages",
            lambda: self.persistence.get_messages(
                conversation_id, limit=self.transcript_limit
            ),
        )
        candidates = self.extractor(transcript)
        written = 0
        for candidate in candidates:
            await self.caller.write(
                "upsert_memory",
                lambda c=candidate: self.memory.upsert_memory(
                    owner_id=self.owner_id,
                    key=c.key,
                    value=c.value,
                    category=c.category,
                    importance=c.importance,
                ),
            )
            written += 1
        logger.info(
            "memory.extract.completed",
            conversation_id=conversation_id,
            scanned=len(transcript),
            upserted=written,
        )
        return written

    async def load_memory_context(self) -> Optional[str]:
        """Bounded summary text of the owner's memory; ``None`` if it could not be read."""
        try:
            text = await self.caller.read(
                "build_context_from_memory",
                lambda: self.memory.build_context_from_memory(
                    self.owner_id, limit=self.context_limit
                ),
            )
        except Exception as e:
            logger.warning("memory.context.failed", owner_id=self.owner_id, error=str(e))
            return None
        return truncate_text(text or "", self.context_max_chars)

    async def save_memory(
        self,
        key: str,
        value: str,
        category: Optional[str] = None,
        importance: Optional[float] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[MemoryItem]:
        try:
            return await self.caller.write(
                "upsert_memory",
                lambda: self.memory.upsert_memory(
                    owner_id=self.owner_id,
                    key=key,
                    value=value,
                    category=category,
                    importance=importance,
                    expires_at=expires_at,
                ),
            )
        except Exception as e:
            logger.warning("memory.save.failed", key=key, error=str(e))
            return None
