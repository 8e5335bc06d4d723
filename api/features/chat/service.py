"""Registry of live chat sessions held by the API process."""
from __future__ import annotations

from collections import OrderedDict
from typing import Callable, Optional

import structlog

from chat.exceptions import NotFoundError
from chat.session import ChatSession

logger = structlog.get_logger("api.chat.sessions")

SessionFactory = Callable[..., ChatSession]


class SessionRegistry:
    """Keeps at most ``max_sessions`` sessions, closing the least recently used."""

    def __init__(self, session_factory: SessionFactory, max_sessions: int = 1000):
        self.session_factory = session_factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, ChatSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(
        self, *, owner_id: Optional[str] = None, user_context: Optional[str] = None
    ) -> ChatSession:
        session = self.session_factory(owner_id=owner_id, user_context=user_context)
        await session.start()
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, evicted = self._sessions.popitem(last=False)
            logger.info("session.evicted", session_id=evicted_id)
            await evicted.close()
        return session

    def get(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        self._sessions.move_to_end(session_id)
        return session

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError("session", session_id)
        await session.close()

    async def close_all(self) -> None:
        while self._sessions:
            _, session = self._sessions.popitem()
            await session.close()
