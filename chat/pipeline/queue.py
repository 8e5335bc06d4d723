"""Per-conversation single-flight queue for turns."""
from __future__ import annotations

import asyncio
from typing import Dict


class ConversationQueue:
    """One ``asyncio.Lock`` per conversation.

    A conversation that does not exist yet is keyed by the session's draft
    key; once created, ``rebind`` moves the same lock under the real id so
    turns queued on the draft and turns sent later share one queue.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._aliases: Dict[str, str] = {}

    def resolve(self, key: str) -> str:
        return self._aliases.get(key, key)

    def lock(self, key: str) -> asyncio.Lock:
        key = self.resolve(key)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def rebind(self, draft_key: str, conversation_id: str) -> None:
        lock = self._locks.pop(draft_key, None)
        if lock is not None:
            self._locks.setdefault(conversation_id, lock)
        self._aliases[draft_key] = conversation_id

    def discard(self, conversation_id: str) -> None:
        lock = self._locks.get(conversation_id)
        if lock is not None and not lock.locked():
            del self._locks[conversation_id]
        for alias, target in list(self._aliases.items()):
            if target == conversation_id:
                del self._aliases[alias]
