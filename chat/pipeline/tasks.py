"""Fire-and-forget background tasks correlated by conversation id."""
from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Coroutine, Dict, Set

import structlog

logger = structlog.get_logger("chat.tasks")


class BackgroundTasks:
    """Holds references to running tasks so they can be cancelled per conversation.

    A failing task is logged and otherwise ignored; it never reaches the turn
    that spawned it.
    """

    def __init__(self) -> None:
        self._by_conversation: Dict[str, Set[asyncio.Task]] = defaultdict(set)

    def spawn(self, conversation_id: str, name: str, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            coro, name=f"{name}:{conversation_id}"
        )
        self._by_conversation[conversation_id].add(task)
        task.add_done_callback(
            lambda t: self._finished(conversation_id, name, t)
        )
        logger.debug("task.spawned", task=name, conversation_id=conversation_id)
        return task

    def _finished(self, conversation_id: str, name: str, task: asyncio.Task) -> None:
        tasks = self._by_conversation.get(conversation_id)
        if tasks is not None:
            tasks.discard(task)
            if not tasks:
                self._by_conversation.pop(conversation_id, None)
        if task.cancelled():
            logger.info("task.cancelled", task=name, conversation_id=conversation_id)
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "task.failed",
                task=name,
                conversation_id=conversation_id,
                error=str(error),
                exc_info=error,
            )

    def pending(self, conversation_id: str | None = None) -> int:
        if conversation_id is not None:
            return len(self._by_conversation.get(conversation_id, ()))
        return sum(len(t) for t in self._by_conversation.values())

    def cancel(self, conversation_id: str) -> int:
        tasks = list(self._by_conversation.get(conversation_id, ()))
        for task in tasks:
            task.cancel()
        return len(tasks)

    def cancel_all(self) -> int:
        return sum(self.cancel(cid) for cid in list(self._by_conversation))

    async def drain(self) -> None:
        """Wait until every task, including ones spawned while waiting, is done."""
        while True:
            tasks = [t for ts in self._by_conversation.values() for t in ts]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)
            # done callbacks run on the next loop iteration
            await asyncio.sleep(0)
