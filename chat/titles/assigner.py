"""Title assignment for conversations.

States per conversation::

    UNTITLED -> PENDING_GENERATION -> TITLED
                                   -> FALLBACK_TITLED   (generation failed)

Every generation takes a token from a per-conversation counter. Starting a
generation cancels the one in flight, and a result is applied only if its
token is newer than the last applied one, so a slow stale generation can
never overwrite a newer title.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional

import structlog

from chat.exceptions import CompletionError, PersistenceError
from chat.gateways import CompletionGateway, PersistenceGateway
from chat.pipeline.tasks import BackgroundTasks
from chat.prompts.title_prompt import build_title_messages
from chat.resilience import GatewayCaller
from chat.text_utils import clean_title, clip_with_ellipsis
from chat.types import Conversation, TitleState

logger = structlog.get_logger("chat.titles")

TitleListener = Callable[[str, str], Awaitable[None]]


class TitleAssigner:
    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        completion: CompletionGateway,
        tasks: BackgroundTasks,
        caller: Optional[GatewayCaller] = None,
        placeholder: str = "New Conversation",
        max_length: int = 50,
        timeout: float = 30.0,
        is_alive: Callable[[str], bool] = lambda _cid: True,
        on_title: Optional[TitleListener] = None,
    ):
        self.persistence = persistence
        self.completion = completion
        self.tasks = tasks
        self.caller = caller or GatewayCaller()
        self.placeholder = placeholder
        self.max_length = max_length
        self.timeout = timeout
        self.is_alive = is_alive
        self.on_title = on_title
        self._states: Dict[str, TitleState] = {}
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    def state(self, conversation_id: str) -> TitleState:
        return self._states.get(conversation_id, TitleState.UNTITLED)

    def needs_title(self, conversation: Conversation) -> bool:
        return (
            conversation.title == self.placeholder
            and self.state(conversation.id) == TitleState.UNTITLED
        )

    def fallback_title(self, user_message: str) -> str:
        return clip_with_ellipsis(user_message.strip(), self.max_length)

    def start(self, conversation_id: str, user_message: str) -> int:
        """Enter PENDING_GENERATION and issue one generation request."""
        token = self._issued.get(conversation_id, 0) + 1
        self._issued[conversation_id] = token
        previous = self._in_flight.pop(conversation_id, None)
        if previous is not None and not previous.done():
            previous.cancel()
        self._states[conversation_id] = TitleState.PENDING_GENERATION
        task = self.tasks.spawn(
            conversation_id,
            "generate_title",
            self._generate(conversation_id, token, user_message),
        )
        self._in_flight[conversation_id] = task
        task.add_done_callback(lambda t: self._release(conversation_id, t))
        logger.info("title.generation.started", conversation_id=conversation_id, token=token)
        return token

    def _release(self, conversation_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(conversation_id) is task:
            del self._in_flight[conversation_id]

    async def _generate(self, conversation_id: str, token: int, user_message: str) -> None:
        try:
            raw = await asyncio.wait_for(
                self.completion.complete(build_title_messages(user_message=user_message)),
                timeout=self.timeout,
            )
            title = clean_title(raw or "", self.max_length)
            if not title:
                raise CompletionError("empty title")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "title.generation.failed",
                conversation_id=conversation_id,
                token=token,
                error=str(e) or type(e).__name__,
            )
            await self.apply(
                conversation_id,
                token,
                self.fallback_title(user_message),
                TitleState.FALLBACK_TITLED,
            )
            return
        await self.apply(conversation_id, token, title, TitleState.TITLED)

    async def apply(
        self,
        conversation_id: str,
        token: int,
        title: str,
        state: TitleState = TitleState.TITLED,
    ) -> bool:
        """Persist ``title`` unless the conversation is gone or a newer token won."""
        if self._stale(conversation_id, token):
            return False
        if not self.is_alive(conversation_id) or not await self._stored_alive(conversation_id):
            logger.info("title.apply.skipped", conversation_id=conversation_id, reason="deleted")
            return False
        if self._stale(conversation_id, token):
            return False
        # Claimed before awaiting so an older result finishing meanwhile is stale.
        previous_token = self._applied.get(conversation_id, 0)
        previous_state = self.state(conversation_id)
        self._applied[conversation_id] = token
        self._states[conversation_id] = state
        try:
            await self.caller.write(
                "update_conversation",
                lambda: self.persistence.update_conversation(conversation_id, title=title),
            )
        except Exception as e:
            if self._applied.get(conversation_id) == token:
                self._applied[conversation_id] = previous_token
                self._states[conversation_id] = (
                    TitleState.UNTITLED
                    if previous_state == TitleState.PENDING_GENERATION
                    else previous_state
                )
            logger.warning(
                "title.persist.failed",
                conversation_id=conversation_id,
                token=token,
                state=self.state(conversation_id).value,
                error=str(e),
            )
            return False
        logger.info(
            "title.applied",
            conversation_id=conversation_id,
            token=token,
            state=state.value,
        )
        if self.on_title is not None:
            await self.on_title(conversation_id, title)
        return True

    def _stale(self, conversation_id: str, token: int) -> bool:
        applied = self._applied.get(conversation_id, 0)
        if token <= applied:
            logger.info(
                "title.apply.stale", conversation_id=conversation_id, token=token, applied=applied
            )
            return True
        return False

    async def _stored_alive(self, conversation_id: str) -> bool:
        """Another session may have archived the conversation."""
        try:
            conversation = await self.caller.read(
                "get_conversation",
                lambda: self.persistence.get_conversation(conversation_id),
            )
        except PersistenceError as e:
            logger.warning("title.apply.check_failed", conversation_id=conversation_id, error=e.message)
            return False
        return conversation.is_alive

    def forget(self, conversation_id: str) -> None:
        task = self._in_flight.pop(conversation_id, None)
        if task is not None and not task.done():
            task.cancel()
        self._states.pop(conversation_id, None)
        self._issued.pop(conversation_id, None)
        self._applied.pop(conversation_id, None)
