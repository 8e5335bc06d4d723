"""Message Exchange Pipeline: one user turn, end to end.

    append user bubble -> [queue] -> ensure conversation -> persist user message
    -> assemble context -> complete -> append + persist reply
    -> spawn memory extraction, spawn title generation (first exchange)

Only the optimistic append happens outside the per-conversation queue, so a
second turn can show its bubble immediately but assembles its context only
after the first turn's reply is in the list.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import structlog

from chat.context.assembler import ContextAssembler
from chat.exceptions import CompletionError, NotFoundError, PersistenceError
from chat.gateways import CompletionGateway, PersistenceGateway
from chat.lifecycle.manager import ConversationLifecycleManager
from chat.memory.curator import MemoryCurator
from chat.pipeline.queue import ConversationQueue
from chat.pipeline.tasks import BackgroundTasks
from chat.resilience import GatewayCaller
from chat.state import SessionState
from chat.titles.assigner import TitleAssigner
from chat.types import (
    Conversation,
    ExchangeResult,
    ExchangeStatus,
    Message,
    Role,
    new_id,
)

logger = structlog.get_logger("chat.exchange")

ERROR_REPLY = "Sorry, I encountered an error. Please try again."


class MessageExchangePipeline:
    def __init__(
        self,
        *,
        state: SessionState,
        lifecycle: ConversationLifecycleManager,
        persistence: PersistenceGateway,
        completion: CompletionGateway,
        assembler: ContextAssembler,
        curator: MemoryCurator,
        titles: TitleAssigner,
        tasks: BackgroundTasks,
        queue: Optional[ConversationQueue] = None,
        caller: Optional[GatewayCaller] = None,
        completion_timeout: float = 60.0,
        transcript_limit: int = 100,
        error_reply: str = ERROR_REPLY,
    ):
        self.state = state
        self.lifecycle = lifecycle
        self.persistence = persistence
        self.completion = completion
        self.assembler = assembler
        self.curator = curator
        self.titles = titles
        self.tasks = tasks
        self.queue = queue or ConversationQueue()
        self.caller = caller or GatewayCaller()
        self.completion_timeout = completion_timeout
        self.transcript_limit = transcript_limit
        self.error_reply = error_reply
        # draft key -> conversation created for it
        self._drafts: Dict[str, Conversation] = {}

    def forget(self, conversation_id: str) -> None:
        self.queue.discard(conversation_id)
        for key, conversation in list(self._drafts.items()):
            if conversation.id == conversation_id:
                del self._drafts[key]

    async def send_message(
        self,
        content: str,
        *,
        user_context: Optional[str] = None,
        form_context: Optional[Mapping[str, Any]] = None,
    ) -> ExchangeResult:
        text = (content or "").strip()
        if not text:
            logger.debug("exchange.ignored", reason="empty")
            return ExchangeResult(status=ExchangeStatus.IGNORED)

        epoch = self.state.epoch
        current = self.state.current_conversation
        key = current.id if current is not None else self.state.draft_key
        local_id = new_id()
        user_message = Message(
            id=local_id,
            role=Role.USER,
            content=text,
            conversation_id=current.id if current is not None else None,
            metadata={"local_id": local_id},
        )
        self.state.append(user_message)
        self.state.queued_ids.add(user_message.id)

        lock = self.queue.lock(key)
        try:
            async with lock:
                self.state.queued_ids.discard(user_message.id)
                return await self._run_turn(
                    key, epoch, current, user_message, user_context, form_context
                )
        finally:
            self.state.queued_ids.discard(user_message.id)

    def _attached(self, epoch: int) -> bool:
        return self.state.epoch == epoch

    async def _resolve_conversation(
        self, key: str, epoch: int, known: Optional[Conversation]
    ) -> Conversation:
        conversation = known or self._drafts.get(key)
        if conversation is not None:
            current = self.state.current_conversation
            if current is not None and current.id == conversation.id:
                return current
            return conversation
        # First turn of a draft: create lazily, then move the draft's queue.
        if self._attached(epoch):
            conversation = await self.lifecycle.ensure_conversation()
        else:
            conversation = await self.lifecycle.open_conversation()
        self._drafts[key] = conversation
        self.queue.rebind(key, conversation.id)
        self.tasks.spawn(
            conversation.id,
            "refresh_conversations",
            self.lifecycle.refresh_conversations(),
        )
        return conversation

    async def _run_turn(
        self,
        key: str,
        epoch: int,
        known: Optional[Conversation],
        user_message: Message,
        user_context: Optional[str],
        form_context: Optional[Mapping[str, Any]],
    ) -> ExchangeResult:
        try:
            conversation = await self._resolve_conversation(key, epoch, known)
        except PersistenceError as e:
            logger.warning("exchange.conversation.failed", key=key, error=e.message)
            return self._fail(
                ExchangeStatus.PERSISTENCE_ERROR, epoch, None, user_message, "create_conversation"
            )
        cid = conversation.id
        if not self.lifecycle.is_alive(cid):
            logger.info("exchange.skipped", conversation_id=cid, reason="deleted")
            return self._fail(
                ExchangeStatus.PERSISTENCE_ERROR, epoch, cid, user_message, "deleted"
            )

        try:
            stored_user = await self.caller.write(
                "create_message",
                lambda: self.persistence.create_message(
                    conversation_id=cid,
                    role=Role.USER,
                    content=user_message.content,
                    metadata={"local_id": user_message.id},
                ),
            )
        except PersistenceError as e:
            logger.warning("exchange.user_message.failed", conversation_id=cid, error=e.message)
            return self._fail(
                ExchangeStatus.PERSISTENCE_ERROR, epoch, cid, user_message, "create_message"
            )
        if self._attached(epoch):
            self.state.replace(user_message.id, stored_user)

        history = await self._history(cid, epoch, {user_message.id, stored_user.id})
        prompt = self.assembler.assemble(
            history=history,
            user_message=stored_user,
            user_context=user_context,
            memory_context=self.state.memory_context_text,
        )

        try:
            reply = await asyncio.wait_for(
                self.completion.complete(prompt, form_context),
                timeout=self.completion_timeout,
            )
            if not reply or not reply.strip():
                raise CompletionError("empty reply")
        except Exception as e:
            logger.warning(
                "exchange.completion.failed",
                conversation_id=cid,
                error=str(e) or type(e).__name__,
            )
            return self._fail(
                ExchangeStatus.COMPLETION_ERROR, epoch, cid, stored_user, "completion"
            )

        assistant_message = Message(role=Role.ASSISTANT, content=reply, conversation_id=cid)
        if self._attached(epoch):
            self.state.append(assistant_message)

        if not self.lifecycle.is_alive(cid):
            logger.info("exchange.reply.discarded", conversation_id=cid, reason="deleted")
            return ExchangeResult(
                status=ExchangeStatus.OK,
                conversation_id=cid,
                user_message=stored_user,
                assistant_message=assistant_message,
            )

        try:
            stored_reply = await self.caller.write(
                "create_message",
                lambda: self.persistence.create_message(
                    conversation_id=cid,
                    role=Role.ASSISTANT,
                    content=reply,
                    metadata={"local_id": assistant_message.id},
                ),
            )
        except NotFoundError:
            logger.info("exchange.reply.discarded", conversation_id=cid, reason="archived")
            return ExchangeResult(
                status=ExchangeStatus.OK,
                conversation_id=cid,
                user_message=stored_user,
                assistant_message=assistant_message,
            )
        except PersistenceError as e:
            logger.warning("exchange.reply.persist_failed", conversation_id=cid, error=e.message)
            self.lifecycle.notifier.error("Reply could not be saved", conversation_id=cid)
            stored_reply = assistant_message
        else:
            if self._attached(epoch):
                self.state.replace(assistant_message.id, stored_reply)

        self._spawn_followups(conversation, epoch, stored_user.content)
        logger.info(
            "exchange.completed",
            conversation_id=cid,
            history=len(history),
            reply_chars=len(reply),
        )
        return ExchangeResult(
            status=ExchangeStatus.OK,
            conversation_id=cid,
            user_message=stored_user,
            assistant_message=stored_reply,
        )

    async def _history(self, cid: str, epoch: int, exclude: set) -> List[Message]:
        if self._attached(epoch):
            return [
                m
                for m in self.state.messages
                if m.id not in exclude and m.id not in self.state.queued_ids
            ]
        # The visible list belongs to another conversation now.
        try:
            stored = await self.caller.read(
                "get_messages",
                lambda: self.persistence.get_messages(cid, limit=self.transcript_limit),
            )
        except PersistenceError as e:
            logger.warning("exchange.history.failed", conversation_id=cid, error=e.message)
            return []
        ordered = sorted(stored, key=lambda m: (m.sequence is None, m.sequence or 0))
        return [m for m in ordered if m.id not in exclude]

    def _spawn_followups(self, conversation: Conversation, epoch: int, user_text: str) -> None:
        cid = conversation.id
        self.tasks.spawn(cid, "extract_memory", self._refresh_memory(cid))
        current = self.state.current_conversation
        if self._attached(epoch) and current is not None and current.id == cid:
            conversation = current
        if self.titles.needs_title(conversation):
            self.titles.start(cid, user_text)

    async def _refresh_memory(self, conversation_id: str) -> None:
        written = await self.curator.extract_memory(conversation_id)
        if not written:
            return
        text = await self.curator.load_memory_context()
        if text is not None:
            self.state.set_memory_context(text)

    def _fail(
        self,
        status: ExchangeStatus,
        epoch: int,
        conversation_id: Optional[str],
        user_message: Message,
        stage: str,
    ) -> ExchangeResult:
        error_message = Message(
            role=Role.ASSISTANT,
            content=self.error_reply,
            conversation_id=conversation_id,
            metadata={"error": stage},
        )
        if self._attached(epoch):
            self.state.append(error_message)
        return ExchangeResult(
            status=status,
            conversation_id=conversation_id,
            user_message=user_message,
            assistant_message=error_message,
        )
