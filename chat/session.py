"""Chat session facade: the reactive fields and actions a UI binds to."""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

import structlog

from chat.context.assembler import ContextAssembler
from chat.exceptions import PersistenceError
from chat.gateways import (
    CompletionGateway,
    LoggingNotifier,
    MemoryGateway,
    Notifier,
    PersistenceGateway,
)
from chat.lifecycle.manager import ConversationLifecycleManager
from chat.memory.curator import MemoryCurator
from chat.pipeline.exchange import MessageExchangePipeline
from chat.pipeline.queue import ConversationQueue
from chat.pipeline.tasks import BackgroundTasks
from chat.resilience import GatewayCaller
from chat.state import Listener, SessionState
from chat.titles.assigner import TitleAssigner
from chat.types import (
    Conversation,
    ExchangeResult,
    MemoryItem,
    Message,
    Role,
    SessionSnapshot,
    new_id,
)
from core.settings import SETTINGS, ChatSettings

logger = structlog.get_logger("chat.session")


class ChatSession:
    """One user's chat session.

    Owns the session state and wires the lifecycle manager, exchange pipeline,
    memory curator and title assigner around it. All actions are coroutines
    except ``create_conversation`` and ``clear_messages``, which only touch
    local state.
    """

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        memory: MemoryGateway,
        completion: CompletionGateway,
        title_completion: Optional[CompletionGateway] = None,
        owner_id: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        user_context: Optional[str] = None,
        settings: Optional[ChatSettings] = None,
        session_id: Optional[str] = None,
    ):
        settings = settings or SETTINGS.CHAT
        self.id = session_id or new_id()
        self.owner_id = owner_id
        self.user_context = user_context
        self.notifier = notifier or LoggingNotifier()
        self.persistence = persistence
        self.state = SessionState()
        self.tasks = BackgroundTasks()
        self.caller = GatewayCaller(
            timeout=settings.CHAT_GATEWAY_TIMEOUT_SECONDS,
            read_retries=settings.CHAT_READ_RETRIES,
        )
        self.transcript_limit = settings.CHAT_TRANSCRIPT_READ_LIMIT

        self.lifecycle = ConversationLifecycleManager(
            state=self.state,
            persistence=persistence,
            notifier=self.notifier,
            owner_id=owner_id,
            caller=self.caller,
            placeholder_title=settings.CHAT_PLACEHOLDER_TITLE,
            list_limit=settings.CHAT_CONVERSATION_LIST_LIMIT,
            history_limit=settings.CHAT_TRANSCRIPT_READ_LIMIT,
            on_deleted=self._on_deleted,
        )
        self.curator = MemoryCurator(
            persistence=persistence,
            memory=memory,
            owner_id=owner_id,
            caller=self.caller,
            transcript_limit=settings.CHAT_TRANSCRIPT_READ_LIMIT,
            context_limit=settings.CHAT_MEMORY_CONTEXT_LIMIT,
            context_max_chars=settings.CHAT_MEMORY_CONTEXT_MAX_CHARS,
        )
        self.titles = TitleAssigner(
            persistence=persistence,
            completion=title_completion or completion,
            tasks=self.tasks,
            caller=self.caller,
            placeholder=settings.CHAT_PLACEHOLDER_TITLE,
            max_length=settings.CHAT_TITLE_MAX_LENGTH,
            timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            is_alive=self.lifecycle.is_alive,
            on_title=self._on_title,
        )
        self.pipeline = MessageExchangePipeline(
            state=self.state,
            lifecycle=self.lifecycle,
            persistence=persistence,
            completion=completion,
            assembler=ContextAssembler(window=settings.CHAT_CONTEXT_WINDOW),
            curator=self.curator,
            titles=self.titles,
            tasks=self.tasks,
            queue=ConversationQueue(),
            caller=self.caller,
            completion_timeout=settings.CHAT_COMPLETION_TIMEOUT_SECONDS,
            transcript_limit=settings.CHAT_TRANSCRIPT_READ_LIMIT,
        )

    # Reactive fields

    @property
    def messages(self) -> List[Message]:
        return self.state.messages

    @property
    def conversations(self) -> List[Conversation]:
        return self.state.conversations

    @property
    def current_conversation(self) -> Optional[Conversation]:
        return self.state.current_conversation

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def is_loading_conversations(self) -> bool:
        return self.state.is_loading_conversations

    @property
    def memory_context_text(self) -> str:
        return self.state.memory_context_text

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.state.subscribe(listener)

    def snapshot(self) -> SessionSnapshot:
        return self.state.snapshot()

    # Actions

    async def start(self) -> None:
        """Load the memory summary and the conversation list."""
        await asyncio.gather(self.reload_memory_context(), self.refresh_conversations())
        logger.info("session.started", session_id=self.id, owner_id=self.owner_id)

    async def send_message(
        self, content: str, form_context: Optional[Mapping[str, Any]] = None
    ) -> ExchangeResult:
        self.state.begin_loading()
        try:
            return await self.pipeline.send_message(
                content, user_context=self.user_context, form_context=form_context
            )
        finally:
            self.state.end_loading()

    async def load_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.lifecycle.load_conversation(conversation_id)

    def create_conversation(self) -> None:
        self.lifecycle.create_conversation()

    def clear_messages(self) -> None:
        self.lifecycle.clear()

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self.lifecycle.delete_conversation(conversation_id)

    async def restore_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.lifecycle.restore_conversation(conversation_id)

    async def refresh_conversations(self) -> List[Conversation]:
        return await self.lifecycle.refresh_conversations()

    async def list_archived_conversations(self) -> List[Conversation]:
        return await self.lifecycle.list_archived_conversations()

    async def save_memory(
        self,
        key: str,
        value: str,
        category: Optional[str] = None,
        importance: Optional[float] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[MemoryItem]:
        item = await self.curator.save_memory(key, value, category, importance, expires_at)
        if item is None:
            self.notifier.error("Could not save memory", key=key)
            return None
        await self.reload_memory_context()
        return item

    async def reload_memory_context(self) -> str:
        text = await self.curator.load_memory_context()
        if text is not None:
            self.state.set_memory_context(text)
        return self.state.memory_context_text

    async def regenerate_title(self, conversation_id: str) -> Optional[int]:
        """Re-title from the conversation's first user message."""
        try:
            messages = await self.caller.read(
                "get_messages",
                lambda: self.persistence.get_messages(
                    conversation_id, limit=self.transcript_limit
                ),
            )
        except PersistenceError as e:
            logger.warning("title.regenerate.failed", conversation_id=conversation_id, error=e.message)
            return None
        ordered = sorted(messages, key=lambda m: (m.sequence is None, m.sequence or 0))
        first = next((m for m in ordered if m.role == Role.USER), None)
        if first is None or not self.lifecycle.is_alive(conversation_id):
            return None
        return self.titles.start(conversation_id, first.content)

    async def wait_for_background(self) -> None:
        await self.tasks.drain()

    async def close(self) -> None:
        cancelled = self.tasks.cancel_all()
        await self.tasks.drain()
        logger.info("session.closed", session_id=self.id, cancelled=cancelled)

    # Callbacks

    def _on_deleted(self, conversation_id: str) -> None:
        cancelled = self.tasks.cancel(conversation_id)
        self.titles.forget(conversation_id)
        self.pipeline.forget(conversation_id)
        logger.info("session.conversation.forgotten", conversation_id=conversation_id, cancelled=cancelled)

    async def _on_title(self, conversation_id: str, title: str) -> None:
        current = self.state.current_conversation
        if current is not None and current.id == conversation_id:
            self.state.set_current(current.model_copy(update={"title": title}))
        await self.lifecycle.refresh_conversations()
