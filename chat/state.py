"""Client-local session state with change notifications."""
from __future__ import annotations

from typing import Callable, List, Optional, Set

import structlog

from chat.types import Conversation, Message, SessionSnapshot, new_id

logger = structlog.get_logger("chat.state")

Listener = Callable[[str], None]


class SessionState:
    """Reactive fields of one chat session.

    ``epoch`` changes whenever the visible conversation is replaced (new chat,
    load, clear, delete of the current one). Turns capture it at send time and
    stop touching the visible list once it has moved on.
    """

    def __init__(self) -> None:
        self.current_conversation: Optional[Conversation] = None
        self.messages: List[Message] = []
        self.conversations: List[Conversation] = []
        self.memory_context_text: str = ""
        self.is_loading_conversations: bool = False
        self.epoch: int = 0
        self.draft_key: str = f"draft:{new_id()}"
        self.queued_ids: Set[str] = set()
        self._loading: int = 0
        self._listeners: List[Listener] = []

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, field: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(field)
            except Exception:
                logger.warning("state.listener.failed", field=field, exc_info=True)

    def begin_loading(self) -> None:
        self._loading += 1
        self.emit("is_loading")

    def end_loading(self) -> None:
        self._loading = max(0, self._loading - 1)
        self.emit("is_loading")

    def set_loading_conversations(self, value: bool) -> None:
        self.is_loading_conversations = value
        self.emit("is_loading_conversations")

    def append(self, message: Message) -> None:
        self.messages = [*self.messages, message]
        self.emit("messages")

    def replace(self, message_id: str, message: Message) -> bool:
        for index, existing in enumerate(self.messages):
            if existing.id == message_id:
                updated = list(self.messages)
                updated[index] = message
                self.messages = updated
                self.emit("messages")
                return True
        return False

    def set_current(self, conversation: Optional[Conversation]) -> None:
        self.current_conversation = conversation
        self.emit("current_conversation")

    def set_conversations(self, conversations: List[Conversation]) -> None:
        self.conversations = list(conversations)
        self.emit("conversations")

    def set_memory_context(self, text: str) -> None:
        self.memory_context_text = text
        self.emit("memory_context_text")

    def reset(
        self,
        conversation: Optional[Conversation] = None,
        messages: Optional[List[Message]] = None,
    ) -> None:
        """Swap the visible conversation in one step."""
        self.epoch += 1
        self.draft_key = f"draft:{new_id()}"
        self.current_conversation = conversation
        self.messages = list(messages or [])
        self.emit("current_conversation")
        self.emit("messages")

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            current_conversation=self.current_conversation,
            messages=list(self.messages),
            conversations=list(self.conversations),
            memory_context_text=self.memory_context_text,
            is_loading=self.is_loading,
            is_loading_conversations=self.is_loading_conversations,
        )
