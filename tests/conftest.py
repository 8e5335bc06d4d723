import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import pytest

from chat.prompts.title_prompt import TITLE_SYSTEM_PROMPT
from chat.session import ChatSession
from core.settings import ChatSettings
from infra.gateways.in_memory import InMemoryStore


class FlakyStore(InMemoryStore):
    """In-memory store that counts calls and fails the operations listed in ``fail``."""

    def __init__(self) -> None:
        super().__init__()
        self.fail: set = set()
        self.calls: Dict[str, int] = {}

    def _track(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    async def create_conversation(self, **kwargs):
        self._track("create_conversation")
        return await super().create_conversation(**kwargs)

    async def get_conversation(self, conversation_id):
        self._track("get_conversation")
        return await super().get_conversation(conversation_id)

    async def list_conversations(self, owner_id, **kwargs):
        self._track("list_conversations")
        return await super().list_conversations(owner_id, **kwargs)

    async def restore_conversation(self, conversation_id):
        self._track("restore_conversation")
        return await super().restore_conversation(conversation_id)

    async def delete_conversation(self, conversation_id):
        self._track("delete_conversation")
        return await super().delete_conversation(conversation_id)

    async def update_conversation(self, conversation_id, **patch):
        self._track("update_conversation")
        return await super().update_conversation(conversation_id, **patch)

    async def create_message(self, **kwargs):
        self._track("create_message")
        return await super().create_message(**kwargs)

    async def get_messages(self, conversation_id, **kwargs):
        self._track("get_messages")
        return await super().get_messages(conversation_id, **kwargs)

    async def upsert_memory(self, **kwargs):
        self._track("upsert_memory")
        return await super().upsert_memory(**kwargs)

    async def build_context_from_memory(self, owner_id, **kwargs):
        self._track("build_context_from_memory")
        return await super().build_context_from_memory(owner_id, **kwargs)

    def messages_of(self, conversation_id: str):
        return sorted(self.messages.get(conversation_id, []), key=lambda m: m.sequence)


class ScriptedCompletion:
    """Completion gateway with recorded prompts and switchable failures.

    Chat replies echo the last user message unless ``reply`` is set. Title
    prompts answer ``title`` or raise when ``title_error`` is set.
    """

    def __init__(self) -> None:
        self.prompts: List[List[Dict[str, str]]] = []
        self.title_prompts: List[List[Dict[str, str]]] = []
        self.form_contexts: List[Optional[Mapping[str, Any]]] = []
        self.reply: Optional[Callable[[str], str]] = None
        self.error: Optional[Exception] = None
        self.title: str = "Generated Title"
        self.title_error: Optional[Exception] = None
        self.title_gate: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        form_context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        messages = [dict(m) for m in messages]
        if messages and messages[0]["content"] == TITLE_SYSTEM_PROMPT:
            self.title_prompts.append(messages)
            if self.title_gate is not None:
                await self.title_gate.wait()
            if self.title_error is not None:
                raise self.title_error
            return self.title
        self.prompts.append(messages)
        self.form_contexts.append(form_context)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        last = messages[-1]["content"]
        return self.reply(last) if self.reply else f"echo: {last}"


def chat_settings(**overrides) -> ChatSettings:
    values = dict(
        CHAT_GATEWAY_TIMEOUT_SECONDS=2.0,
        CHAT_COMPLETION_TIMEOUT_SECONDS=2.0,
        CHAT_READ_RETRIES=1,
    )
    values.update(overrides)
    return ChatSettings(**values)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def completion() -> ScriptedCompletion:
    return ScriptedCompletion()


@pytest.fixture
def make_session(store, completion, notifier):
    def _make(**kwargs) -> ChatSession:
        settings = kwargs.pop("settings", None) or chat_settings()
        return ChatSession(
            persistence=store,
            memory=store,
            completion=completion,
            owner_id=kwargs.pop("owner_id", "user-1"),
            notifier=kwargs.pop("notifier", notifier),
            settings=settings,
            **kwargs,
        )

    return _make


class RecordingNotifier:
    def __init__(self) -> None:
        self.errors: List[str] = []
        self.infos: List[str] = []

    def info(self, message: str, **context: Any) -> None:
        self.infos.append(message)

    def error(self, message: str, **context: Any) -> None:
        self.errors.append(message)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
