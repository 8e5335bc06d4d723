import asyncio
from types import SimpleNamespace

import pytest

from chat.exceptions import CompletionError
from chat.prompts.title_prompt import build_title_messages
from infra.gateways.offline_completion import (
    DEFAULT_REPLY,
    OfflineCompletionGateway,
    canned_reply,
)
from infra.gateways.openai_completion import OpenAICompletionGateway
from infra.resources import OpenAIResource


class FakeCompletions:
    def __init__(self, content: str):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _gateway(content: str = " Sure thing. "):
    resource = OpenAIResource(api_key="", base_url="http://localhost")
    completions = FakeCompletions(content)
    resource.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    gateway = OpenAICompletionGateway(resource, model="test-model", max_tokens=64)
    return gateway, completions


def test_offline_reply_routes_by_keyword():
    assert "Stripe integration" in canned_reply("How do I take payments?")
    assert "LLC" in canned_reply("I need to register my company")
    assert canned_reply("hello") == DEFAULT_REPLY


def test_offline_title_uses_quoted_message():
    gateway = OfflineCompletionGateway()
    messages = build_title_messages(user_message="Help me register an LLC today please")

    assert asyncio.run(gateway.complete(messages)) == "Help me register an LLC"


def test_offline_chat_uses_last_message():
    gateway = OfflineCompletionGateway()
    messages = [
        {"role": "system", "content": "persona"},
        {"role": "user", "content": "need a logo"},
    ]

    assert "brand" in asyncio.run(gateway.complete(messages)).lower()


def test_openai_gateway_sends_window_and_strips_reply():
    gateway, completions = _gateway()
    messages = [
        {"role": "system", "content": "persona"},
        {"role": "user", "content": "hi"},
    ]

    reply = asyncio.run(gateway.complete(messages))

    assert reply == "Sure thing."
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["max_tokens"] == 64
    assert call["messages"] == messages


def test_openai_gateway_inserts_form_context_after_persona():
    gateway, completions = _gateway()
    messages = [
        {"role": "system", "content": "persona"},
        {"role": "user", "content": "hi"},
    ]

    asyncio.run(gateway.complete(messages, form_context={"step": "legal"}))
    sent = completions.calls[0]["messages"]

    assert [m["role"] for m in sent] == ["system", "system", "user"]
    assert sent[1]["content"].startswith("Current form context:")
    assert '"step": "legal"' in sent[1]["content"]


def test_openai_gateway_without_key_raises():
    resource = OpenAIResource(api_key="", base_url="http://localhost")
    gateway = OpenAICompletionGateway(resource, model="test-model")

    with pytest.raises(CompletionError):
        asyncio.run(gateway.complete([{"role": "user", "content": "hi"}]))
