import asyncio
from types import SimpleNamespace

import pytest

from api.features.conversation.service import ConversationService, to_conversation, to_message
from api.features.memory.service import _owner, to_memory_item
from api.shared.entities.base import BaseEntity
from api.shared.entities.registry import ChatConversation, ChatMemory, ChatMessage
from chat.exceptions import NotFoundError
from chat.types import Role, utcnow
from infra.resources import DatabaseResource


def test_registry_maps_every_table():
    tables = BaseEntity.metadata.tables

    assert {"chat_conversation", "chat_message", "chat_memory"} <= set(tables)
    assert "metadata" in ChatConversation.__table__.c
    assert ChatMessage.__table__.c["conversation_id"].foreign_keys
    constraint_names = {c.name for c in ChatMemory.__table__.constraints}
    assert "uq_chat_memory_owner_key" in constraint_names


def test_entities_convert_to_domain_types():
    now = utcnow()
    conversation = to_conversation(
        SimpleNamespace(
            id="c1",
            owner_id="u",
            title="Plan",
            created_at=now,
            updated_at=now,
            is_active=True,
            archived_at=None,
            meta=None,
        )
    )
    message = to_message(
        SimpleNamespace(
            id="m1",
            conversation_id="c1",
            role="assistant",
            content="hi",
            created_at=now,
            sequence=7,
            meta={"local_id": "x"},
        )
    )

    assert conversation.metadata == {}
    assert conversation.is_alive
    assert message.role == Role.ASSISTANT
    assert message.sequence == 7
    assert message.metadata == {"local_id": "x"}


def test_invalid_conversation_id_is_not_found_without_a_query():
    service = ConversationService(DatabaseResource("postgresql+asyncpg://u:p@localhost/db"))

    with pytest.raises(NotFoundError):
        asyncio.run(service.get_conversation("not-a-uuid"))
    with pytest.raises(NotFoundError):
        asyncio.run(
            service.create_message(conversation_id="nope", role=Role.USER, content="x")
        )


def test_anonymous_memory_owner_round_trips_as_none():
    now = utcnow()
    item = to_memory_item(
        SimpleNamespace(
            owner_id=_owner(None),
            key="city",
            value="Yerevan",
            category="general",
            importance=5.0,
            created_at=now,
            updated_at=now,
            expires_at=None,
        )
    )

    assert _owner(None) == ""
    assert _owner("u") == "u"
    assert item.owner_id is None
