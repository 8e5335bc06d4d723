import asyncio

from chat.lifecycle.manager import conversation_metadata
from chat.types import ExchangeStatus


def test_new_conversation_is_lazy(make_session, store):
    session = make_session()
    session.create_conversation()

    assert session.current_conversation is None
    assert session.messages == []
    assert "create_conversation" not in store.calls


def test_new_conversation_resets_visible_state(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        first = session.current_conversation.id
        session.create_conversation()
        await session.send_message("again")
        await session.wait_for_background()
        return session, first

    session, first = asyncio.run(run())

    assert session.current_conversation.id != first
    assert [m.content for m in session.messages] == ["again", "echo: again"]
    assert len(store.conversations) == 2


def test_delete_current_conversation_resets_session(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        cid = session.current_conversation.id
        deleted = await session.delete_conversation(cid)
        archived = await session.list_archived_conversations()
        return session, cid, deleted, archived

    session, cid, deleted, archived = asyncio.run(run())

    assert deleted is True
    assert session.current_conversation is None
    assert session.messages == []
    assert session.conversations == []
    assert [c.id for c in archived] == [cid]
    assert store.conversations[cid].is_alive is False


def test_delete_other_conversation_keeps_current(make_session):
    async def run():
        session = make_session()
        await session.send_message("first")
        await session.wait_for_background()
        other = session.current_conversation.id
        session.create_conversation()
        await session.send_message("second")
        await session.wait_for_background()
        current = session.current_conversation.id
        await session.delete_conversation(other)
        return session, current

    session, current = asyncio.run(run())

    assert session.current_conversation.id == current
    assert [m.content for m in session.messages] == ["second", "echo: second"]
    assert [c.id for c in session.conversations] == [current]


def test_delete_failure_notifies_and_keeps_state(make_session, store, notifier):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        store.fail.add("delete_conversation")
        deleted = await session.delete_conversation(session.current_conversation.id)
        return session, deleted

    session, deleted = asyncio.run(run())

    assert deleted is False
    assert session.current_conversation is not None
    assert len(session.messages) == 2
    assert notifier.errors == ["Could not delete conversation"]


def test_restore_brings_conversation_back(make_session):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        cid = session.current_conversation.id
        await session.delete_conversation(cid)
        restored = await session.restore_conversation(cid)
        return session, cid, restored

    session, cid, restored = asyncio.run(run())

    assert restored.id == cid
    assert restored.is_alive
    assert session.lifecycle.is_alive(cid)
    assert [c.id for c in session.conversations] == [cid]


def test_load_conversation_orders_by_sequence(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("one")
        await session.send_message("two")
        await session.wait_for_background()
        cid = session.current_conversation.id
        session.create_conversation()
        loaded = await session.load_conversation(cid)
        return session, cid, loaded

    session, cid, loaded = asyncio.run(run())

    assert loaded.id == cid
    assert session.current_conversation.id == cid
    assert [m.content for m in session.messages] == ["one", "echo: one", "two", "echo: two"]
    assert session.is_loading is False


def test_load_failure_keeps_previous_view(make_session, store, notifier):
    async def run():
        session = make_session()
        await session.send_message("keep me")
        await session.wait_for_background()
        cid = session.current_conversation.id
        store.fail.add("get_messages")
        loaded = await session.load_conversation(cid)
        return session, loaded

    session, loaded = asyncio.run(run())

    assert loaded is None
    assert [m.content for m in session.messages] == ["keep me", "echo: keep me"]
    assert notifier.errors == ["Could not load conversation"]
    # one retry for the read
    assert store.calls["get_messages"] >= 2


def test_load_unknown_conversation_returns_none(make_session):
    session = make_session()

    assert asyncio.run(session.load_conversation("missing")) is None


def test_clear_messages_keeps_remote_data(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        cid = session.current_conversation.id
        session.clear_messages()
        return session, cid

    session, cid = asyncio.run(run())

    assert session.messages == []
    assert session.current_conversation is None
    assert len(store.messages_of(cid)) == 2


def test_refresh_failure_keeps_list(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("hello")
        await session.wait_for_background()
        before = list(session.conversations)
        store.fail.add("list_conversations")
        after = await session.refresh_conversations()
        return session, before, after

    session, before, after = asyncio.run(run())

    assert after == before
    assert session.is_loading_conversations is False


def test_conversation_metadata_shape():
    metadata = conversation_metadata()

    assert metadata["auto"] is True
    assert set(metadata) == {"auto", "timestamp", "date", "time"}
    assert metadata["time"].endswith(("AM", "PM"))


def test_conversation_deleted_by_another_session_takes_no_messages(make_session, store):
    async def run():
        first = make_session()
        second = make_session()
        await first.send_message("hello there")
        await first.wait_for_background()
        cid = first.current_conversation.id
        assert await second.delete_conversation(cid) is True
        result = await first.send_message("still here?")
        await first.wait_for_background()
        return first, cid, result

    first, cid, result = asyncio.run(run())

    assert result.status == ExchangeStatus.PERSISTENCE_ERROR
    assert first.messages[-1].metadata == {"error": "create_message"}
    assert [m.content for m in store.messages_of(cid)] == ["hello there", "echo: hello there"]
    assert store.conversations[cid].is_alive is False


def test_archived_conversation_is_not_loaded(make_session, store, notifier):
    async def run():
        session = make_session()
        await session.send_message("hello there")
        await session.wait_for_background()
        cid = session.current_conversation.id
        session.create_conversation()
        await store.delete_conversation(cid)
        loaded = await session.load_conversation(cid)
        result = await session.send_message("more")
        await session.wait_for_background()
        return session, cid, loaded, result

    session, cid, loaded, result = asyncio.run(run())

    assert loaded is None
    assert notifier.errors == ["Conversation has been deleted"]
    assert result.status == ExchangeStatus.OK
    assert result.conversation_id != cid
    assert len(store.messages_of(cid)) == 2
