import asyncio
from datetime import timedelta

from chat.gateways import render_memory_context
from chat.memory.curator import MemoryCurator
from chat.memory.extractors import extract_candidates, extract_from_text
from chat.types import MemoryItem, Message, Role, utcnow


def _user(text: str) -> Message:
    return Message(role=Role.USER, content=text)


def test_extracts_name_preference_and_business():
    found = {
        c.key: c
        for c in extract_from_text(
            "My name is Lena. I prefer short answers. My business sells handmade soap."
        )
    }

    assert found["user_name"].value == "Lena"
    assert found["user_name"].category == "personal"
    assert found["business_info"].value == "sells handmade soap"
    assert found["business_info"].importance == 9
    preference = next(c for k, c in found.items() if k.startswith("preference_"))
    assert preference.value == "short answers"
    assert preference.category == "preferences"


def test_same_preference_maps_to_same_key():
    first = extract_from_text("I like dark mode")
    second = extract_from_text("i like   DARK mode.")

    assert first[0].key == second[0].key


def test_assistant_messages_are_not_scanned_and_later_facts_win():
    candidates = extract_candidates(
        [
            _user("my name is Bob"),
            Message(role=Role.ASSISTANT, content="My name is Assistant"),
            _user("Actually my name is Rob"),
        ]
    )

    assert [(c.key, c.value) for c in candidates] == [("user_name", "Rob")]


def test_nothing_to_extract():
    assert extract_candidates([_user("What is the weather like?")]) == []


def test_turn_updates_memory_and_context(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("Hi, my name is Alice and I prefer email updates.")
        await session.wait_for_background()
        return session

    session = asyncio.run(run())

    assert store.memory[("user-1", "user_name")].value == "Alice"
    assert "user_name: Alice" in session.memory_context_text
    assert "email updates" in session.memory_context_text


def test_extraction_is_idempotent_across_turns(make_session, store):
    async def run():
        session = make_session()
        await session.send_message("my name is Alice")
        await session.wait_for_background()
        await session.send_message("tell me more")
        await session.wait_for_background()

    asyncio.run(run())

    assert list(store.memory) == [("user-1", "user_name")]


def test_extraction_failure_does_not_affect_turn(make_session, store):
    store.fail.add("upsert_memory")

    async def run():
        session = make_session()
        result = await session.send_message("my name is Alice")
        await session.wait_for_background()
        return session, result

    session, result = asyncio.run(run())

    assert result.ok
    assert store.memory == {}
    assert session.memory_context_text == ""


def test_save_memory_upserts_by_key(make_session, store):
    async def run():
        session = make_session()
        await session.save_memory("goal", "open a bakery", "business", 7)
        await session.save_memory("goal", "open two bakeries")
        return session

    session = asyncio.run(run())

    assert len(store.memory) == 1
    item = store.memory[("user-1", "goal")]
    assert item.value == "open two bakeries"
    assert item.category == "business"
    assert item.importance == 7
    assert session.memory_context_text == "User Context:\ngoal: open two bakeries"


def test_save_memory_failure_notifies(make_session, store, notifier):
    store.fail.add("upsert_memory")
    session = make_session()

    assert asyncio.run(session.save_memory("goal", "x")) is None
    assert notifier.errors == ["Could not save memory"]


def test_context_is_ranked_and_bounded(store):
    async def run():
        for i in range(12):
            await store.upsert_memory(
                owner_id="u", key=f"k{i:02d}", value="v" * 40, importance=i
            )
        curator = MemoryCurator(
            persistence=store,
            memory=store,
            owner_id="u",
            context_limit=10,
            context_max_chars=200,
        )
        return await curator.load_memory_context()

    text = asyncio.run(run())

    assert text.startswith("User Context:\nk11: ")
    assert len(text) <= 200
    assert text.endswith("...")


def test_context_failure_returns_none(store):
    store.fail.add("build_context_from_memory")
    curator = MemoryCurator(persistence=store, memory=store, owner_id="u")

    assert asyncio.run(curator.load_memory_context()) is None


def test_expired_memory_is_hidden(store):
    async def run():
        await store.upsert_memory(
            owner_id="u", key="promo", value="spring", expires_at=utcnow() - timedelta(minutes=1)
        )
        await store.upsert_memory(owner_id="u", key="city", value="Yerevan")
        return await store.build_context_from_memory("u")

    assert asyncio.run(run()) == "User Context:\ncity: Yerevan"


def test_render_memory_context_orders_by_importance():
    items = [
        MemoryItem(key="low", value="1", importance=1),
        MemoryItem(key="high", value="2", importance=9),
    ]

    assert render_memory_context(items) == "User Context:\nhigh: 2\nlow: 1"
    assert render_memory_context([]) == ""


def test_upsert_without_expiry_keeps_existing_expiry(store):
    expires = utcnow() + timedelta(days=30)

    async def run():
        await store.upsert_memory(owner_id="u", key="user_name", value="Alice", expires_at=expires)
        return await store.upsert_memory(owner_id="u", key="user_name", value="Alicia")

    item = asyncio.run(run())

    assert item.value == "Alicia"
    assert item.expires_at == expires
