import asyncio

from chat.pipeline.tasks import BackgroundTasks
from chat.text_utils import clean_title, clip_with_ellipsis
from chat.titles.assigner import TitleAssigner
from chat.types import TitleState


def _assigner(store, completion, **kwargs) -> TitleAssigner:
    return TitleAssigner(
        persistence=store, completion=completion, tasks=BackgroundTasks(), **kwargs
    )


def test_failed_generation_falls_back_to_clipped_message(make_session, store, completion):
    completion.title_error = RuntimeError("title model down")
    text = "I want to open a small coffee shop next to the university campus"

    async def run():
        session = make_session()
        result = await session.send_message(text)
        await session.wait_for_background()
        return session, result.conversation_id

    session, cid = asyncio.run(run())

    assert store.conversations[cid].title == text[:50] + "..."
    assert session.titles.state(cid) == TitleState.FALLBACK_TITLED
    assert session.current_conversation.title == text[:50] + "..."


def test_short_message_fallback_has_no_ellipsis(make_session, store, completion):
    completion.title_error = RuntimeError("title model down")

    async def run():
        session = make_session()
        result = await session.send_message("Logo ideas")
        await session.wait_for_background()
        return result.conversation_id

    cid = asyncio.run(run())

    assert store.conversations[cid].title == "Logo ideas"


def test_blank_generated_title_uses_fallback(make_session, store, completion):
    completion.title = '  ""  '

    async def run():
        session = make_session()
        result = await session.send_message("Pricing plan")
        await session.wait_for_background()
        return session, result.conversation_id

    session, cid = asyncio.run(run())

    assert store.conversations[cid].title == "Pricing plan"
    assert session.titles.state(cid) == TitleState.FALLBACK_TITLED


def test_stale_generation_is_not_applied(store, completion):
    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        assigner = _assigner(store, completion)
        newer = await assigner.apply(conversation.id, 2, "Newer title")
        older = await assigner.apply(conversation.id, 1, "Older title")
        return conversation.id, newer, older

    cid, newer, older = asyncio.run(run())

    assert newer is True
    assert older is False
    assert store.conversations[cid].title == "Newer title"


def test_restart_cancels_in_flight_generation(store, completion):
    completion.title_gate = asyncio.Event()

    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        tasks = BackgroundTasks()
        assigner = TitleAssigner(persistence=store, completion=completion, tasks=tasks)
        first = assigner.start(conversation.id, "first message")
        await asyncio.sleep(0)
        second = assigner.start(conversation.id, "second message")
        completion.title = "Second Title"
        completion.title_gate.set()
        await tasks.drain()
        return conversation.id, first, second, assigner

    cid, first, second, assigner = asyncio.run(run())

    assert (first, second) == (1, 2)
    assert store.conversations[cid].title == "Second Title"
    assert store.calls["update_conversation"] == 1
    assert assigner.state(cid) == TitleState.TITLED


def test_deleted_conversation_is_not_titled(store, completion):
    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        assigner = _assigner(store, completion, is_alive=lambda _cid: False)
        return conversation.id, await assigner.apply(conversation.id, 1, "Too late")

    cid, applied = asyncio.run(run())

    assert applied is False
    assert store.conversations[cid].title == "New Conversation"


def test_needs_title_only_for_untitled_placeholder(store, completion):
    async def run():
        placeholder = await store.create_conversation(owner_id="u", title="New Conversation")
        named = await store.create_conversation(owner_id="u", title="Bakery plan")
        return placeholder, named

    placeholder, named = asyncio.run(run())
    assigner = _assigner(store, completion)

    assert assigner.needs_title(placeholder) is True
    assert assigner.needs_title(named) is False


def test_regenerate_title_uses_first_user_message(make_session, store, completion):
    async def run():
        session = make_session()
        await session.send_message("Help with branding")
        await session.send_message("And a website")
        await session.wait_for_background()
        cid = session.current_conversation.id
        completion.title = "Branding Help"
        token = await session.regenerate_title(cid)
        await session.wait_for_background()
        return session, cid, token

    session, cid, token = asyncio.run(run())

    assert token == 2
    assert store.conversations[cid].title == "Branding Help"
    assert session.current_conversation.title == "Branding Help"
    assert '"Help with branding"' in completion.title_prompts[-1][1]["content"]


def test_regenerate_title_without_messages(make_session, store):
    async def run():
        conversation = await store.create_conversation(owner_id="user-1", title="New Conversation")
        session = make_session()
        return await session.regenerate_title(conversation.id)

    assert asyncio.run(run()) is None


def test_clean_title_strips_quotes_and_prefix():
    assert clean_title('"Title: Coffee Shop Launch"\nextra', 50) == "Coffee Shop Launch"
    assert clean_title("   ", 50) == ""
    assert clean_title("x" * 80, 10) == "x" * 10


def test_clip_with_ellipsis():
    assert clip_with_ellipsis("abcdef", 3) == "abc..."
    assert clip_with_ellipsis("abc", 3) == "abc"


def test_conversation_archived_elsewhere_is_not_titled(store, completion):
    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        await store.delete_conversation(conversation.id)
        assigner = _assigner(store, completion)
        return conversation.id, await assigner.apply(conversation.id, 1, "Too late")

    cid, applied = asyncio.run(run())

    assert applied is False
    assert store.conversations[cid].title == "New Conversation"
    assert "update_conversation" not in store.calls


def test_failed_title_persist_returns_to_untitled(store, completion):
    store.fail.add("update_conversation")

    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        assigner = _assigner(store, completion)
        assigner.start(conversation.id, "Pricing plan")
        await assigner.tasks.drain()
        return conversation, assigner

    conversation, assigner = asyncio.run(run())

    assert assigner.state(conversation.id) == TitleState.UNTITLED
    assert assigner.needs_title(conversation) is True
    assert store.conversations[conversation.id].title == "New Conversation"


def test_finished_generation_releases_its_task(store, completion):
    async def run():
        conversation = await store.create_conversation(owner_id="u", title="New Conversation")
        assigner = _assigner(store, completion)
        assigner.start(conversation.id, "Pricing plan")
        await assigner.tasks.drain()
        return assigner

    assigner = asyncio.run(run())

    assert assigner._in_flight == {}
