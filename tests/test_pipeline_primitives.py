import asyncio

import pytest

from chat.exceptions import NotFoundError, PersistenceError
from chat.pipeline.queue import ConversationQueue
from chat.pipeline.tasks import BackgroundTasks
from chat.resilience import GatewayCaller
from chat.state import SessionState
from chat.types import Message, Role


def test_queue_rebind_moves_draft_lock():
    async def run():
        queue = ConversationQueue()
        draft = queue.lock("draft:1")
        queue.rebind("draft:1", "c1")
        return draft, queue.lock("c1"), queue.lock("draft:1"), queue.lock("c2")

    draft, real, via_alias, other = asyncio.run(run())

    assert real is draft
    assert via_alias is draft
    assert other is not draft


def test_queue_discard_drops_aliases():
    async def run():
        queue = ConversationQueue()
        first = queue.lock("draft:1")
        queue.rebind("draft:1", "c1")
        queue.discard("c1")
        return first, queue.lock("draft:1"), queue.resolve("draft:1")

    first, after, resolved = asyncio.run(run())

    assert after is not first
    assert resolved == "draft:1"


def test_queue_serializes_turns_per_conversation():
    order = []

    async def turn(queue, name):
        async with queue.lock("c1"):
            order.append(f"{name}:start")
            await asyncio.sleep(0)
            order.append(f"{name}:end")

    async def run():
        queue = ConversationQueue()
        await asyncio.gather(turn(queue, "a"), turn(queue, "b"))

    asyncio.run(run())

    assert order == ["a:start", "a:end", "b:start", "b:end"]


def test_background_failure_is_contained():
    async def boom():
        raise RuntimeError("boom")

    async def run():
        tasks = BackgroundTasks()
        tasks.spawn("c1", "boom", boom())
        await tasks.drain()
        return tasks.pending()

    assert asyncio.run(run()) == 0


def test_background_cancel_by_conversation():
    async def forever():
        await asyncio.Event().wait()

    async def run():
        tasks = BackgroundTasks()
        a = tasks.spawn("c1", "wait", forever())
        b = tasks.spawn("c2", "wait", forever())
        await asyncio.sleep(0)
        cancelled = tasks.cancel("c1")
        await asyncio.gather(a, return_exceptions=True)
        state = (cancelled, a.cancelled(), b.done(), tasks.pending("c2"))
        tasks.cancel_all()
        await tasks.drain()
        return state

    assert asyncio.run(run()) == (1, True, False, 1)


def test_read_is_retried_once():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("reset")
        return "ok"

    caller = GatewayCaller(timeout=1, read_retries=1, retry_delay=0)

    assert asyncio.run(caller.read("get_messages", flaky)) == "ok"
    assert len(attempts) == 2


def test_write_is_never_retried():
    attempts = []

    async def failing():
        attempts.append(1)
        raise ConnectionError("reset")

    caller = GatewayCaller(timeout=1, read_retries=1, retry_delay=0)

    with pytest.raises(PersistenceError) as exc:
        asyncio.run(caller.write("create_message", failing))
    assert exc.value.operation == "create_message"
    assert len(attempts) == 1


def test_timeout_becomes_persistence_error():
    async def slow():
        await asyncio.sleep(1)

    caller = GatewayCaller(timeout=0.01, read_retries=0)

    with pytest.raises(PersistenceError) as exc:
        asyncio.run(caller.read("get_conversation", slow))
    assert "timed out" in exc.value.message


def test_not_found_is_not_retried():
    attempts = []

    async def missing():
        attempts.append(1)
        raise NotFoundError("conversation", "c1")

    caller = GatewayCaller(timeout=1, read_retries=1, retry_delay=0)

    with pytest.raises(NotFoundError):
        asyncio.run(caller.read("get_conversation", missing))
    assert len(attempts) == 1


def test_state_reset_moves_epoch_and_draft_key():
    state = SessionState()
    events = []
    unsubscribe = state.subscribe(events.append)
    state.append(Message(role=Role.USER, content="hi"))
    epoch, draft = state.epoch, state.draft_key

    state.reset()
    unsubscribe()
    state.append(Message(role=Role.USER, content="unseen"))

    assert state.epoch == epoch + 1
    assert state.draft_key != draft
    assert [m.content for m in state.messages] == ["unseen"]
    assert events == ["messages", "current_conversation", "messages"]


def test_failing_listener_does_not_break_state():
    state = SessionState()

    def broken(_field):
        raise ValueError("listener bug")

    state.subscribe(broken)
    state.set_memory_context("text")

    assert state.memory_context_text == "text"
