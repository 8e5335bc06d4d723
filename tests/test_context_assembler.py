from chat.context.assembler import ContextAssembler
from chat.prompts.system_prompt import MISSING_USER_CONTEXT, build_system_prompt
from chat.types import Message, Role


def _history(n: int):
    return [
        Message(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"m{i}", sequence=i)
        for i in range(n)
    ]


def test_window_keeps_last_k_in_order():
    assembler = ContextAssembler(window=5)
    prompt = assembler.assemble(
        history=_history(8), user_message=Message(role=Role.USER, content="now")
    )

    assert prompt[0]["role"] == "system"
    assert [m["content"] for m in prompt[1:]] == ["m3", "m4", "m5", "m6", "m7", "now"]
    assert prompt[-1] == {"role": "user", "content": "now"}


def test_short_history_is_used_whole():
    assembler = ContextAssembler(window=5)
    prompt = assembler.assemble(
        history=_history(2), user_message=Message(role=Role.USER, content="now")
    )

    assert [m["content"] for m in prompt[1:]] == ["m0", "m1", "now"]


def test_zero_window_sends_only_system_and_new_message():
    assembler = ContextAssembler(window=0)
    prompt = assembler.assemble(
        history=_history(4), user_message=Message(role=Role.USER, content="now")
    )

    assert len(prompt) == 2
    assert prompt[1]["content"] == "now"


def test_history_is_not_deduplicated_or_reordered():
    repeated = [
        Message(role=Role.USER, content="same", sequence=2),
        Message(role=Role.USER, content="same", sequence=1),
    ]
    prompt = ContextAssembler(window=5).assemble(
        history=repeated, user_message=Message(role=Role.USER, content="now")
    )

    assert [m["content"] for m in prompt[1:]] == ["same", "same", "now"]


def test_system_prompt_carries_user_and_memory_context():
    prompt = ContextAssembler().assemble(
        history=[],
        user_message=Message(role=Role.USER, content="hi"),
        user_context="USER_CONTEXT:\n  business: bakery",
        memory_context="User Context:\nuser_name: Ana",
    )
    system = prompt[0]["content"]

    assert "business: bakery" in system
    assert "Additional Memory Context:\nUser Context:\nuser_name: Ana" in system


def test_system_prompt_without_context_uses_placeholder_block():
    system = build_system_prompt()

    assert MISSING_USER_CONTEXT in system
    assert "Additional Memory Context" not in system
