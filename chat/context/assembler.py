"""Context window construction for completion calls."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from chat.prompts.system_prompt import build_system_prompt
from chat.types import Message, Role


class ContextAssembler:
    """Builds ``[system, *last_k_history, new_user_message]``.

    History is taken as given: no reordering, no deduplication.
    """

    def __init__(self, *, window: int = 5):
        self.window = max(0, window)

    def recent(self, history: Sequence[Message]) -> List[Message]:
        if self.window == 0:
            return []
        return list(history[-self.window :])

    def assemble(
        self,
        *,
        history: Sequence[Message],
        user_message: Message,
        user_context: Optional[str] = None,
        memory_context: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        system = {
            "role": Role.SYSTEM.value,
            "content": build_system_prompt(
                user_context=user_context, memory_context=memory_context
            ),
        }
        window = [m.to_prompt() for m in self.recent(history)]
        return [system, *window, user_message.to_prompt()]
