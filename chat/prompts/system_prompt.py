"""System prompt builder for chat turns.

Combines the assistant persona, the caller's user-context block and the
memory summary into the single system message of a context window.
"""
from __future__ import annotations

from typing import Optional

PERSONA_PREAMBLE = (
    "You are a helpful business automation assistant. "
    "Here is the user's current context and information:"
)

PERSONA_CLOSING = (
    "Use this information to provide personalized and context-aware responses. "
    "Reference specific details about the user's business, progress, and "
    "preferences when relevant."
)

MISSING_USER_CONTEXT = (
    "USER_CONTEXT:\n"
    '  status: "unavailable"\n'
    '  note: "No profile information has been provided yet."'
)


def build_system_prompt(
    *, user_context: Optional[str] = None, memory_context: Optional[str] = None
) -> str:
    context_block = (user_context or "").strip() or MISSING_USER_CONTEXT
    parts = [PERSONA_PREAMBLE, "", context_block, ""]
    memory_block = (memory_context or "").strip()
    if memory_block:
        parts.extend([f"Additional Memory Context:\n{memory_block}", ""])
    parts.append(PERSONA_CLOSING)
    return "\n".join(parts)
