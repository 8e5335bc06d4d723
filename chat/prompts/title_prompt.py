"""Conversation title prompt builder."""
from __future__ import annotations

from typing import Dict, List

TITLE_SYSTEM_PROMPT = (
    "You generate very short, descriptive titles for conversations. "
    "Return only the title text, no quotes or punctuation."
)


def build_title_messages(*, user_message: str) -> List[Dict[str, str]]:
    prompt = (
        f'Based on this user message: "{user_message.strip()}", generate a very '
        "short (3-5 words) conversation title. Return only the title, no quotes "
        "or extra text."
    )
    return [
        {"role": "system", "content": TITLE_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
