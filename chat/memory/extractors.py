"""Rule-based extraction of durable facts from user messages."""
from __future__ import annotations

import re
from typing import Dict, Iterable, List

from pydantic import BaseModel

from chat.text_utils import short_digest
from chat.types import Message, Role

NAME_PATTERN = re.compile(r"\bmy name is (\w+)", re.IGNORECASE)
PREFERENCE_PATTERN = re.compile(r"\bi (?:prefer|like) (.+?)(?:\.|,|$)", re.IGNORECASE)
BUSINESS_PATTERN = re.compile(r"\bmy (?:business|company) (.+?)(?:\.|,|$)", re.IGNORECASE)


class MemoryCandidate(BaseModel):
    key: str
    value: str
    category: str
    importance: float


def extract_from_text(text: str) -> List[MemoryCandidate]:
    candidates: List[MemoryCandidate] = []

    name = NAME_PATTERN.search(text)
    if name:
        candidates.append(
            MemoryCandidate(
                key="user_name", value=name.group(1), category="personal", importance=8
            )
        )

    preference = PREFERENCE_PATTERN.search(text)
    if preference and preference.group(1).strip():
        value = preference.group(1).strip()
        # Keyed by content so re-reading the same transcript merges.
        candidates.append(
            MemoryCandidate(
                key=f"preference_{short_digest(value)}",
                value=value,
                category="preferences",
                importance=6,
            )
        )

    business = BUSINESS_PATTERN.search(text)
    if business and business.group(1).strip():
        candidates.append(
            MemoryCandidate(
                key="business_info",
                value=business.group(1).strip(),
                category="business",
                importance=9,
            )
        )

    return candidates


def extract_candidates(messages: Iterable[Message]) -> List[MemoryCandidate]:
    """Scan user messages in order; a later fact for the same key wins."""
    by_key: Dict[str, MemoryCandidate] = {}
    for message in messages:
        if message.role != Role.USER:
            continue
        for candidate in extract_from_text(message.content):
            by_key.pop(candidate.key, None)
            by_key[candidate.key] = candidate
    return list(by_key.values())
