"""Keyword-routed canned replies for running without a model API key."""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

import structlog

from chat.prompts.title_prompt import TITLE_SYSTEM_PROMPT

logger = structlog.get_logger("infra.offline")

REPLIES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (
        ("crypto", "blockchain"),
        "Crypto business? Here's what we'll automate for you:\n\n"
        "- Legal compliance for crypto operations\n"
        "- Brand identity that signals innovation\n"
        "- Website with crypto payment integration\n"
        "- Marketing that reaches the right investors\n\n"
        "Ready to build? Let's start with your business profile setup.",
    ),
    (
        ("don't know", "where to start", "help"),
        "Everyone starts somewhere. Here's your roadmap:\n\n"
        "1. **Profile Setup** - Tell us about your vision\n"
        "2. **AI Onboarding** - We'll analyze your market\n"
        "3. **Automated Setup** - Legal, branding, website, all handled\n"
        "4. **Launch** - Go live\n\n"
        "Ready to begin?",
    ),
    (
        ("register", "legal", "llc", "corporation"),
        "Legal paperwork? Consider it handled. We automate:\n\n"
        "- Business entity formation (LLC, Corp, etc.)\n"
        "- EIN registration\n"
        "- Operating agreements\n"
        "- Compliance documentation\n\n"
        "Want to start the legal automation process?",
    ),
    (
        ("brand", "logo", "design"),
        "Time to build a brand. We create:\n\n"
        "- Logos generated for your market\n"
        "- Color palettes\n"
        "- Complete brand guidelines\n"
        "- Marketing assets\n\n"
        "Ready to see what we can create?",
    ),
    (
        ("website", "online", "digital"),
        "Websites that convert, not just exist. We build:\n\n"
        "- Landing pages\n"
        "- E-commerce integration\n"
        "- SEO optimization\n"
        "- Mobile-first design\n\n"
        "Want to see your website come to life?",
    ),
    (
        ("payment", "stripe", "money"),
        "Payment processing that works. We set up:\n\n"
        "- Stripe integration\n"
        "- Multiple payment methods\n"
        "- Subscription management\n"
        "- International payments\n\n"
        "Ready to start collecting revenue?",
    ),
    (
        ("marketing", "customers", "sales"),
        "Marketing that runs itself. We automate:\n\n"
        "- Social media campaigns\n"
        "- Email sequences\n"
        "- Content creation\n"
        "- Lead generation\n\n"
        "Want to see the marketing setup?",
    ),
)

DEFAULT_REPLY = (
    "Welcome! I'm here to automate your entire business setup. Whether you need "
    "legal paperwork, branding, websites, or marketing, I've got you covered.\n\n"
    "What's your business vision?"
)


def canned_reply(user_message: str) -> str:
    text = user_message.lower()
    for keywords, reply in REPLIES:
        if any(keyword in text for keyword in keywords):
            return reply
    return DEFAULT_REPLY


def canned_title(user_message: str, max_words: int = 5) -> str:
    words = user_message.split()
    return " ".join(words[:max_words]).strip(" .,!?") or "New Conversation"


class OfflineCompletionGateway:
    """Answers from ``REPLIES`` by the last message's keywords.

    Title prompts (recognized by their system message) get the first words of
    the quoted user message.
    """

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        form_context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        last = messages[-1]["content"] if messages else ""
        if messages and messages[0]["content"] == TITLE_SYSTEM_PROMPT:
            quoted = last.split('"')
            return canned_title(quoted[1] if len(quoted) > 2 else last)
        logger.debug("completion.offline", chars=len(last))
        return canned_reply(last)
