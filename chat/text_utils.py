"""Small text helpers used across the engine."""
import hashlib
import re


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate text to specified length, suffix included."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def clip_with_ellipsis(text: str, length: int, suffix: str = "...") -> str:
    """Keep the first ``length`` characters and mark the cut with ``suffix``."""
    return text[:length] + (suffix if len(text) > length else "")


def clean_title(raw: str, max_length: int) -> str:
    """Normalize a model-generated title: one line, no wrapping quotes."""
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = title.strip().strip("\"'`").strip()
    title = re.sub(r"^(title\s*:\s*)", "", title, flags=re.IGNORECASE)
    return title[:max_length].strip()


def short_digest(text: str, length: int = 10) -> str:
    """Stable digest for deriving keys from free text."""
    normalized = " ".join(text.lower().split())
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:length]
