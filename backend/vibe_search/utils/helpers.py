"""General-purpose utility helpers."""
import re
import uuid
from datetime import datetime, timezone

_WHITESPACE = re.compile(r"\s+")
_SQL_KEYWORDS = re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER)\b", re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """Generate a random session identifier."""
    return str(uuid.uuid4())


def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to max_length with suffix."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def chunk_list(lst: list, size: int) -> list[list]:
    """Split a list into chunks of given size."""
    return [lst[i : i + size] for i in range(0, len(lst), size)]


def sanitize_prompt(text: str) -> str:
    """Normalize user-supplied query text before it reaches the AI provider.

    Collapses whitespace, strips script blocks and bare SQL verbs.
    """
    sanitized = _WHITESPACE.sub(" ", text.strip())
    sanitized = _SQL_KEYWORDS.sub("", sanitized)
    sanitized = _SCRIPT_BLOCK.sub("", sanitized)
    return _WHITESPACE.sub(" ", sanitized).strip()
