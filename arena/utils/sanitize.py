"""Input sanitization for free text persisted from user input."""

import html
import re

_DANGEROUS_BLOCK_RE = re.compile(
    r"<(script|style|iframe|object|embed)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]*>")
_UNCLOSED_TAG_RE = re.compile(r"<[a-zA-Z/!][^<]*$")


def sanitize_input(value: str | None) -> str:
    """Strip HTML markup and surrounding whitespace from user input.

    Text content of ordinary tags is kept; script-like blocks are dropped
    entirely. Remaining angle brackets are escaped.

    >>> sanitize_input("  <b>Team</b> Alpha ")
    'Team Alpha'
    """
    if value is None:
        return ""
    text = _DANGEROUS_BLOCK_RE.sub("", value)
    text = _TAG_RE.sub("", text)
    text = _UNCLOSED_TAG_RE.sub("", text)
    text = text.replace("<", "&lt;").replace(">", "&gt;")
    return text.strip()


def sanitize_optional(value: str | None) -> str | None:
    """Sanitize, mapping empty results to None."""
    cleaned = sanitize_input(value)
    return cleaned or None


def sanitize_url(value: str | None) -> str | None:
    """Sanitize an image URL returned by the image host.

    Only https URLs survive; anything else becomes None.
    """
    cleaned = sanitize_input(value)
    if not cleaned:
        return None
    cleaned = html.unescape(cleaned)
    if not cleaned.lower().startswith("https://") or any(c in cleaned for c in " \"'<>"):
        return None
    return cleaned
