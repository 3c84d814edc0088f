"""Text helpers shared by the index, diagnostics and adapters.

Text handling contract
----------------------
Incoming documents and user queries have BOM markers stripped and are NFKC
normalized once, at the boundary. Keyword matching works on lower-cased word
tokens; no stemming or stop-word removal is applied.
"""

import re
import unicodedata

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


def clean_text(text: str, *, normalize: bool = True) -> str:
    """Remove BOM markers and optionally apply NFKC normalization.

    Args:
        text: Input text that may contain BOM or special characters.
        normalize: Whether to apply NFKC normalization. Enabled by default.

    Returns:
        Cleaned text.
    """
    if not text:
        return ""

    cleaned = text.replace("\ufeff", "").replace("\ufffd", "")
    if normalize:
        cleaned = unicodedata.normalize("NFKC", cleaned)
    return cleaned


def tokenize(text: str) -> list[str]:
    """Split text into lower-cased word tokens for keyword scoring."""
    if not text:
        return []
    return _TOKEN_PATTERN.findall(clean_text(text).lower())


def truncate(text: str, max_chars: int = 50) -> str:
    """Shorten text for log previews."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."
