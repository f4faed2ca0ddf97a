"""
Text utility functions for the ebook index.

Provides text cleaning, truncation, and word counting for processing
extracted PDF and EPUB content.
"""

import re
import unicodedata


def clean_text(text: str) -> str:
    """
    Normalize and clean extracted text.

    Removes control characters, normalizes whitespace, and handles
    common extraction artifacts.

    Args:
        text: Raw text from PDF or EPUB extraction.

    Returns:
        Cleaned text string.
    """
    if not text:
        return ""

    # Normalize unicode characters
    text = unicodedata.normalize("NFKC", text)

    # Remove control characters except newlines and tabs
    text = "".join(
        char for char in text
        if not unicodedata.category(char).startswith("C")
        or char in "\n\t"
    )

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)

    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)

    return text.strip()


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to maximum length with ellipsis.

    Args:
        text: Text to truncate.
        max_length: Maximum length including suffix.
        suffix: String to append when truncated.

    Returns:
        Truncated text or original if within limit.
    """
    if not text or len(text) <= max_length:
        return text

    truncate_at = max_length - len(suffix)
    if truncate_at <= 0:
        return suffix[:max_length]

    # Try to break at word boundary
    truncated = text[:truncate_at]
    last_space = truncated.rfind(" ")

    if last_space > truncate_at * 0.7:
        truncated = truncated[:last_space]

    return truncated + suffix


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


def create_excerpt(text: str, query: str, context_length: int = 100) -> str:
    """
    Cut a display excerpt around the first occurrence of a query.

    The match is case-insensitive on the raw query string. Up to
    context_length characters are kept on each side, with "..." marking
    cut edges. When the query does not occur, the first
    2 * context_length characters are returned instead.

    Args:
        text: Stored document excerpt.
        query: Raw query string as typed by the user.
        context_length: Characters of context on each side of the match.

    Returns:
        Excerpt string (possibly empty).
    """
    if not text:
        return ""

    index = text.lower().find(query.lower()) if query else -1

    if index == -1:
        if len(text) > context_length * 2:
            return text[:context_length * 2] + "..."
        return text

    start = max(0, index - context_length)
    end = min(len(text), index + len(query) + context_length)

    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."

    return snippet
