"""Text normalization and reading statistics."""

from __future__ import annotations

import math

WORDS_PER_MINUTE = 200


def normalize_text(text: str) -> str:
    """Trim every line, drop blank ones and separate the rest with a blank line.

    Rendered pages produce runs of indentation and empty lines; this turns
    them into readable paragraph breaks. Normalizing normalized text is a
    no-op.
    """
    lines = (line.strip() for line in text.split("\n"))
    return "\n\n".join(line for line in lines if line)


def count_words(text: str) -> int:
    return len(text.split())


def reading_time_minutes(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Minutes needed to read ``word_count`` words, never less than one."""
    return max(1, math.ceil(word_count / words_per_minute))
