"""Joining speech engine segments into a single transcript."""

import re
from typing import Iterable

# Text starting with one of . , ! ? ; : ) ] ' " - _ attaches to the previous segment
_ATTACHES_TO_PREVIOUS = re.compile(r"^[.,!?;:)\]'\"\-_]")


def join_segments(texts: Iterable[str]) -> str:
    """Concatenate segment texts with natural punctuation attachment.

    The first segment is taken as is. Every following segment is stripped,
    skipped when empty, glued on directly when it starts with punctuation
    and joined with a single space otherwise. The result is stripped.

    >>> join_segments(["Hello", ", world", "!"])
    'Hello, world!'
    >>> join_segments(["Hi", "there"])
    'Hi there'
    """
    result = ""
    for index, text in enumerate(texts):
        text = text or ""
        if index == 0:
            result = text
            continue

        trimmed = text.strip()
        if not trimmed:
            continue

        if _ATTACHES_TO_PREVIOUS.match(trimmed):
            result += trimmed
        else:
            result += " " + trimmed
    return result.strip()
