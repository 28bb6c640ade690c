"""Message text normalization and duplicate/overlap removal."""
from __future__ import annotations

import re
from collections import defaultdict
from typing import Sequence, TypeVar

from chatledger.models import Message

_LEADING_RELATIVE_TIME = re.compile(
    r"^\d+\s*(?:second|minute|hour|day|week|month|year)s?\s*ago\s*",
    re.IGNORECASE,
)
_TRAILING_RELATIVE_TIME = re.compile(
    r"\d+\s*(?:second|minute|hour|day|week|month|year)s?\s*ago\s*$",
    re.IGNORECASE,
)

# Pure progress chatter rendered between real messages.
_BOILERPLATE_PATTERNS: list[tuple[re.Pattern[str], int | None]] = [
    (re.compile(r"^Worked\s+for\s+", re.IGNORECASE), None),
    (re.compile(r"^Decided\s+on\s+", re.IGNORECASE), 100),
    (re.compile(r"^\d+\s+actions?\s*$", re.IGNORECASE), None),
    (re.compile(r"^Created task list\s*$", re.IGNORECASE), None),
    (re.compile(r"^Ready to share\?\s*Publish", re.IGNORECASE), None),
]

E = TypeVar("E")


def strip_relative_time(text: str | None) -> str:
    """Drop a trailing and a leading "N units ago" suffix."""
    cleaned = _TRAILING_RELATIVE_TIME.sub("", (text or "").strip()).strip()
    return _LEADING_RELATIVE_TIME.sub("", cleaned).strip()


def is_boilerplate(text: str | None) -> bool:
    value = (text or "").strip()
    if not value:
        return False
    for pattern, max_length in _BOILERPLATE_PATTERNS:
        if not pattern.search(value):
            continue
        if max_length is None or len(value) < max_length:
            return True
    return False


def _contained_in_longer(contents: set[str]) -> set[str]:
    """Return the contents that are a strict substring of a longer content."""
    by_length: dict[int, list[str]] = defaultdict(list)
    for content in contents:
        by_length[len(content)].append(content)
    lengths = sorted(by_length)

    contained: set[str] = set()
    for idx, length in enumerate(lengths):
        longer = [candidate for size in lengths[idx + 1:] for candidate in by_length[size]]
        if not longer:
            break
        for content in by_length[length]:
            if any(content in candidate for candidate in longer):
                contained.add(content)
    return contained


def dedupe_messages(events: Sequence[E]) -> tuple[list[E], int]:
    """Remove repeated and truncated-preview messages.

    Only Message events take part; everything else passes through in order.
    A message is dropped when an earlier message has identical content, or
    when its content is a strict substring of any longer message.
    """
    contents = {event.content for event in events if isinstance(event, Message)}
    contained = _contained_in_longer(contents)

    kept: list[E] = []
    seen: set[str] = set()
    dropped = 0
    for event in events:
        if not isinstance(event, Message):
            kept.append(event)
            continue
        if event.content in seen or event.content in contained:
            dropped += 1
            continue
        seen.add(event.content)
        kept.append(event)
    return kept, dropped
