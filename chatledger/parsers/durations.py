"""Parse human-readable duration phrases ("4 minutes 12 seconds")."""
from __future__ import annotations

import re
from dataclasses import dataclass

_UNIT_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 60 * 60,
    "day": 24 * 60 * 60,
}
_DURATION_TOKEN_PATTERN = re.compile(r"(\d+)\s*(second|minute|hour|day)s?\b", re.IGNORECASE)
# A run of duration tokens, optionally joined by "and" or commas.
DURATION_PHRASE = (
    r"\d+\s*(?:second|minute|hour|day)s?\b"
    r"(?:\s*(?:,|and)?\s*\d+\s*(?:second|minute|hour|day)s?\b)*"
)


@dataclass(frozen=True)
class DurationValue:
    text: str
    seconds: int | None


def parse_duration_seconds(text: str | None) -> int | None:
    """Sum every `<int> <unit>` token in text; None when nothing matched."""
    if not text:
        return None
    total = 0
    matched = False
    for amount, unit in _DURATION_TOKEN_PATTERN.findall(text):
        matched = True
        total += int(amount) * _UNIT_SECONDS[unit.lower()]
    return total if matched else None


def merge_precision(coarse: str | None, precise: str | None) -> DurationValue:
    """Prefer a higher-precision duration when it parses to a positive value.

    The precise value replaces the coarse one entirely; the two are never
    combined.
    """
    precise_text = (precise or "").strip()
    precise_seconds = parse_duration_seconds(precise_text)
    if precise_seconds is not None and precise_seconds > 0:
        return DurationValue(text=precise_text, seconds=precise_seconds)
    coarse_text = (coarse or "").strip()
    return DurationValue(text=coarse_text, seconds=parse_duration_seconds(coarse_text))


def format_duration(seconds: int) -> str:
    safe = max(0, int(seconds))
    hours, remainder = divmod(safe, 3600)
    minutes, secs = divmod(remainder, 60)
    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes > 0:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    if secs > 0 or not parts:
        parts.append(f"{secs} second{'s' if secs != 1 else ''}")
    return " ".join(parts)
