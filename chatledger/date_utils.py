"""Shared timestamp parsing and normalization helpers."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chatledger import config

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_RELATIVE_TIME_RE = re.compile(
    r"\d+\s*(?:second|minute|hour|day|week|month|year)s?\s*ago",
    re.IGNORECASE,
)
# "4:07 pm, Jan 15, 2025" as rendered next to checkpoints and messages.
_ABSOLUTE_UI_RE = re.compile(
    r"(\d{1,2}):(\d{2})\s*(am|pm),\s*([A-Za-z]+)\.?\s+(\d{1,2}),\s*(\d{4})",
    re.IGNORECASE,
)
_ISO_FRAGMENT_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"
)
_NAMED_DATE_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2}),?\s*(\d{4})$")
_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def source_timezone() -> tzinfo:
    """Zone used for UI timestamps that carry no offset."""
    try:
        return ZoneInfo(config.SOURCE_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def to_utc(value: datetime) -> datetime:
    dt = value if value.tzinfo else value.replace(tzinfo=source_timezone())
    return dt.astimezone(timezone.utc)


def _month_number(token: str) -> int | None:
    return _MONTHS.get((token or "").strip().lower()[:3])


def is_relative_time(text: str) -> bool:
    return bool(_RELATIVE_TIME_RE.search(text or ""))


def find_absolute_ui_timestamp(text: str) -> datetime | None:
    """Return the first "h:mm am/pm, Mon D, YYYY" fragment found in text."""
    for match in _ABSOLUTE_UI_RE.finditer(text or ""):
        hour_raw, minute_raw, meridiem, month_raw, day_raw, year_raw = match.groups()
        month = _month_number(month_raw)
        if month is None:
            continue
        hour = int(hour_raw)
        minute = int(minute_raw)
        if not 1 <= hour <= 12 or minute > 59:
            continue
        hour = hour % 12
        if meridiem.lower() == "pm":
            hour += 12
        try:
            local = datetime(int(year_raw), month, int(day_raw), hour, minute)
        except ValueError:
            continue
        return to_utc(local)
    return None


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M"):
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def parse_timestamp_text(value: Any) -> datetime | None:
    """Parse an absolute timestamp out of UI text or a machine-readable value.

    Relative phrases ("4 hours ago") never resolve: their meaning depends on
    when the page was captured, which would make repeated runs disagree.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token or is_relative_time(token):
        return None
    absolute = find_absolute_ui_timestamp(token)
    if absolute:
        return absolute
    parsed = _parse_datetime_token(token)
    if parsed:
        return to_utc(parsed)
    iso_match = _ISO_FRAGMENT_RE.search(token)
    if iso_match:
        parsed = _parse_datetime_token(iso_match.group(0))
        if parsed:
            return to_utc(parsed)
    return None


def parse_cutoff_date(value: str) -> datetime | None:
    """Parse a cutoff such as "2025-01-15" or "Jan 15, 2025" (start of day)."""
    token = (value or "").strip()
    if not token:
        return None
    if _DATE_ONLY_RE.match(token):
        try:
            day = date.fromisoformat(token)
        except ValueError:
            return None
        return to_utc(datetime(day.year, day.month, day.day))
    named = _NAMED_DATE_RE.match(token)
    if named:
        month = _month_number(named.group(1))
        if month is not None:
            try:
                return to_utc(datetime(int(named.group(3)), month, int(named.group(2))))
            except ValueError:
                return None
    parsed = _parse_datetime_token(token)
    return to_utc(parsed) if parsed else None


def utc_date_key(value: datetime | None) -> str:
    if value is None:
        return "Unknown"
    return to_utc(value).date().isoformat()
