"""Daily work totals and per-entry descriptions derived from a Timeline."""
from __future__ import annotations

import re
from collections import defaultdict
from decimal import Decimal

from chatledger.date_utils import utc_date_key
from chatledger.models import Timeline, WorkEntryDescription, WorkSummaryDay
from chatledger.parsers.durations import format_duration

UNKNOWN_DATE = "Unknown"
CHECKPOINT_DISTANCE = 5
MESSAGE_PREVIEW_CHARS = 100

_WHITESPACE = re.compile(r"\s+")


def summarize_work_by_day(timeline: Timeline) -> list[WorkSummaryDay]:
    """Aggregate work entries per UTC day; undated entries land in "Unknown"."""
    totals: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    costs: dict[str, Decimal] = defaultdict(Decimal)

    for entry in timeline.work_entries():
        key = utc_date_key(entry.timestamp)
        day = totals[key]
        day["totalSeconds"] += entry.durationSeconds or 0
        day["actionsCount"] += entry.actionsCount or 0
        day["linesRead"] += entry.linesRead or 0
        day["codeAdded"] += entry.codeAdded or 0
        day["codeRemoved"] += entry.codeRemoved or 0
        if entry.usageCost is not None:
            costs[key] += entry.usageCost.amount

    ordered = sorted(totals, key=lambda key: (key == UNKNOWN_DATE, key))
    days: list[WorkSummaryDay] = []
    for key in ordered:
        day = totals[key]
        seconds = day["totalSeconds"]
        days.append(
            WorkSummaryDay(
                date=key,
                totalSeconds=seconds,
                timeWorked=format_duration(seconds),
                durationMinutes=round(seconds / 60, 2),
                actionsCount=day["actionsCount"],
                linesRead=day["linesRead"],
                codeAdded=day["codeAdded"],
                codeRemoved=day["codeRemoved"],
                usageCost=costs[key].quantize(Decimal("0.01")),
            )
        )
    return days


def _preview(content: str) -> str:
    collapsed = _WHITESPACE.sub(" ", content).strip()
    if len(collapsed) > MESSAGE_PREVIEW_CHARS:
        return collapsed[:MESSAGE_PREVIEW_CHARS] + "..."
    return collapsed


def describe_work_entries(timeline: Timeline) -> list[WorkEntryDescription]:
    """Describe each work entry by a nearby checkpoint or the preceding message."""
    checkpoints = sorted(
        (cp for cp in timeline.checkpoints() if cp.description),
        key=lambda cp: cp.position,
    )
    messages = sorted(timeline.messages(), key=lambda msg: msg.position)

    descriptions: list[WorkEntryDescription] = []
    for entry in timeline.work_entries():
        description = ""
        nearest = None
        nearest_distance: int | None = None
        for checkpoint in checkpoints:
            distance = abs(checkpoint.position - entry.position)
            if nearest_distance is None or distance < nearest_distance:
                nearest, nearest_distance = checkpoint, distance
        if nearest is not None and nearest_distance <= CHECKPOINT_DISTANCE:
            description = nearest.description

        if not description:
            preceding = [msg for msg in messages if msg.position < entry.position]
            if preceding:
                description = _preview(preceding[-1].content)

        descriptions.append(WorkEntryDescription(position=entry.position, description=description))
    return descriptions
