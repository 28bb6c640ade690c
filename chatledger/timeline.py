"""Timeline assembly, monotonic repair and post-assembly annotations."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from chatledger import config
from chatledger.date_utils import to_utc
from chatledger.models import Checkpoint, ClassifiedEvent, Message, Noise, Timeline


def _reindexed(events: Iterable) -> list:
    return [event.model_copy(update={"position": idx}) for idx, event in enumerate(events)]


def assemble_timeline(events: Sequence[ClassifiedEvent]) -> Timeline:
    """Order non-noise events by source position and renumber them 0..n-1."""
    kept = [event for event in events if not isinstance(event, Noise)]
    kept.sort(key=lambda event: event.position)
    return Timeline(events=_reindexed(kept))


def repair_monotonic(timeline: Timeline) -> tuple[Timeline, int]:
    """Clamp timestamps that go backwards to the running high-water mark.

    Events without a timestamp are left alone and never move the mark.
    """
    high_water: datetime | None = None
    repaired = 0
    events = []
    for event in timeline.events:
        ts = event.timestamp
        if ts is None:
            events.append(event)
            continue
        if high_water is not None and ts < high_water:
            events.append(event.model_copy(update={"timestamp": high_water, "timestampSource": "repaired"}))
            repaired += 1
            continue
        high_water = ts
        events.append(event)
    return Timeline(events=events), repaired


def checkpoint_duration_seconds(checkpoint: Checkpoint, messages: Sequence[Message]) -> int | None:
    """Seconds since the nearest earlier user message, capped at one day."""
    if checkpoint.timestamp is None:
        return None
    earlier = [
        m.timestamp
        for m in messages
        if m.role == "user" and m.timestamp is not None and m.timestamp < checkpoint.timestamp
    ]
    if not earlier:
        return None
    delta = (checkpoint.timestamp - max(earlier)).total_seconds()
    if delta < 0 or delta > config.CHECKPOINT_DURATION_MAX_SECONDS:
        return None
    return round(delta)


def attach_checkpoint_durations(timeline: Timeline) -> Timeline:
    messages = timeline.messages()
    events = []
    for event in timeline.events:
        if isinstance(event, Checkpoint):
            event = event.model_copy(update={"durationSeconds": checkpoint_duration_seconds(event, messages)})
        events.append(event)
    return Timeline(events=events)


def apply_cutoff(timeline: Timeline, cutoff: datetime | None) -> tuple[Timeline, int]:
    """Drop events stamped before the cutoff; undated events are kept."""
    if cutoff is None:
        return timeline, 0
    cutoff = to_utc(cutoff)
    kept = [e for e in timeline.events if e.timestamp is None or e.timestamp >= cutoff]
    dropped = len(timeline.events) - len(kept)
    if not dropped:
        return timeline, 0
    return Timeline(events=_reindexed(kept)), dropped
