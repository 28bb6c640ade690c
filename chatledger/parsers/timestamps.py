"""Resolve absolute timestamps for classified events.

Each event kind keeps its timestamp in a different place in the rendered
feed, so resolution walks a per-kind fallback chain:

- work entries never carry one and inherit the last known timestamp;
- checkpoints search only their own subtree (absolute text fragment, then a
  dedicated timestamp descendant, then a time element), then inherit;
- messages search their own subtree, then a few following siblings, then
  inherit.

The last known timestamp is passed in and returned explicitly so the
resolver stays a pure function.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from chatledger import config
from chatledger.date_utils import find_absolute_ui_timestamp, is_relative_time, parse_timestamp_text
from chatledger.models import NodeFragment, RawNode

logger = logging.getLogger("chatledger.timestamps")

KIND_MESSAGE = "message"
KIND_CHECKPOINT = "checkpoint"
KIND_WORK_ENTRY = "work_entry"
KIND_NOISE = "noise"

SOURCE_OWN = "own"
SOURCE_SIBLING = "sibling"
SOURCE_INHERITED = "inherited"


@dataclass(frozen=True)
class ResolvedTimestamp:
    value: Optional[datetime]
    source: Optional[str]


def _from_subtree(fragment: NodeFragment) -> datetime | None:
    absolute = find_absolute_ui_timestamp(fragment.text)
    if absolute:
        return absolute

    for raw in fragment.timestampTexts:
        if not raw or is_relative_time(raw):
            continue
        parsed = parse_timestamp_text(raw)
        if parsed:
            return parsed

    for element in fragment.timeElements:
        parsed = parse_timestamp_text(element.dateTime) or parse_timestamp_text(element.text)
        if parsed:
            return parsed
    return None


def _inherit(last_known: datetime | None) -> ResolvedTimestamp:
    if last_known is None:
        return ResolvedTimestamp(None, None)
    return ResolvedTimestamp(last_known, SOURCE_INHERITED)


def resolve_timestamp(
    node: RawNode,
    kind: str,
    last_known: datetime | None,
    sibling_lookahead: int | None = None,
) -> ResolvedTimestamp:
    if kind == KIND_NOISE:
        return ResolvedTimestamp(None, None)
    if kind == KIND_WORK_ENTRY:
        return _inherit(last_known)

    try:
        own = _from_subtree(node)
        if own:
            return ResolvedTimestamp(own, SOURCE_OWN)

        if kind == KIND_MESSAGE:
            limit = config.SIBLING_LOOKAHEAD if sibling_lookahead is None else sibling_lookahead
            for sibling in node.followingSiblings[: max(0, limit)]:
                found = _from_subtree(sibling)
                if found:
                    return ResolvedTimestamp(found, SOURCE_SIBLING)
    except (TypeError, ValueError, OverflowError) as exc:
        logger.debug("Timestamp lookup failed at position %s: %s", node.position, exc)
    return _inherit(last_known)


def advance_carry(last_known: datetime | None, resolved: datetime | None) -> datetime | None:
    """Move the carry-forward timestamp only to a newer-or-equal value."""
    if resolved is None:
        return last_known
    if last_known is None or resolved >= last_known:
        return resolved
    return last_known
