"""Classify raw feed nodes into messages, checkpoints and work entries."""
from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from chatledger import config
from chatledger.models import (
    Checkpoint,
    ClassifiedEvent,
    Message,
    Money,
    Noise,
    RawNode,
    WorkEntry,
)
from chatledger.parsers.content import is_boilerplate, strip_relative_time
from chatledger.parsers.durations import DURATION_PHRASE, merge_precision, parse_duration_seconds

logger = logging.getLogger("chatledger.classifier")

_WORKED_FOR_PATTERN = re.compile(rf"Worked\s+for\s+({DURATION_PHRASE})", re.IGNORECASE)
_ACTIONS_PATTERN = re.compile(r"(\d[\d,]*)\s+actions?\b", re.IGNORECASE)
_LINES_READ_PATTERNS = (
    re.compile(r"(\d[\d,]*)\s+lines?\s+read\b", re.IGNORECASE),
    re.compile(r"Items\s+read\s*:?\s*(\d[\d,]*)\s+lines?\b", re.IGNORECASE),
)
_CODE_ADDED_PATTERN = re.compile(r"\+\s?(\d[\d,]*)\b")
_CODE_CHANGE_PATTERN = re.compile(r"\+[ \t]?(\d[\d,]*)[ \t]*/?[ \t]*[-−][ \t]?(\d[\d,]*)\b")
_USAGE_COST_PATTERN = re.compile(r"Agent\s+usage\s*:?\s*\$\s*(\d[\d,]*(?:\.\d+)?|\.\d+)", re.IGNORECASE)
_MONEY_PATTERN = re.compile(r"\$\s*(\d[\d,]*(?:\.\d+)?|\.\d+)")

_USER_HINTS = {"user", "user-message", "has-user-marker"}
_CHECKPOINT_HINTS = {"checkpoint", "looks-like-checkpoint", "has-checkpoint-marker"}
_EXPANDABLE_HINTS = {"has-expand-control", "expandable-summary"}
_END_OF_RUN_HINTS = {"end-of-run"}

Rule = Callable[[RawNode, str], Optional[ClassifiedEvent]]


def _hints(node: RawNode) -> set[str]:
    return {str(h).strip().lower() for h in node.structuralHints if str(h).strip()}


def _attr(node: RawNode, key: str) -> str:
    return str(node.attributes.get(key) or "").strip().lower()


def _to_int(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        return int(raw.replace(",", ""))
    except ValueError:
        return None


def parse_money(text: str | None, pattern: re.Pattern[str] = _MONEY_PATTERN) -> Money | None:
    match = pattern.search(text or "")
    if not match:
        return None
    try:
        return Money(amount=Decimal(match.group(1).replace(",", "")))
    except InvalidOperation:
        return None


def _first_int(patterns: tuple[re.Pattern[str], ...], text: str) -> int | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return _to_int(match.group(1))
    return None


def is_user_node(node: RawNode) -> bool:
    hints = _hints(node)
    if hints & _USER_HINTS:
        return True
    css = _attr(node, "class")
    return (
        "usermessage" in css
        or "user-message" in css
        or _attr(node, "data-event-type") == "user-message"
        or _attr(node, "data-cy") == "user-message"
    )


def is_checkpoint_node(node: RawNode) -> bool:
    if _hints(node) & _CHECKPOINT_HINTS:
        return True
    return "checkpoint" in _attr(node, "class") or "checkpoint" in _attr(node, "data-event-type")


def is_end_of_run_node(node: RawNode) -> bool:
    if _hints(node) & _END_OF_RUN_HINTS:
        return True
    return _attr(node, "data-event-type") in {"end-of-run", "end_of_run"}


# ── rules ───────────────────────────────────────────────────────────

def _work_entry_rule(node: RawNode, cleaned: str) -> WorkEntry | None:
    text = node.text or ""
    worked = _WORKED_FOR_PATTERN.search(text)
    expandable = bool(_hints(node) & _EXPANDABLE_HINTS)
    if not ((worked and expandable) or is_end_of_run_node(node)):
        return None

    time_worked = worked.group(1).strip() if worked else ""
    # removals only count as the second half of a "+N -N" pair; a lone "- 3" is a list bullet
    change = _CODE_CHANGE_PATTERN.search(text)
    return WorkEntry(
        position=node.position,
        timeWorkedText=time_worked,
        durationSeconds=parse_duration_seconds(time_worked),
        actionsCount=_first_int((_ACTIONS_PATTERN,), text),
        linesRead=_first_int(_LINES_READ_PATTERNS, text),
        codeAdded=_to_int(change.group(1)) if change else _first_int((_CODE_ADDED_PATTERN,), text),
        codeRemoved=_to_int(change.group(2)) if change else None,
        usageCost=parse_money(text, _USAGE_COST_PATTERN) or parse_money(text),
    )


def _checkpoint_rule(node: RawNode, cleaned: str) -> Checkpoint | None:
    flagged = is_checkpoint_node(node)
    mentioned = "Checkpoint" in cleaned and len(cleaned) < config.CHECKPOINT_MAX_CHARS
    if not (flagged or mentioned):
        return None
    return Checkpoint(
        position=node.position,
        description=cleaned[: config.CHECKPOINT_DESCRIPTION_MAX_CHARS],
        cost=parse_money(cleaned),
    )


def _boilerplate_rule(node: RawNode, cleaned: str) -> Noise | None:
    if is_boilerplate(cleaned):
        return Noise(position=node.position, reason="boilerplate")
    return None


def _message_rule(node: RawNode, cleaned: str) -> Message | None:
    role = "user" if is_user_node(node) else "agent"
    attachments = [name.strip() for name in node.attachmentNames if name and name.strip()]
    if role != "user":
        attachments = []
    substantial = len(cleaned) >= config.MIN_MESSAGE_CHARS

    if substantial and attachments:
        content = f"{cleaned}\n[Attached: {', '.join(attachments)}]"
    elif substantial:
        content = cleaned
    elif attachments:
        content = ", ".join(attachments)
    else:
        return None

    return Message(
        position=node.position,
        role=role,
        content=content[: config.MESSAGE_MAX_CHARS],
        attachments=attachments,
    )


CLASSIFICATION_RULES: list[tuple[str, Rule]] = [
    ("work_entry", _work_entry_rule),
    ("checkpoint", _checkpoint_rule),
    ("boilerplate", _boilerplate_rule),
    ("message", _message_rule),
]


def classify(node: RawNode, rules: list[tuple[str, Rule]] | None = None) -> ClassifiedEvent:
    """Assign a node to exactly one event kind; first matching rule wins."""
    try:
        cleaned = strip_relative_time(node.text)
        for _name, rule in rules or CLASSIFICATION_RULES:
            event = rule(node, cleaned)
            if event is not None:
                return event
    except Exception:
        logger.exception("Classification failed for node at position %s", node.position)
        return Noise(position=node.position, reason="error")
    return Noise(position=node.position, reason="too-short")


def merge_work_precision(entry: WorkEntry, precise: str | None) -> WorkEntry:
    """Apply a higher-precision duration (e.g. a hover tooltip) to a work entry."""
    if not precise:
        return entry
    merged = merge_precision(entry.timeWorkedText, precise)
    if merged.text == entry.timeWorkedText and merged.seconds == entry.durationSeconds:
        return entry
    return entry.model_copy(update={"timeWorkedText": merged.text, "durationSeconds": merged.seconds})
