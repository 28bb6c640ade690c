"""Recover checkpoint descriptions from commit history.

The feed renders many checkpoints with the same generic text ("Saved
progress at the end of the loop"). The agent also commits with a real
message around the same moment, so pairing each generic checkpoint with the
closest commit in time restores what was actually done.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Sequence

from chatledger import config
from chatledger.models import Checkpoint, CommitRecord, Timeline

logger = logging.getLogger("chatledger.commits")

_GENERIC_CHECKPOINT_PATTERN = re.compile(r"\bsaved progress\b", re.IGNORECASE)
_SAVED_PROGRESS_COMMIT_PATTERN = re.compile(r"\bsaved progress\b", re.IGNORECASE)
_BOILERPLATE_COMMIT_PATTERNS = (
    _SAVED_PROGRESS_COMMIT_PATTERN,
    re.compile(r"\btransitioned\b.*\bmode\b", re.IGNORECASE),
)


class CommitWindowError(ValueError):
    """Raised when the correlation window is negative."""


def is_generic_checkpoint(description: str | None) -> bool:
    return bool(_GENERIC_CHECKPOINT_PATTERN.search(description or ""))


def is_boilerplate_commit(message: str | None) -> bool:
    text = message or ""
    return any(pattern.search(text) for pattern in _BOILERPLATE_COMMIT_PATTERNS)


def _first_line(message: str) -> str:
    for line in message.splitlines():
        if line.strip():
            return line.strip()
    return message.strip()


def _within(commit: CommitRecord, anchor: datetime, window: float) -> bool:
    if commit.timestamp is None:
        return False
    return abs((commit.timestamp - anchor).total_seconds()) <= window


def _direct_match(commits: Sequence[CommitRecord], used: set[int], anchor: datetime, window: float) -> int | None:
    best_idx: int | None = None
    best_delta: float | None = None
    for idx, commit in enumerate(commits):
        if idx in used or commit.timestamp is None or is_boilerplate_commit(commit.message):
            continue
        delta = abs((commit.timestamp - anchor).total_seconds())
        if delta > window:
            continue
        # strict comparison keeps the first candidate in scan order on ties
        if best_delta is None or delta < best_delta:
            best_idx, best_delta = idx, delta
    return best_idx


def _adjacent_match(commits: Sequence[CommitRecord], used: set[int], anchor: datetime, window: float) -> int | None:
    for idx in range(len(commits) - 1):
        if idx in used:
            continue
        commit = commits[idx]
        if is_boilerplate_commit(commit.message):
            continue
        following = commits[idx + 1]
        if _SAVED_PROGRESS_COMMIT_PATTERN.search(following.message or "") and _within(following, anchor, window):
            return idx
    return None


def correlate_commits(
    timeline: Timeline,
    commits: Sequence[CommitRecord] | None,
    window_seconds: float | None = None,
    adjacency_fallback: bool | None = None,
) -> tuple[Timeline, int]:
    """Replace generic checkpoint descriptions with matching commit messages.

    Returns the annotated timeline and the number of checkpoints matched.
    Timestamps are never changed and each commit is used at most once.
    """
    window = config.COMMIT_WINDOW_SECONDS if window_seconds is None else float(window_seconds)
    if window < 0:
        raise CommitWindowError(f"Commit window must be non-negative, got {window}")
    use_adjacency = config.COMMIT_ADJACENCY_FALLBACK if adjacency_fallback is None else adjacency_fallback
    if not commits:
        return timeline, 0

    candidates = [
        (idx, event)
        for idx, event in enumerate(timeline.events)
        if isinstance(event, Checkpoint) and event.timestamp is not None and is_generic_checkpoint(event.description)
    ]
    if not candidates:
        return timeline, 0
    candidates.sort(key=lambda item: (item[1].timestamp, item[1].position), reverse=True)

    used: set[int] = set()
    replacements: dict[int, Checkpoint] = {}
    for idx, checkpoint in candidates:
        match = _direct_match(commits, used, checkpoint.timestamp, window)
        if match is None and use_adjacency:
            match = _adjacent_match(commits, used, checkpoint.timestamp, window)
        if match is None:
            logger.debug("No commit matched checkpoint at position %s", checkpoint.position)
            continue
        used.add(match)
        commit = commits[match]
        replacements[idx] = checkpoint.model_copy(
            update={
                "description": _first_line(commit.message),
                "commitMessage": commit.message,
                "genericDescription": checkpoint.description,
                "commitHash": commit.hash or checkpoint.commitHash,
            }
        )

    if not replacements:
        return timeline, 0
    events = [replacements.get(idx, event) for idx, event in enumerate(timeline.events)]
    return Timeline(events=events), len(replacements)
