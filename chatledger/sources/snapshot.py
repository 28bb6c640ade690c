"""In-memory node and commit sources backed by recorded snapshots.

A snapshot file is either a bare JSON list of node objects or an object of
the form ``{"nodes": [...], "commits": [...]}``. Nodes are validated lazily
on read so a single malformed record surfaces as a read failure for that
position instead of rejecting the whole file.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from chatledger.models import CommitRecord, RawNode


def _load_json(path: Path | str) -> Any:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _section(payload: Any, key: str) -> list[Any]:
    if isinstance(payload, list):
        return payload if key == "nodes" else []
    if isinstance(payload, dict):
        value = payload.get(key)
        return value if isinstance(value, list) else []
    return []


class SnapshotNodeAccessor:
    """NodeAccessor over a recorded list of nodes."""

    def __init__(self, nodes: Iterable[RawNode | dict[str, Any]]):
        self._nodes = list(nodes)

    @classmethod
    def from_json_file(cls, path: Path | str) -> "SnapshotNodeAccessor":
        return cls(_section(_load_json(path), "nodes"))

    async def count(self) -> int:
        return len(self._nodes)

    async def read(self, index: int) -> RawNode:
        raw = self._nodes[index]
        if isinstance(raw, RawNode):
            return raw
        if isinstance(raw, dict):
            payload = dict(raw)
            payload.setdefault("position", index)
            return RawNode.model_validate(payload)
        raise TypeError(f"Unsupported node record at {index}: {type(raw).__name__}")


class StaticCommitSource:
    """CommitSource over a fixed list of commit records."""

    def __init__(self, commits: Iterable[CommitRecord | dict[str, Any]] = ()):
        self._commits = [
            commit if isinstance(commit, CommitRecord) else CommitRecord.model_validate(commit)
            for commit in commits
        ]

    @classmethod
    def from_json_file(cls, path: Path | str) -> "StaticCommitSource":
        return cls(_section(_load_json(path), "commits"))

    async def list(self) -> list[CommitRecord]:
        return list(self._commits)
