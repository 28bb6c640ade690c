"""Pydantic models for feed nodes, classified events and timelines."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatledger.date_utils import to_utc


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Feed input ──────────────────────────────────────────────────────

class TimeElement(_Frozen):
    dateTime: Optional[str] = None  # machine-readable `datetime` attribute
    text: str = ""


class NodeFragment(_Frozen):
    text: str = ""
    timestampTexts: list[str] = Field(default_factory=list)
    timeElements: list[TimeElement] = Field(default_factory=list)


class RawNode(NodeFragment):
    position: int
    structuralHints: list[str] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)
    attachmentNames: list[str] = Field(default_factory=list)
    followingSiblings: list[NodeFragment] = Field(default_factory=list)
    precisionText: Optional[str] = None  # e.g. hover tooltip "4 minutes 9 seconds"


class CommitRecord(_Frozen):
    message: str
    timestamp: Optional[datetime] = None
    hash: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


# ── Classified events ───────────────────────────────────────────────

class Money(_Frozen):
    amount: Decimal
    currency: str = "USD"

    @property
    def display(self) -> str:
        return f"${self.amount}"


class _EventBase(_Frozen):
    position: int
    timestamp: Optional[datetime] = None
    timestampSource: Optional[str] = None  # "own" | "sibling" | "inherited" | "repaired"

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


class Message(_EventBase):
    kind: Literal["message"] = "message"
    role: Literal["user", "agent"] = "agent"
    content: str = ""
    attachments: list[str] = Field(default_factory=list)


class Checkpoint(_EventBase):
    kind: Literal["checkpoint"] = "checkpoint"
    description: str = ""
    cost: Optional[Money] = None
    durationSeconds: Optional[int] = None
    commitMessage: Optional[str] = None
    genericDescription: Optional[str] = None  # set when a commit message replaced it
    commitHash: Optional[str] = None


class WorkEntry(_EventBase):
    kind: Literal["work_entry"] = "work_entry"
    timeWorkedText: str = ""
    durationSeconds: Optional[int] = None
    actionsCount: Optional[int] = None
    linesRead: Optional[int] = None
    codeAdded: Optional[int] = None
    codeRemoved: Optional[int] = None
    usageCost: Optional[Money] = None


class Noise(_EventBase):
    kind: Literal["noise"] = "noise"
    reason: str = ""


ClassifiedEvent = Annotated[
    Union[Message, Checkpoint, WorkEntry, Noise],
    Field(discriminator="kind"),
]
TimelineEvent = Annotated[
    Union[Message, Checkpoint, WorkEntry],
    Field(discriminator="kind"),
]


# ── Output ──────────────────────────────────────────────────────────

class Timeline(_Frozen):
    events: list[TimelineEvent] = Field(default_factory=list)

    def messages(self) -> list[Message]:
        return [e for e in self.events if isinstance(e, Message)]

    def checkpoints(self) -> list[Checkpoint]:
        return [e for e in self.events if isinstance(e, Checkpoint)]

    def work_entries(self) -> list[WorkEntry]:
        return [e for e in self.events if isinstance(e, WorkEntry)]


class IdleReport(_Frozen):
    idle: bool
    degraded: bool = False
    polls: int = 0
    waitedSeconds: float = 0.0
    lastSignal: str = ""  # "marker" | "tail-changed" | "probe-error" | ""


class PipelineDiagnostics(_Frozen):
    repairCount: int = 0
    correlatedCount: int = 0
    nodesRead: int = 0
    readFailures: int = 0
    noiseCount: int = 0
    duplicateCount: int = 0
    cutoffDropped: int = 0
    idle: Optional[IdleReport] = None


class PipelineResult(_Frozen):
    timeline: Timeline
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


class WorkSummaryDay(_Frozen):
    date: str  # YYYY-MM-DD or "Unknown"
    totalSeconds: int = 0
    timeWorked: str = ""
    durationMinutes: float = 0.0
    actionsCount: int = 0
    linesRead: int = 0
    codeAdded: int = 0
    codeRemoved: int = 0
    usageCost: Decimal = Decimal("0")


class WorkEntryDescription(_Frozen):
    position: int
    description: str = ""
