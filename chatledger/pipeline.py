"""Drive a node feed through classification, repair and commit correlation."""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from chatledger import config, observability
from chatledger.commit_linking import correlate_commits
from chatledger.liveness import FeedProbe, wait_for_idle
from chatledger.models import (
    ClassifiedEvent,
    CommitRecord,
    IdleReport,
    Noise,
    PipelineDiagnostics,
    PipelineResult,
    RawNode,
    WorkEntry,
)
from chatledger.parsers.content import dedupe_messages
from chatledger.parsers.events import classify, merge_work_precision
from chatledger.parsers.timestamps import advance_carry, resolve_timestamp
from chatledger.timeline import apply_cutoff, assemble_timeline, attach_checkpoint_durations, repair_monotonic

logger = logging.getLogger("chatledger.pipeline")


class ExtractionError(RuntimeError):
    """Raised when the accessor yielded nothing usable at all."""


class NodeAccessor(Protocol):
    async def count(self) -> int:
        ...

    async def read(self, index: int) -> RawNode:
        ...


class CommitSource(Protocol):
    async def list(self) -> list[CommitRecord]:
        ...


class PipelineSettings(BaseModel):
    commitWindowSeconds: float = Field(default_factory=lambda: config.COMMIT_WINDOW_SECONDS)
    adjacencyFallback: bool = Field(default_factory=lambda: config.COMMIT_ADJACENCY_FALLBACK)
    siblingLookahead: int = Field(default_factory=lambda: config.SIBLING_LOOKAHEAD)
    cutoff: Optional[datetime] = None
    idlePollIntervalSeconds: float = Field(default_factory=lambda: config.IDLE_POLL_INTERVAL_SECONDS)
    idleSnapshotDelaySeconds: float = Field(default_factory=lambda: config.IDLE_SNAPSHOT_DELAY_SECONDS)
    idleMaxWaitSeconds: float = Field(default_factory=lambda: config.IDLE_MAX_WAIT_SECONDS)


async def _load_commits(commit_source: CommitSource | None) -> list[CommitRecord]:
    if commit_source is None:
        return []
    try:
        return list(await commit_source.list())
    except Exception as exc:
        logger.warning("Commit source failed, continuing without commits: %s", exc)
        observability.record_parser_failure("commit_source")
        return []


async def _read_events(
    accessor: NodeAccessor,
    settings: PipelineSettings,
) -> tuple[list[ClassifiedEvent], int, int]:
    try:
        total = await accessor.count()
    except Exception as exc:
        raise ExtractionError(f"Node accessor is unusable: {exc}") from exc

    events: list[ClassifiedEvent] = []
    nodes_read = 0
    read_failures = 0
    last_known: datetime | None = None
    for index in range(max(0, int(total))):
        try:
            node = await accessor.read(index)
        except Exception as exc:
            logger.warning("Failed to read node %s: %s", index, exc)
            observability.record_parser_failure("node_read")
            read_failures += 1
            continue
        nodes_read += 1

        event = classify(node)
        observability.record_classification(event.kind)
        if isinstance(event, Noise):
            if event.reason == "error":
                observability.record_parser_failure("classifier")
            events.append(event)
            continue
        if isinstance(event, WorkEntry):
            event = merge_work_precision(event, node.precisionText)

        resolved = resolve_timestamp(node, event.kind, last_known, settings.siblingLookahead)
        last_known = advance_carry(last_known, resolved.value)
        events.append(event.model_copy(update={"timestamp": resolved.value, "timestampSource": resolved.source}))
    return events, nodes_read, read_failures


async def build_timeline(
    accessor: NodeAccessor,
    commit_source: CommitSource | None = None,
    settings: PipelineSettings | None = None,
    probe: FeedProbe | None = None,
) -> PipelineResult:
    """Read every node in order and reconcile the result into a Timeline.

    Raises ExtractionError when no node could be read and nothing was
    classified, and CommitWindowError for a negative commit window.
    """
    settings = settings or PipelineSettings()
    started = time.perf_counter()

    with observability.start_span("chatledger.build_timeline") as span:
        idle: IdleReport | None = None
        if probe is not None:
            idle = await wait_for_idle(
                probe,
                poll_interval=settings.idlePollIntervalSeconds,
                snapshot_delay=settings.idleSnapshotDelaySeconds,
                max_wait=settings.idleMaxWaitSeconds,
            )

        events, nodes_read, read_failures = await _read_events(accessor, settings)
        if nodes_read == 0 and not events:
            observability.record_pipeline_run("failed", (time.perf_counter() - started) * 1000)
            raise ExtractionError(f"No nodes could be read ({read_failures} read failures)")

        noise_count = sum(1 for event in events if isinstance(event, Noise))
        events, duplicate_count = dedupe_messages(events)

        timeline = assemble_timeline(events)
        timeline, repair_count = repair_monotonic(timeline)
        timeline = attach_checkpoint_durations(timeline)
        timeline, cutoff_dropped = apply_cutoff(timeline, settings.cutoff)

        commits = await _load_commits(commit_source)
        timeline, correlated_count = correlate_commits(
            timeline,
            commits,
            window_seconds=settings.commitWindowSeconds,
            adjacency_fallback=settings.adjacencyFallback,
        )

        diagnostics = PipelineDiagnostics(
            repairCount=repair_count,
            correlatedCount=correlated_count,
            nodesRead=nodes_read,
            readFailures=read_failures,
            noiseCount=noise_count,
            duplicateCount=duplicate_count,
            cutoffDropped=cutoff_dropped,
            idle=idle,
        )
        if span is not None:
            span.set_attribute("chatledger.events", len(timeline.events))
            span.set_attribute("chatledger.repairs", repair_count)
            span.set_attribute("chatledger.correlated", correlated_count)

    elapsed_ms = (time.perf_counter() - started) * 1000
    observability.record_pipeline_run(
        "success",
        elapsed_ms,
        repair_count=repair_count,
        correlated_count=correlated_count,
    )
    logger.info(
        "Timeline built: %s events from %s nodes (noise=%s duplicates=%s repaired=%s correlated=%s read_failures=%s) in %.1fms",
        len(timeline.events),
        nodes_read,
        noise_count,
        duplicate_count,
        repair_count,
        correlated_count,
        read_failures,
        elapsed_ms,
    )
    return PipelineResult(timeline=timeline, diagnostics=diagnostics)
