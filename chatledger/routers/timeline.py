"""Timeline reconciliation API."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from chatledger.commit_linking import CommitWindowError
from chatledger.date_utils import parse_cutoff_date
from chatledger.models import (
    CommitRecord,
    PipelineDiagnostics,
    PipelineResult,
    WorkEntryDescription,
    WorkSummaryDay,
)
from chatledger.parsers.durations import format_duration, merge_precision
from chatledger.pipeline import ExtractionError, PipelineSettings, build_timeline
from chatledger.sources.snapshot import SnapshotNodeAccessor, StaticCommitSource
from chatledger.work_summary import describe_work_entries, summarize_work_by_day

logger = logging.getLogger("chatledger.api")

timeline_router = APIRouter(prefix="/api/timeline", tags=["timeline"])
durations_router = APIRouter(prefix="/api/durations", tags=["durations"])


class TimelineRequest(BaseModel):
    # validated per node on read so one bad record only counts as a read failure
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    commits: list[CommitRecord] = Field(default_factory=list)
    commitWindowSeconds: Optional[float] = None
    adjacencyFallback: Optional[bool] = None
    siblingLookahead: Optional[int] = None
    cutoff: Optional[str] = None


class WorkSummaryResponse(BaseModel):
    days: list[WorkSummaryDay] = Field(default_factory=list)
    entries: list[WorkEntryDescription] = Field(default_factory=list)
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


class DurationParseRequest(BaseModel):
    text: str = ""
    precise: Optional[str] = None


class DurationParseResponse(BaseModel):
    text: str = ""
    seconds: Optional[int] = None
    formatted: str = ""


def _settings_from_request(payload: TimelineRequest) -> PipelineSettings:
    overrides: dict = {}
    if payload.commitWindowSeconds is not None:
        overrides["commitWindowSeconds"] = payload.commitWindowSeconds
    if payload.adjacencyFallback is not None:
        overrides["adjacencyFallback"] = payload.adjacencyFallback
    if payload.siblingLookahead is not None:
        overrides["siblingLookahead"] = payload.siblingLookahead
    if payload.cutoff:
        cutoff = parse_cutoff_date(payload.cutoff)
        if cutoff is None:
            raise HTTPException(status_code=400, detail=f"Invalid cutoff date: {payload.cutoff}")
        overrides["cutoff"] = cutoff
    return PipelineSettings(**overrides)


async def _run(payload: TimelineRequest) -> PipelineResult:
    settings = _settings_from_request(payload)
    try:
        return await build_timeline(
            SnapshotNodeAccessor(payload.nodes),
            StaticCommitSource(payload.commits),
            settings=settings,
        )
    except CommitWindowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExtractionError as exc:
        logger.warning("Timeline extraction failed: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@timeline_router.post("", response_model=PipelineResult)
async def create_timeline(payload: TimelineRequest):
    return await _run(payload)


@timeline_router.post("/work-summary", response_model=WorkSummaryResponse)
async def create_work_summary(payload: TimelineRequest):
    result = await _run(payload)
    return WorkSummaryResponse(
        days=summarize_work_by_day(result.timeline),
        entries=describe_work_entries(result.timeline),
        diagnostics=result.diagnostics,
    )


@durations_router.post("/parse", response_model=DurationParseResponse)
async def parse_duration(payload: DurationParseRequest):
    merged = merge_precision(payload.text, payload.precise)
    return DurationParseResponse(
        text=merged.text,
        seconds=merged.seconds,
        formatted=format_duration(merged.seconds) if merged.seconds is not None else "",
    )
