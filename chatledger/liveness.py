"""Wait for a live feed to stop producing output before extraction."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

from chatledger import config
from chatledger.models import IdleReport

logger = logging.getLogger("chatledger.liveness")

SIGNAL_MARKER = "marker"
SIGNAL_TAIL_CHANGED = "tail-changed"
SIGNAL_PROBE_ERROR = "probe-error"
SIGNAL_CANCELLED = "cancelled"
SIGNAL_TIMEOUT = "timeout"


class FeedProbe(Protocol):
    async def has_live_marker(self) -> bool:
        """True while a "still producing" marker trails the feed."""

    async def tail_snapshot(self) -> Any:
        """Comparable snapshot of the feed tail (content and node count)."""


async def _poll_once(probe: FeedProbe, snapshot_delay: float, sleep: Callable[[float], Awaitable[Any]]) -> str:
    """Return the busy signal observed by one poll, or "" when quiet."""
    try:
        if await probe.has_live_marker():
            return SIGNAL_MARKER
        before = await probe.tail_snapshot()
        await sleep(snapshot_delay)
        after = await probe.tail_snapshot()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.debug("Feed probe failed, treating poll as busy: %s", exc)
        return SIGNAL_PROBE_ERROR
    if before != after:
        return SIGNAL_TAIL_CHANGED
    return ""


async def wait_for_idle(
    probe: FeedProbe,
    poll_interval: float | None = None,
    snapshot_delay: float | None = None,
    max_wait: float | None = None,
    stop_event: Optional[asyncio.Event] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> IdleReport:
    """Poll the feed until both busy signals are quiet or max_wait elapses.

    Never raises for a busy feed. max_wait is a hard ceiling: a poll that
    does not return in the remaining time is abandoned, and the report comes
    back with ``degraded=True`` so extraction proceeds on whatever is there.
    """
    interval = config.IDLE_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
    delay = config.IDLE_SNAPSHOT_DELAY_SECONDS if snapshot_delay is None else snapshot_delay
    ceiling = config.IDLE_MAX_WAIT_SECONDS if max_wait is None else max_wait

    started = clock()
    polls = 0
    signal = ""
    while True:
        if stop_event is not None and stop_event.is_set():
            return IdleReport(idle=False, polls=polls, waitedSeconds=clock() - started, lastSignal=SIGNAL_CANCELLED)

        remaining = ceiling - (clock() - started)
        if remaining <= 0:
            return _degraded(polls, clock() - started, signal or SIGNAL_TIMEOUT)

        polls += 1
        try:
            signal = await asyncio.wait_for(_poll_once(probe, delay, sleep), timeout=remaining)
        except asyncio.TimeoutError:
            return _degraded(polls, clock() - started, SIGNAL_TIMEOUT)
        waited = clock() - started
        if not signal:
            logger.info("Feed idle after %s poll(s) (%.1fs)", polls, waited)
            return IdleReport(idle=True, polls=polls, waitedSeconds=waited)

        remaining = ceiling - waited
        if remaining <= 0:
            return _degraded(polls, waited, signal)

        pause = min(interval, remaining)
        logger.debug("Feed busy (%s), re-polling in %ss", signal, pause)
        await _pause(pause, stop_event, sleep)


def _degraded(polls: int, waited: float, signal: str) -> IdleReport:
    logger.warning(
        "Feed still busy after %.1fs (last signal: %s), proceeding with degraded extraction",
        waited,
        signal,
    )
    return IdleReport(idle=False, degraded=True, polls=polls, waitedSeconds=waited, lastSignal=signal)


async def _pause(
    seconds: float,
    stop_event: Optional[asyncio.Event],
    sleep: Callable[[float], Awaitable[Any]],
) -> None:
    """Sleep between polls, returning early once stop_event is set."""
    if stop_event is None:
        await sleep(seconds)
        return
    sleeper = asyncio.ensure_future(sleep(seconds))
    stopper = asyncio.ensure_future(stop_event.wait())
    try:
        await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, stopper):
            task.cancel()
