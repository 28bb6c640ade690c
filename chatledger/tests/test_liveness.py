import asyncio
import unittest

from chatledger.liveness import wait_for_idle


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _ScriptedProbe:
    """Replays marker results and tail snapshots; the last value repeats."""

    def __init__(self, markers=None, snapshots=None) -> None:
        self._markers = list(markers or [False])
        self._snapshots = list(snapshots or [("tail", 1)])

    @staticmethod
    def _next(values):
        value = values.pop(0) if len(values) > 1 else values[0]
        if isinstance(value, Exception):
            raise value
        return value

    async def has_live_marker(self) -> bool:
        return self._next(self._markers)

    async def tail_snapshot(self):
        return self._next(self._snapshots)


class _UnresponsiveFeed:
    async def has_live_marker(self) -> bool:
        await asyncio.Event().wait()
        return True

    async def tail_snapshot(self):
        return None


class WaitForIdleTests(unittest.IsolatedAsyncioTestCase):
    async def _wait(self, probe, clock, **kwargs):
        params = {"poll_interval": 5.0, "snapshot_delay": 2.0, "max_wait": 20.0}
        params.update(kwargs)
        return await wait_for_idle(probe, sleep=clock.sleep, clock=clock, **params)

    async def test_quiet_feed_is_idle_after_one_poll(self) -> None:
        clock = _FakeClock()
        report = await self._wait(_ScriptedProbe(), clock)
        self.assertTrue(report.idle)
        self.assertFalse(report.degraded)
        self.assertEqual(report.polls, 1)
        self.assertEqual(clock.sleeps, [2.0])

    async def test_live_marker_keeps_polling(self) -> None:
        clock = _FakeClock()
        report = await self._wait(_ScriptedProbe(markers=[True, True, False]), clock)
        self.assertTrue(report.idle)
        self.assertEqual(report.polls, 3)

    async def test_changing_tail_counts_as_busy(self) -> None:
        clock = _FakeClock()
        probe = _ScriptedProbe(snapshots=[("a", 3), ("b", 4), ("b", 4)])
        report = await self._wait(probe, clock)
        self.assertTrue(report.idle)
        self.assertEqual(report.polls, 2)

    async def test_probe_error_counts_as_busy(self) -> None:
        clock = _FakeClock()
        probe = _ScriptedProbe(markers=[RuntimeError("detached"), False])
        report = await self._wait(probe, clock)
        self.assertTrue(report.idle)
        self.assertEqual(report.polls, 2)

    async def test_ceiling_reports_degraded(self) -> None:
        clock = _FakeClock()
        with self.assertLogs("chatledger.liveness", level="WARNING"):
            report = await self._wait(_ScriptedProbe(markers=[True]), clock)
        self.assertFalse(report.idle)
        self.assertTrue(report.degraded)
        self.assertEqual(report.lastSignal, "marker")
        self.assertEqual(report.polls, 4)
        self.assertEqual(clock.sleeps, [5.0, 5.0, 5.0, 5.0])
        self.assertGreaterEqual(report.waitedSeconds, 20.0)

    async def test_last_pause_is_capped_at_ceiling(self) -> None:
        clock = _FakeClock()
        with self.assertLogs("chatledger.liveness", level="WARNING"):
            report = await self._wait(_ScriptedProbe(markers=[True]), clock, poll_interval=8.0)
        self.assertTrue(report.degraded)
        self.assertEqual(clock.sleeps, [8.0, 8.0, 4.0])
        self.assertEqual(report.waitedSeconds, 20.0)

    async def test_unresponsive_feed_is_abandoned_at_ceiling(self) -> None:
        with self.assertLogs("chatledger.liveness", level="WARNING"):
            report = await asyncio.wait_for(
                wait_for_idle(_UnresponsiveFeed(), poll_interval=0.01, snapshot_delay=0.01, max_wait=0.2),
                timeout=2.0,
            )
        self.assertFalse(report.idle)
        self.assertTrue(report.degraded)
        self.assertEqual(report.lastSignal, "timeout")
        self.assertEqual(report.polls, 1)

    async def test_stop_event_interrupts_pause(self) -> None:
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, stop.set)
        report = await asyncio.wait_for(
            wait_for_idle(
                _ScriptedProbe(markers=[True]),
                poll_interval=60.0,
                snapshot_delay=0.0,
                max_wait=600.0,
                stop_event=stop,
            ),
            timeout=2.0,
        )
        self.assertEqual(report.lastSignal, "cancelled")
        self.assertEqual(report.polls, 1)
        self.assertLess(report.waitedSeconds, 2.0)

    async def test_stop_event_cancels_wait(self) -> None:
        clock = _FakeClock()
        stop = asyncio.Event()
        stop.set()
        report = await self._wait(_ScriptedProbe(markers=[True]), clock, stop_event=stop)
        self.assertFalse(report.idle)
        self.assertEqual(report.lastSignal, "cancelled")
        self.assertEqual(report.polls, 0)


if __name__ == "__main__":
    unittest.main()
