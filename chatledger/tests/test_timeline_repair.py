import unittest
from datetime import datetime, timedelta, timezone

from chatledger.models import Checkpoint, Message, Noise, Timeline, WorkEntry
from chatledger.timeline import apply_cutoff, assemble_timeline, attach_checkpoint_durations, repair_monotonic


def _utc(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2025, 1, 15, hour, minute, second, tzinfo=timezone.utc)


class AssembleTimelineTests(unittest.TestCase):
    def test_drops_noise_sorts_and_reindexes(self) -> None:
        events = [
            Message(position=7, content="second"),
            Noise(position=3, reason="boilerplate"),
            Message(position=2, content="first"),
            WorkEntry(position=9),
        ]
        timeline = assemble_timeline(events)
        self.assertEqual([e.position for e in timeline.events], [0, 1, 2])
        self.assertEqual(timeline.events[0].content, "first")
        self.assertIsInstance(timeline.events[2], WorkEntry)

    def test_stable_for_equal_positions(self) -> None:
        events = [Message(position=1, content="a"), Message(position=1, content="b")]
        timeline = assemble_timeline(events)
        self.assertEqual([e.content for e in timeline.events], ["a", "b"])


class RepairMonotonicTests(unittest.TestCase):
    def test_backwards_timestamp_is_clamped(self) -> None:
        timeline = Timeline(events=[
            Message(position=0, content="a", timestamp=_utc(10, 0), timestampSource="own"),
            Message(position=1, content="b", timestamp=_utc(9, 59), timestampSource="own"),
            Message(position=2, content="c", timestamp=_utc(10, 1), timestampSource="own"),
        ])
        repaired, count = repair_monotonic(timeline)
        self.assertEqual(count, 1)
        self.assertEqual([e.timestamp for e in repaired.events], [_utc(10, 0), _utc(10, 0), _utc(10, 1)])
        self.assertEqual([e.timestampSource for e in repaired.events], ["own", "repaired", "own"])

    def test_missing_timestamps_are_untouched(self) -> None:
        timeline = Timeline(events=[
            Message(position=0, content="a", timestamp=_utc(10, 0)),
            Message(position=1, content="b"),
            Message(position=2, content="c", timestamp=_utc(9, 0)),
        ])
        repaired, count = repair_monotonic(timeline)
        self.assertEqual(count, 1)
        self.assertIsNone(repaired.events[1].timestamp)
        self.assertEqual(repaired.events[2].timestamp, _utc(10, 0))

    def test_equal_timestamps_are_not_repairs(self) -> None:
        timeline = Timeline(events=[
            Message(position=0, content="a", timestamp=_utc(10, 0)),
            Checkpoint(position=1, timestamp=_utc(10, 0)),
        ])
        _, count = repair_monotonic(timeline)
        self.assertEqual(count, 0)


class CheckpointDurationTests(unittest.TestCase):
    def test_measures_from_previous_user_message(self) -> None:
        timeline = Timeline(events=[
            Message(position=0, role="user", content="go", timestamp=_utc(10, 0)),
            Message(position=1, role="agent", content="ok", timestamp=_utc(10, 3)),
            Checkpoint(position=2, timestamp=_utc(10, 5)),
        ])
        annotated = attach_checkpoint_durations(timeline)
        self.assertEqual(annotated.checkpoints()[0].durationSeconds, 300)

    def test_no_duration_without_user_message_or_beyond_a_day(self) -> None:
        timeline = Timeline(events=[
            Checkpoint(position=0, timestamp=_utc(9, 0)),
            Message(position=1, role="user", content="go", timestamp=_utc(10, 0)),
            Checkpoint(position=2, timestamp=_utc(10, 0) + timedelta(days=2)),
        ])
        first, second = attach_checkpoint_durations(timeline).checkpoints()
        self.assertIsNone(first.durationSeconds)
        self.assertIsNone(second.durationSeconds)


class CutoffTests(unittest.TestCase):
    def test_drops_earlier_events_and_keeps_undated(self) -> None:
        timeline = Timeline(events=[
            Message(position=0, content="old", timestamp=_utc(8, 0)),
            Message(position=1, content="undated"),
            Message(position=2, content="new", timestamp=_utc(12, 0)),
        ])
        trimmed, dropped = apply_cutoff(timeline, _utc(9, 0))
        self.assertEqual(dropped, 1)
        self.assertEqual([e.content for e in trimmed.events], ["undated", "new"])
        self.assertEqual([e.position for e in trimmed.events], [0, 1])

    def test_no_cutoff_returns_same_timeline(self) -> None:
        timeline = Timeline(events=[Message(position=0, content="a")])
        self.assertIs(apply_cutoff(timeline, None)[0], timeline)


if __name__ == "__main__":
    unittest.main()
