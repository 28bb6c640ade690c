import unittest
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException

from chatledger.models import CommitRecord
from chatledger.routers import timeline as timeline_router


def _nodes() -> list[dict[str, Any]]:
    return [
        {
            "position": 0,
            "text": "Please add a login page",
            "structuralHints": ["user"],
            "timestampTexts": ["2025-01-15T10:00:00Z"],
        },
        {
            "position": 1,
            "text": "Saved progress at the end of the loop\nCheckpoint made 10:05 am, Jan 15, 2025",
            "structuralHints": ["checkpoint"],
        },
        {
            "position": 2,
            "text": "Worked for 4 minutes\n3 actions\nAgent usage $0.25",
            "structuralHints": ["has-expand-control"],
        },
    ]


def _commits() -> list[CommitRecord]:
    return [CommitRecord(message="Add login page", timestamp=datetime(2025, 1, 15, 10, 4, 50, tzinfo=timezone.utc))]


class TimelineRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_create_timeline(self) -> None:
        payload = timeline_router.TimelineRequest(nodes=_nodes(), commits=_commits())
        result = await timeline_router.create_timeline(payload)
        self.assertEqual(len(result.timeline.events), 3)
        self.assertEqual(result.timeline.checkpoints()[0].description, "Add login page")
        self.assertEqual(result.diagnostics.correlatedCount, 1)

    async def test_malformed_node_counts_as_read_failure(self) -> None:
        nodes = _nodes()
        nodes.insert(1, {"position": "second", "text": "Broken record"})
        payload = timeline_router.TimelineRequest.model_validate({"nodes": nodes, "commits": []})
        with self.assertLogs("chatledger.pipeline", level="WARNING"):
            result = await timeline_router.create_timeline(payload)
        self.assertEqual(result.diagnostics.readFailures, 1)
        self.assertEqual(len(result.timeline.events), 3)
        self.assertEqual(result.timeline.messages()[0].content, "Please add a login page")

    async def test_node_position_defaults_to_feed_index(self) -> None:
        nodes = [{k: v for k, v in node.items() if k != "position"} for node in _nodes()]
        result = await timeline_router.create_timeline(timeline_router.TimelineRequest(nodes=nodes))
        self.assertEqual(result.diagnostics.readFailures, 0)
        self.assertEqual(len(result.timeline.events), 3)

    async def test_negative_window_is_bad_request(self) -> None:
        payload = timeline_router.TimelineRequest(nodes=_nodes(), commitWindowSeconds=-1)
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.create_timeline(payload)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_invalid_cutoff_is_bad_request(self) -> None:
        payload = timeline_router.TimelineRequest(nodes=_nodes(), cutoff="sometime soon")
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.create_timeline(payload)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_empty_feed_is_unprocessable(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.create_timeline(timeline_router.TimelineRequest())
        self.assertEqual(ctx.exception.status_code, 422)

    async def test_work_summary(self) -> None:
        payload = timeline_router.TimelineRequest(nodes=_nodes(), commits=_commits(), cutoff="2025-01-15")
        response = await timeline_router.create_work_summary(payload)
        self.assertEqual(len(response.days), 1)
        self.assertEqual(response.days[0].date, "2025-01-15")
        self.assertEqual(response.days[0].totalSeconds, 240)
        self.assertEqual(response.entries[0].description, "Add login page")

    async def test_parse_duration(self) -> None:
        response = await timeline_router.parse_duration(
            timeline_router.DurationParseRequest(text="4 minutes", precise="4 minutes 9 seconds")
        )
        self.assertEqual(response.seconds, 249)
        self.assertEqual(response.formatted, "4 minutes 9 seconds")

        unparsed = await timeline_router.parse_duration(timeline_router.DurationParseRequest(text="soon"))
        self.assertIsNone(unparsed.seconds)
        self.assertEqual(unparsed.formatted, "")


if __name__ == "__main__":
    unittest.main()
