import unittest

from chatledger.parsers.durations import format_duration, merge_precision, parse_duration_seconds


class DurationParserTests(unittest.TestCase):
    def test_parses_combined_units(self) -> None:
        self.assertEqual(parse_duration_seconds("4 minutes 12 seconds"), 252)
        self.assertEqual(parse_duration_seconds("1 hour"), 3600)
        self.assertEqual(parse_duration_seconds("1 hour and 12 minutes"), 4320)
        self.assertEqual(parse_duration_seconds("2 days, 3 hours"), 2 * 86400 + 3 * 3600)

    def test_order_independent(self) -> None:
        self.assertEqual(parse_duration_seconds("12 seconds 4 minutes"), 252)

    def test_unmatched_text_is_none(self) -> None:
        self.assertIsNone(parse_duration_seconds("foo"))
        self.assertIsNone(parse_duration_seconds(""))
        self.assertIsNone(parse_duration_seconds(None))

    def test_zero_is_a_match(self) -> None:
        self.assertEqual(parse_duration_seconds("0 seconds"), 0)


class MergePrecisionTests(unittest.TestCase):
    def test_precise_value_overrides_coarse(self) -> None:
        merged = merge_precision("4 minutes", "4 minutes 9 seconds")
        self.assertEqual(merged.text, "4 minutes 9 seconds")
        self.assertEqual(merged.seconds, 249)

    def test_keeps_coarse_when_precise_missing_or_zero(self) -> None:
        self.assertEqual(merge_precision("4 minutes", None).seconds, 240)
        self.assertEqual(merge_precision("4 minutes", "0 seconds").seconds, 240)
        self.assertEqual(merge_precision("4 minutes", "soon").text, "4 minutes")

    def test_never_averages(self) -> None:
        merged = merge_precision("10 minutes", "2 minutes")
        self.assertEqual(merged.seconds, 120)


class FormatDurationTests(unittest.TestCase):
    def test_formats_units(self) -> None:
        self.assertEqual(format_duration(0), "0 seconds")
        self.assertEqual(format_duration(61), "1 minute 1 second")
        self.assertEqual(format_duration(3723), "1 hour 2 minutes 3 seconds")
        self.assertEqual(format_duration(7200), "2 hours")

    def test_negative_clamps_to_zero(self) -> None:
        self.assertEqual(format_duration(-5), "0 seconds")


if __name__ == "__main__":
    unittest.main()
