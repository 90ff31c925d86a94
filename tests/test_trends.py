import pathlib
import sys
import unittest
from datetime import datetime, timezone

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.trends import MonthBucket, summarize_by_rep, summarize_trailing_months
from services.metrics import MetricTotals

ZONE = "America/Los_Angeles"
NOW = datetime(2026, 3, 11, 20, 0, tzinfo=timezone.utc)


class TrailingMonthTests(unittest.TestCase):
    def test_empty_records_yield_zeroed_buckets(self):
        buckets = summarize_trailing_months(3, [], ZONE, NOW)
        self.assertEqual([bucket.month_key for bucket in buckets], ["2026-03", "2026-02", "2026-01"])
        for bucket in buckets:
            self.assertEqual(bucket.entry_count, 0)
            self.assertEqual(bucket.totals, MetricTotals())
            self.assertTrue(all(value == 0 for value in bucket.averages().values()))

    def test_partitions_records_by_calendar_month(self):
        records = [
            {"user_id": "a", "date": "2026-03-02", "actual_dials": 40, "actual_sets_new_biz": 1},
            {"user_id": "b", "date": "2026-03-03", "actual_dials": 25, "actual_sets_expansion": 2},
            {"user_id": "a", "date": "2026-02-28", "actual_dials": 10},
            {"user_id": "a", "date": "2025-12-31", "actual_dials": 99},
        ]
        buckets = summarize_trailing_months(3, records, ZONE, NOW)
        march, february, january = buckets
        self.assertEqual(march.entry_count, 2)
        self.assertEqual(march.totals.dials, 65)
        self.assertEqual(march.totals.sets_total, 3)
        self.assertEqual((march.start, march.end), ("2026-03-01", "2026-03-31"))
        self.assertEqual(february.entry_count, 1)
        self.assertEqual(february.totals.dials, 10)
        self.assertEqual(january.entry_count, 0)

    def test_averages_round_half_up(self):
        bucket = MonthBucket(
            month_key="2026-03",
            start="2026-03-01",
            end="2026-03-31",
            totals=MetricTotals(dials=5, prospects=7, sqos=1),
            entry_count=2,
        )
        averages = bucket.averages()
        self.assertEqual(averages["dials"], 3)
        self.assertEqual(averages["prospects"], 4)
        self.assertEqual(averages["sqos"], 1)

    def test_as_dict_shape(self):
        payload = summarize_trailing_months(1, [], ZONE, NOW)[0].as_dict()
        self.assertEqual(payload["monthKey"], "2026-03")
        self.assertEqual(payload["entryCount"], 0)
        self.assertEqual(payload["totals"]["setsTotal"], 0)
        self.assertEqual(payload["averages"]["dials"], 0)

    def test_non_positive_count_is_empty(self):
        self.assertEqual(summarize_trailing_months(0, [], ZONE, NOW), [])
        self.assertEqual(summarize_trailing_months(-2, [], ZONE, NOW), [])

    def test_per_rep_buckets(self):
        reps = [{"id": "a", "name": "Ava"}, {"id": "b", "name": "Jay"}]
        records = [{"user_id": "a", "date": "2026-03-02", "actual_dials": 40}]
        summary = summarize_by_rep(2, reps, records, ZONE, NOW)
        self.assertEqual([rep["name"] for rep in summary], ["Ava", "Jay"])
        self.assertEqual(summary[0]["months"][0].totals.dials, 40)
        self.assertEqual(summary[1]["months"][0].entry_count, 0)


if __name__ == "__main__":
    unittest.main()
