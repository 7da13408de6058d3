from __future__ import annotations

import unittest

from meeting_stats.aggregator import (
    cancellation_stats,
    compute_aggregates,
    distinct_lists,
    ess_name_ranking,
    ess_participation_stats,
    event_type_distribution,
    extract_years,
    monetary_totals,
    monthly_ess_stats,
    region_distribution,
    sort_months,
)
from meeting_stats.column_resolver import Schema, detect_columns
from meeting_stats.shared import normalize_yes_no, percentage

SCHEMA = Schema(month=0, region=1, ess_name=2, ess_offline=3, ess_online=4, cancellation=5, event_type=6, budget=7)

ROWS = [
    ["May", "East", "Li Na", "Y", "N", None, "Campaign", "¥1,000"],
    ["May", "North", "Li Na", "yes", "Y", "R", "One Time", 500],
    ["Jun", "East", "张伟", "是", "否", "r", "Campaign", "(200)"],
    ["Jun", None, "张伟", "no", "N", "", "Sub Event", "n/a"],
    ["Jul", "South", " Wang Fang ", "maybe", "N", "X", None],
    ["Jul", "East", "", "TRUE", "false"],
]


class NormalizationTests(unittest.TestCase):
    def test_yes_no_table(self):
        for value in ("Y", "yes", "TRUE", "1", "t", "是", 1, " y "):
            self.assertEqual(normalize_yes_no(value), "yes", value)
        for value in ("n", "NO", "false", "0", "f", "否", 0):
            self.assertEqual(normalize_yes_no(value), "no", value)
        for value in ("", None, "maybe", "2"):
            self.assertEqual(normalize_yes_no(value), "unknown", value)

    def test_percentage_rounds_half_up(self):
        self.assertEqual(percentage(1, 8), 13)
        self.assertEqual(percentage(5, 8), 63)
        self.assertEqual(percentage(1, 3), 33)
        self.assertEqual(percentage(1, 0), 0)


class DistributionTests(unittest.TestCase):
    def test_region_distribution_with_unknown_bucket(self):
        stats = region_distribution(ROWS, SCHEMA)
        self.assertEqual(stats["total"], 6)
        self.assertEqual(stats["regions"]["East"], {"count": 3, "percentage": 50})
        self.assertEqual(stats["regions"]["unknown"], {"count": 1, "percentage": 17})

    def test_percentages_sum_close_to_100(self):
        for stats in (region_distribution(ROWS, SCHEMA)["regions"], event_type_distribution(ROWS, SCHEMA)["types"]):
            total = sum(entry["percentage"] for entry in stats.values())
            self.assertLessEqual(abs(total - 100), len(stats))

    def test_event_type_distribution(self):
        stats = event_type_distribution(ROWS, SCHEMA)
        self.assertEqual(stats["types"]["Campaign"]["count"], 2)
        self.assertEqual(stats["types"]["unknown"]["count"], 2)

    def test_unresolved_roles_give_neutral_values(self):
        empty = Schema()
        self.assertEqual(region_distribution(ROWS, empty), {"regions": {}, "total": 0})
        self.assertEqual(event_type_distribution(ROWS, empty), {"types": {}, "total": 0})
        self.assertEqual(ess_participation_stats(ROWS, empty)["total"], 0)
        self.assertEqual(cancellation_stats(ROWS, empty)["cancelled"], 0)
        self.assertEqual(monthly_ess_stats(ROWS, empty), [])
        self.assertEqual(ess_name_ranking(ROWS, empty), [])
        self.assertEqual(monetary_totals(ROWS, empty)["budget"], None)


class ParticipationTests(unittest.TestCase):
    def test_percentages_are_over_all_rows(self):
        stats = ess_participation_stats(ROWS, SCHEMA)
        self.assertEqual((stats["yes"], stats["no"], stats["unknown"], stats["total"]), (4, 1, 1, 6))
        self.assertEqual(stats["yes_percentage"], 67)
        self.assertEqual(stats["no_percentage"], 17)
        self.assertEqual(stats["unknown_percentage"], 17)

    def test_monthly_breakdown_keeps_first_seen_order(self):
        stats = monthly_ess_stats(ROWS, SCHEMA)
        self.assertEqual([entry["month"] for entry in stats], ["May", "Jun", "Jul"])
        jul = stats[2]
        self.assertEqual((jul["yes"], jul["no"], jul["unknown"], jul["total"]), (1, 0, 1, 2))
        self.assertEqual(jul["yes_percentage"], 50)

    def test_cancellation_counts(self):
        stats = cancellation_stats(ROWS, SCHEMA)
        self.assertEqual(stats["cancelled"], 2)
        self.assertEqual(stats["not_cancelled"], 4)
        self.assertEqual(stats["cancelled_percentage"] + stats["not_cancelled_percentage"], 100)


class RankingTests(unittest.TestCase):
    def test_ranking_counts_and_order(self):
        ranking = ess_name_ranking(ROWS, SCHEMA)
        self.assertEqual([entry["name"] for entry in ranking], ["Li Na", "张伟", "Wang Fang"])
        self.assertEqual(ranking[0], {"name": "Li Na", "offline_yes": 2, "online_no": 1, "total": 2})
        self.assertEqual(ranking[1], {"name": "张伟", "offline_yes": 1, "online_no": 2, "total": 2})
        self.assertEqual(ranking[2]["online_no"], 1)

    def test_tie_break_on_online_no_then_total(self):
        schema = Schema(ess_name=0, ess_offline=1, ess_online=2)
        rows = [
            ["A", "Y", "Y"],
            ["B", "Y", "N"],
            ["C", "Y", "N"],
            ["C", "N", "Y"],
        ]
        ranking = ess_name_ranking(rows, schema)
        self.assertEqual([entry["name"] for entry in ranking], ["C", "B", "A"])

    def test_ranking_with_only_online_column(self):
        schema = Schema(ess_name=0, ess_online=1)
        ranking = ess_name_ranking([["A", "N"], ["A", "Y"]], schema)
        self.assertEqual(ranking, [{"name": "A", "offline_yes": 0, "online_no": 1, "total": 2}])


class DistinctValueTests(unittest.TestCase):
    def test_month_ordering_is_fiscal_then_alphabetical(self):
        self.assertEqual(sort_months(["Jan", "May", "Dec", "Xyz", "Feb"]), ["May", "Dec", "Jan", "Feb", "Xyz"])
        self.assertEqual(sort_months(["Mar", "Apr", "Jun"]), ["Jun", "Apr", "Mar"])

    def test_distinct_lists_are_trimmed_and_deduplicated(self):
        lists = distinct_lists(ROWS, SCHEMA)
        self.assertEqual(lists["months"], ["May", "Jun", "Jul"])
        self.assertEqual(lists["ess_names"], sorted(["Li Na", "张伟", "Wang Fang"]))
        self.assertEqual(lists["regions"], ["East", "North", "South"])
        self.assertEqual(lists["brands"], [])
        self.assertEqual(lists["event_types"], ["Campaign", "One Time", "Sub Event"])

    def test_years_from_year_column(self):
        schema = Schema(year=0)
        self.assertEqual(extract_years([[2025], [2024], ["2025"], [None]], schema), ["2024", "2025"])

    def test_years_from_month_text(self):
        schema = Schema(month=0)
        rows = [["Dec 2024"], ["Jan 2025"], ["May"], ["Week 12"]]
        self.assertEqual(extract_years(rows, schema), ["2024", "2025"])

    def test_years_default_for_header_only_sheet(self):
        resolved = detect_columns([["Year", "Month", "Region"]])
        self.assertEqual(resolved.schema.year, 0)
        self.assertEqual(resolved.rows, [])
        self.assertEqual(extract_years(resolved.rows, resolved.schema), ["2024", "2025"])

    def test_years_default_when_nothing_found(self):
        self.assertEqual(extract_years([["May"]], Schema(month=0)), ["2024", "2025"])
        self.assertEqual(extract_years([], Schema()), ["2024", "2025"])


class MonetaryTotalTests(unittest.TestCase):
    def test_budget_total_parses_text_amounts(self):
        totals = monetary_totals(ROWS, SCHEMA)
        self.assertEqual(totals["budget"], {"total": 1300.0, "counted": 3})
        self.assertIsNone(totals["speaker_fee"])


class ComputeAggregatesTests(unittest.TestCase):
    def test_payload_keys_and_distinct_source(self):
        filtered = ROWS[:2]
        payload = compute_aggregates(filtered, SCHEMA, all_rows=ROWS)
        self.assertEqual(
            set(payload),
            {
                "region_stats",
                "ess_participation_stats",
                "monthly_ess_stats",
                "cancellation_stats",
                "event_type_stats",
                "ess_name_ranking",
                "distinct_lists",
                "monetary_totals",
            },
        )
        self.assertEqual(payload["region_stats"]["total"], 2)
        self.assertEqual(payload["distinct_lists"]["months"], ["May", "Jun", "Jul"])

    def test_empty_rows(self):
        payload = compute_aggregates([], SCHEMA)
        self.assertEqual(payload["region_stats"], {"regions": {}, "total": 0})
        self.assertEqual(payload["monthly_ess_stats"], [])
        self.assertEqual(payload["ess_name_ranking"], [])


if __name__ == "__main__":
    unittest.main()
