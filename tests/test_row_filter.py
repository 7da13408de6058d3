from __future__ import annotations

import unittest

from meeting_stats.column_resolver import Schema
from meeting_stats.row_filter import (
    CANCELLED,
    NOT_CANCELLED,
    FilterState,
    filter_rows,
    normalize_cancellation_status,
)

SCHEMA = Schema(year=0, month=1, brand=2, cancellation=3)

ROWS = [
    [2024, "May", "CV", "R"],
    [2024, "Jun", "Diabetes", None],
    [2025, "Jan", "CV", "r"],
    [2025, "Feb", " Diabetes ", "X"],
    [2024, "May"],
]


class FilterStateTests(unittest.TestCase):
    def test_defaults_match_everything(self):
        self.assertEqual(filter_rows(ROWS, SCHEMA, FilterState()), ROWS)
        self.assertEqual(filter_rows(ROWS, SCHEMA), ROWS)

    def test_build_normalizes_inputs(self):
        state = FilterState.build(year=" 2024 ", month=["May", "Jun"], brand="", cancellation_status="已取消")
        self.assertEqual(state.year, "2024")
        self.assertEqual(state.month, ("May", "Jun"))
        self.assertEqual(state.brand, "all")
        self.assertEqual(state.cancellation_status, CANCELLED)

    def test_updated_returns_new_instance(self):
        state = FilterState()
        changed = state.updated(brand="CV")
        self.assertEqual(state.brand, "all")
        self.assertEqual(changed.brand, "CV")
        with self.assertRaises(TypeError):
            state.updated(colour="red")

    def test_unknown_cancellation_status_is_rejected(self):
        self.assertEqual(normalize_cancellation_status("not-cancelled"), NOT_CANCELLED)
        with self.assertRaises(ValueError):
            normalize_cancellation_status("sometimes")


class FilterRowsTests(unittest.TestCase):
    def test_year_matches_year_column(self):
        kept = filter_rows(ROWS, SCHEMA, FilterState(year="2025"))
        self.assertEqual([row[1] for row in kept], ["Jan", "Feb"])

    def test_year_falls_back_to_month_text(self):
        schema = Schema(month=0)
        rows = [["Dec 2024"], ["Jan 2025"], ["May"]]
        self.assertEqual(filter_rows(rows, schema, FilterState(year="2025")), [["Jan 2025"]])

    def test_year_filter_skipped_without_year_or_month(self):
        schema = Schema(brand=0)
        rows = [["CV"], ["Diabetes"]]
        self.assertEqual(filter_rows(rows, schema, FilterState(year="2030")), rows)

    def test_month_scalar_and_set(self):
        self.assertEqual(len(filter_rows(ROWS, SCHEMA, FilterState(month="May"))), 2)
        kept = filter_rows(ROWS, SCHEMA, FilterState.build(month=["Jun", "Jan"]))
        self.assertEqual([row[1] for row in kept], ["Jun", "Jan"])

    def test_empty_month_set_matches_nothing(self):
        self.assertEqual(filter_rows(ROWS, SCHEMA, FilterState.build(month=[])), [])

    def test_brand_compares_trimmed_text(self):
        kept = filter_rows(ROWS, SCHEMA, FilterState(brand="Diabetes"))
        self.assertEqual([row[1] for row in kept], ["Jun", "Feb"])

    def test_cancellation_marker_is_case_insensitive(self):
        cancelled = filter_rows(ROWS, SCHEMA, FilterState(cancellation_status=CANCELLED))
        self.assertEqual([row[1] for row in cancelled], ["May", "Jan"])
        not_cancelled = filter_rows(ROWS, SCHEMA, FilterState(cancellation_status=NOT_CANCELLED))
        # Blank, "X" and a short row without the column all count as not cancelled.
        self.assertEqual([row[1] for row in not_cancelled], ["Jun", "Feb", "May"])

    def test_predicates_conjoin(self):
        state = FilterState(year="2024", brand="CV", cancellation_status=CANCELLED)
        self.assertEqual(filter_rows(ROWS, SCHEMA, state), [ROWS[0]])

    def test_unresolved_roles_skip_their_predicates(self):
        schema = Schema(month=1)
        state = FilterState(brand="Nope", cancellation_status=CANCELLED, month="May")
        self.assertEqual(len(filter_rows(ROWS, schema, state)), 2)


if __name__ == "__main__":
    unittest.main()
