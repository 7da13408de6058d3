from __future__ import annotations

import unittest

from meeting_stats.sheet_selector import (
    DEFAULT_VIEW,
    MEETING_INFO_SHEET,
    TRAVEL_COST_SHEET,
    TRAVEL_COST_VIEW,
    find_matching_sheet,
    select_sheet,
    simplify_sheet_name,
)


class SheetSelectorTests(unittest.TestCase):
    def test_exact_phrase_inside_longer_name_wins(self):
        names = ["说明", "会议信息统计表【Monthly】 FY25", "会议差旅【Monthly】"]
        self.assertEqual(select_sheet(names, DEFAULT_VIEW), "会议信息统计表【Monthly】 FY25")
        self.assertEqual(select_sheet(names, TRAVEL_COST_VIEW), "会议差旅【Monthly】")

    def test_simplified_phrase_matches_when_brackets_dropped(self):
        names = ["Cover", "会议信息统计表Monthly"]
        self.assertEqual(simplify_sheet_name(MEETING_INFO_SHEET), "会议信息统计表Monthly")
        self.assertEqual(select_sheet(names), "会议信息统计表Monthly")

    def test_case_insensitive_either_direction(self):
        # Sheet name is a prefix of the target.
        self.assertEqual(find_matching_sheet(["Summary", "会议差旅"], TRAVEL_COST_SHEET), "会议差旅")
        self.assertEqual(find_matching_sheet(["Other", "ABC"], "abc extended"), "ABC")

    def test_travel_keyword_fallback_takes_first_keyword_sheet_in_order(self):
        names = ["Cost centre", "会议差旅 Monthly 2025"]
        self.assertEqual(select_sheet(names, TRAVEL_COST_VIEW), "Cost centre")
        names = ["Sheet1", "会议差旅 - monthly 2025", "Travel cost"]
        self.assertEqual(select_sheet(names, TRAVEL_COST_VIEW), "会议差旅 - monthly 2025")

    def test_travel_keyword_fallback_accepts_english_keyword(self):
        names = ["Sheet1", "Meeting Travel"]
        self.assertEqual(select_sheet(names, TRAVEL_COST_VIEW), "Meeting Travel")

    def test_travel_keywords_not_used_for_default_view(self):
        names = ["Sheet1", "Meeting Travel"]
        self.assertEqual(select_sheet(names, DEFAULT_VIEW), "Sheet1")

    def test_falls_back_to_first_sheet(self):
        self.assertEqual(select_sheet(["Alpha", "Beta"], TRAVEL_COST_VIEW), "Alpha")

    def test_empty_sheet_list_selects_nothing(self):
        self.assertIsNone(select_sheet([], DEFAULT_VIEW))


if __name__ == "__main__":
    unittest.main()
