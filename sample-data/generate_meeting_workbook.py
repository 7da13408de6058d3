#!/usr/bin/env python3
"""
Generates sample-data/meeting_sample.xlsx, a small bilingual meeting export
for trying out meeting-stats.

Run from the repo root:
    python sample-data/generate_meeting_workbook.py [output.xlsx]

Layout:
  Sheet "说明"
    - Free-text notes sheet, listed first so sheet selection has to skip it
  Sheet "会议信息统计表【Monthly】 FY25"
    - Mixed English/Chinese headers, one per role
    - Participation flags written as Y/N, 是/否 and one unknown value
    - Cancellation marker in both cases ("R" and "r")
    - One row with a blank region
    - Amounts as numbers and as "¥12,000" text
  Sheet "会议差旅【Monthly】"
    - Travel settlement sheet with planned and settled cost columns
"""

import datetime
import sys
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "meeting_sample.xlsx"

MEETING_SHEET = "会议信息统计表【Monthly】 FY25"
TRAVEL_SHEET = "会议差旅【Monthly】"

MEETING_HEADERS = [
    "Year",
    "Month",
    "Region",
    "Meeting Name",
    "Event Start Date",
    "Event Type (Campaign / One Time / Sub Event)",
    "ESS Name",
    "是否需要ESS线下参会",
    "是否需要ESS线上参会",
    "Brand/Team",
    "会议取消",
    "会议申请金额含税",
    "# of Speaker Contract",
    "# of Sanofi Paid Speaker",
    "Total Speaker Fee by Sanofi",
]

MEETING_ROWS = [
    # year  month  region   meeting               start                        type         ess          off    on    brand        cancel budget     spk paid fee
    [2024, "May", "East",  "Diabetes Forum",     datetime.date(2024, 5, 12),  "Campaign",  "张伟",      "Y",   "N",  "Diabetes",  None,  "¥12,000", 2,  1,   3000],
    [2024, "May", "North", "Cardio Update",      datetime.date(2024, 5, 20),  "One Time",  "Li Na",     "是",  "否", "CV",        None,  8000,       1,  1,   2000],
    [2024, "Jun", "East",  "Oncology Board",     datetime.date(2024, 6, 3),   "Sub Event", "张伟",      "Y",   "N",  "Oncology",  "R",   15000,      3,  2,   4500],
    [2024, "Jun", "South", "Vaccine Day",        datetime.date(2024, 6, 18),  "Campaign",  "Wang Fang", "N",   "Y",  "Vaccines",  None,  6000,       1,  0,   0],
    [2024, "Jul", "North", "Diabetes Workshop",  datetime.date(2024, 7, 9),   "Campaign",  "Li Na",     "Y",   "N",  "Diabetes",  None,  9500,       2,  2,   3600],
    [2024, "Dec", "East",  "CV Symposium",       datetime.date(2024, 12, 1),  "One Time",  "张伟",      "Y",   "N",  "CV",        "r",   20000,      4,  3,   8000],
    [2025, "Jan", "South", "Vaccine Roadshow",   datetime.date(2025, 1, 15),  "Sub Event", "Wang Fang", "Y",   "N",  "Vaccines",  None,  7000,       1,  1,   1500],
    [2025, "Feb", None,    "Regional Meeting",   datetime.date(2025, 2, 20),  "Campaign",  "Li Na",     "maybe", "N", "Oncology", None,  5000,       1,  1,   1000],
]

TRAVEL_HEADERS = ["Month", "Region", "Meeting Name", "计划-差旅总额", "结算-差旅总额"]

TRAVEL_ROWS = [
    ["May", "East",  "Diabetes Forum",    3000, 2800],
    ["Jun", "East",  "Oncology Board",    4200, 4350],
    ["Jul", "North", "Diabetes Workshop", 2500, 2100],
]


def build_workbook(output: Path) -> Path:
    wb = openpyxl.Workbook()

    # ── Sheet 1: notes ────────────────────────────────────────────────────────
    ws_notes = wb.active
    ws_notes.title = "说明"
    ws_notes.append(["本文件为会议统计示例数据"])
    ws_notes.append(["Generated for meeting-stats demos"])

    # ── Sheet 2: meeting info ─────────────────────────────────────────────────
    ws = wb.create_sheet(MEETING_SHEET)
    ws.append(MEETING_HEADERS)
    for row in MEETING_ROWS:
        ws.append(row)

    # ── Sheet 3: travel cost ──────────────────────────────────────────────────
    ws_travel = wb.create_sheet(TRAVEL_SHEET)
    ws_travel.append(TRAVEL_HEADERS)
    for row in TRAVEL_ROWS:
        ws_travel.append(row)

    output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output)
    return output


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else OUTPUT
    print(f"Created: {build_workbook(target)}")
