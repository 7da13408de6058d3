"""Shared vocabulary, sentinels and cell helpers for meeting-stats.

Everything that more than one stage of the pipeline needs to agree on lives
here: role names, the unresolved sentinel, the bilingual yes/no table, the
cancellation marker, the fiscal month order and the scan thresholds used by
the content-scoring tiers.
"""

from __future__ import annotations

import math
import re
from typing import Any, Sequence, Union

Cell = Union[str, int, float, None]
Row = Sequence[Cell]

UNRESOLVED = -1

ROLES = (
    "year",
    "month",
    "region",
    "brand",
    "ess_name",
    "ess_offline",
    "ess_online",
    "cancellation",
    "event_type",
    "budget",
    "travel_cost",
    "speaker_contract",
    "sanofi_paid_speaker",
    "speaker_fee",
)

MONETARY_ROLES = (
    "budget",
    "travel_cost",
    "speaker_contract",
    "sanofi_paid_speaker",
    "speaker_fee",
)

YES = "yes"
NO = "no"
UNKNOWN = "unknown"

YES_TOKENS = frozenset({"Y", "YES", "TRUE", "1", "T", "是"})
NO_TOKENS = frozenset({"N", "NO", "FALSE", "0", "F", "否"})

CANCELLATION_MARKER = "R"
UNKNOWN_BUCKET = "unknown"
DEFAULT_YEARS = ("2024", "2025")

# Fiscal cycle starts in May; Mar/Apr are intentionally absent.
MONTH_ORDER = {
    "May": 1,
    "Jun": 2,
    "Jul": 3,
    "Aug": 4,
    "Sep": 5,
    "Oct": 6,
    "Nov": 7,
    "Dec": 8,
    "Jan": 9,
    "Feb": 10,
}

EVENT_TYPE_KEYWORDS = ("campaign", "one time", "sub event")

EVENT_TYPE_SCAN_ROWS = 50
EVENT_TYPE_EXACT_POINTS = 10
EVENT_TYPE_PARTIAL_POINTS = 3
EVENT_TYPE_DATE_PENALTY = 5
EVENT_TYPE_DATE_HEADER_PENALTY = -100
EVENT_TYPE_MIN_SCORE = 20

YES_NO_SCAN_ROWS = 20
YES_NO_MIN_FILL = 0.5
YES_NO_MIN_RATIO = 0.7

CANCELLATION_SCAN_ROWS = 20

BRAND_FALLBACK_INDEX = 9

DATE_LIKE_RE = re.compile(r"\d{1,2}[/\-]\d{1,2}(?:[/\-]\d{2,4})?")
FOUR_DIGITS_RE = re.compile(r"\d{4}")
YEAR_TOKEN_RE = re.compile(r"^\d{4}$")
PLAIN_NUMBER_RE = re.compile(r"^[+-]?\d+(?:\.\d+)?$")


def cell_at(row: Row, index: int) -> Cell:
    """Return the cell at ``index`` or None when the row is too short."""
    if index < 0 or row is None or index >= len(row):
        return None
    return row[index]


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    return cell_text(value).strip() == ""


def is_numeric_cell(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return isinstance(value, (int, float))


def normalize_yes_no(value: Any) -> str:
    """Map a participation cell onto ``yes``, ``no`` or ``unknown``."""
    token = cell_text(value).strip().upper()
    if not token:
        return UNKNOWN
    if token in YES_TOKENS:
        return YES
    if token in NO_TOKENS:
        return NO
    return UNKNOWN


def is_cancelled(value: Any) -> bool:
    return cell_text(value).strip().upper() == CANCELLATION_MARKER


def looks_like_date_text(text: str) -> bool:
    if "/" in text or "-" in text:
        return True
    return bool(DATE_LIKE_RE.search(text) or FOUR_DIGITS_RE.search(text))


def parse_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return float(value)

    text = str(value).strip()
    if not text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()

    text = text.replace(" ", "")
    text = re.sub(r"^(?:RMB|CNY|USD|EUR)", "", text, flags=re.I)
    text = re.sub(r"(?:RMB|CNY|USD|EUR|元)$", "", text, flags=re.I)
    for symbol in ("¥", "￥", "$", "€", "£"):
        text = text.replace(symbol, "")

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    else:
        text = text.replace(",", "")

    if not PLAIN_NUMBER_RE.fullmatch(text):
        return None

    number = float(text)
    return -number if negative else number


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(count: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(count / total * 100)
