"""Decide whether row 0 of a sheet is a header row and split header from data."""

from __future__ import annotations

from typing import Sequence

from meeting_stats.shared import Cell, Row, cell_text, is_blank, is_numeric_cell

HEADER_KEYWORDS = ("month", "region")
SYNTHETIC_HEADER_PREFIX = "Column"


def has_structural_keyword(row: Row) -> bool:
    joined = " ".join(cell_text(cell) for cell in row).lower()
    return any(keyword in joined for keyword in HEADER_KEYWORDS)


def is_numeric_heavy(row: Row) -> bool:
    numeric_count = sum(1 for cell in row if is_numeric_cell(cell))
    return numeric_count > len(row) / 2


def is_header_row(row: Row | None) -> bool:
    if not row:
        return False
    if has_structural_keyword(row):
        return True
    if is_numeric_heavy(row):
        return False
    return True


def is_empty_row(row: Row | None) -> bool:
    return not row or all(is_blank(cell) for cell in row)


def sheet_width(rows: Sequence[Row]) -> int:
    return max((len(row) for row in rows), default=0)


def synthetic_headers(width: int) -> list[str]:
    return [f"{SYNTHETIC_HEADER_PREFIX} {index + 1}" for index in range(width)]


def render_header_row(row: Row, width: int) -> list[str]:
    headers = [cell_text(cell) for cell in row]
    return headers + [""] * max(0, width - len(headers))


def split_header(raw_rows: Sequence[Sequence[Cell]]) -> tuple[list[str], list[list[Cell]], bool]:
    """
    Split a raw sheet into (headers, data rows, header_detected).

    Fully empty rows are dropped. Headers are padded to the widest row so
    every populated column has a header slot, synthetic or real.
    """
    rows = [list(row) for row in raw_rows if not is_empty_row(row)]
    if not rows:
        return [], [], False

    width = sheet_width(rows)
    if is_header_row(rows[0]):
        return render_header_row(rows[0], width), rows[1:], True
    return synthetic_headers(width), rows, False
