"""Conjunctive row filtering over a resolved schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from meeting_stats.column_resolver import Schema
from meeting_stats.shared import Cell, cell_at, cell_text, is_cancelled

logger = logging.getLogger(__name__)

ALL = "all"
CANCELLATION_ALL = "all"
CANCELLED = "cancelled"
NOT_CANCELLED = "not_cancelled"
CANCELLATION_STATUSES = (CANCELLATION_ALL, CANCELLED, NOT_CANCELLED)

_CANCELLATION_ALIASES = {
    "all": CANCELLATION_ALL,
    "": CANCELLATION_ALL,
    "cancelled": CANCELLED,
    "canceled": CANCELLED,
    "已取消": CANCELLED,
    "not_cancelled": NOT_CANCELLED,
    "not-cancelled": NOT_CANCELLED,
    "not_canceled": NOT_CANCELLED,
    "not-canceled": NOT_CANCELLED,
    "未取消": NOT_CANCELLED,
}

MonthFilter = Union[str, tuple[str, ...]]
RowPredicate = Callable[[Sequence[Cell]], bool]


def normalize_cancellation_status(value: Optional[str]) -> str:
    if value is None:
        return CANCELLATION_ALL
    key = str(value).strip().lower()
    if key not in _CANCELLATION_ALIASES:
        raise ValueError(f"Unknown cancellation status {value!r}; expected one of {CANCELLATION_STATUSES}")
    return _CANCELLATION_ALIASES[key]


def normalize_month_filter(value: Any) -> MonthFilter:
    """A single month stays a string; any collection becomes a tuple of trimmed strings."""
    if value is None:
        return ALL
    if isinstance(value, str):
        return value.strip() or ALL
    return tuple(str(item).strip() for item in value)


@dataclass(frozen=True)
class FilterState:
    year: str = ALL
    month: MonthFilter = ALL
    brand: str = ALL
    cancellation_status: str = CANCELLATION_ALL

    @classmethod
    def build(
        cls,
        year: Optional[str] = None,
        month: Union[str, Iterable[str], None] = None,
        brand: Optional[str] = None,
        cancellation_status: Optional[str] = None,
    ) -> "FilterState":
        return cls(
            year=_scalar(year),
            month=normalize_month_filter(month),
            brand=_scalar(brand),
            cancellation_status=normalize_cancellation_status(cancellation_status),
        )

    def updated(self, **changes: Any) -> "FilterState":
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "month":
                normalized[key] = normalize_month_filter(value)
            elif key == "cancellation_status":
                normalized[key] = normalize_cancellation_status(value)
            elif key in ("year", "brand"):
                normalized[key] = _scalar(value)
            else:
                raise TypeError(f"Unknown filter field: {key}")
        return replace(self, **normalized)

    def is_default(self) -> bool:
        return self == FilterState()

    def as_dict(self) -> dict[str, Any]:
        month = list(self.month) if isinstance(self.month, tuple) else self.month
        return {
            "year": self.year,
            "month": month,
            "brand": self.brand,
            "cancellation_status": self.cancellation_status,
        }


def _scalar(value: Optional[Any]) -> str:
    if value is None:
        return ALL
    text = str(value).strip()
    return text or ALL


def _text(row: Sequence[Cell], index: int) -> str:
    return cell_text(cell_at(row, index)).strip()


def year_predicate(schema: Schema, year: str) -> Optional[RowPredicate]:
    if year == ALL:
        return None
    year_index = schema.year
    month_index = schema.month
    if year_index < 0 and month_index < 0:
        return None

    def predicate(row: Sequence[Cell]) -> bool:
        if year_index >= 0 and _text(row, year_index) == year:
            return True
        return month_index >= 0 and year in _text(row, month_index)

    return predicate


def month_predicate(schema: Schema, month: MonthFilter) -> Optional[RowPredicate]:
    if month == ALL or schema.month < 0:
        return None
    index = schema.month
    if isinstance(month, tuple):
        wanted = frozenset(month)
        return lambda row: _text(row, index) in wanted
    return lambda row: _text(row, index) == month


def brand_predicate(schema: Schema, brand: str) -> Optional[RowPredicate]:
    if brand == ALL or schema.brand < 0:
        return None
    index = schema.brand
    return lambda row: _text(row, index) == brand


def cancellation_predicate(schema: Schema, status: str) -> Optional[RowPredicate]:
    if status == CANCELLATION_ALL or schema.cancellation < 0:
        return None
    index = schema.cancellation
    if status == CANCELLED:
        return lambda row: is_cancelled(cell_at(row, index))
    return lambda row: not is_cancelled(cell_at(row, index))


def active_predicates(schema: Schema, filters: FilterState) -> list[RowPredicate]:
    candidates = (
        year_predicate(schema, filters.year),
        month_predicate(schema, filters.month),
        brand_predicate(schema, filters.brand),
        cancellation_predicate(schema, filters.cancellation_status),
    )
    return [predicate for predicate in candidates if predicate is not None]


def filter_rows(
    rows: Sequence[Sequence[Cell]],
    schema: Schema,
    filters: Optional[FilterState] = None,
) -> list[Sequence[Cell]]:
    """Return the rows passing every active predicate, in their original order."""
    predicates = active_predicates(schema, filters or FilterState())
    if not predicates:
        return list(rows)
    kept = [row for row in rows if all(predicate(row) for predicate in predicates)]
    logger.debug("Filter %s kept %d of %d rows", filters, len(kept), len(rows))
    return kept
