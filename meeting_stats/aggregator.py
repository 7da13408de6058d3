"""
Statistics over filtered meeting rows.

Every function here is pure: (rows, schema) in, plain dict/list out. A role the
schema could not resolve yields that statistic's neutral value (empty
distribution, zero counts, empty list) so callers never need to guard.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, Optional, Sequence

from meeting_stats.column_resolver import Schema
from meeting_stats.shared import (
    DEFAULT_YEARS,
    MONETARY_ROLES,
    MONTH_ORDER,
    NO,
    UNKNOWN,
    UNKNOWN_BUCKET,
    YEAR_TOKEN_RE,
    YES,
    Cell,
    cell_at,
    cell_text,
    is_cancelled,
    normalize_yes_no,
    parse_number,
    percentage,
)

logger = logging.getLogger(__name__)

Rows = Sequence[Sequence[Cell]]


def _bucket(row: Sequence[Cell], index: int) -> str:
    text = cell_text(cell_at(row, index)).strip()
    return text or UNKNOWN_BUCKET


# ══════════════════════════════════════════════════════════════════════════════
# DISTRIBUTIONS
# ══════════════════════════════════════════════════════════════════════════════

def value_distribution(rows: Rows, index: int) -> tuple[dict[str, dict[str, int]], int]:
    """Count rows per distinct value of one column; blanks fall into the unknown bucket."""
    if index < 0 or not rows:
        return {}, 0
    counts = Counter(_bucket(row, index) for row in rows)
    total = sum(counts.values())
    distribution = {
        value: {"count": count, "percentage": percentage(count, total)}
        for value, count in counts.items()
    }
    return distribution, total


def region_distribution(rows: Rows, schema: Schema) -> dict[str, Any]:
    regions, total = value_distribution(rows, schema.region)
    return {"regions": regions, "total": total}


def event_type_distribution(rows: Rows, schema: Schema) -> dict[str, Any]:
    types, total = value_distribution(rows, schema.event_type)
    return {"types": types, "total": total}


# ══════════════════════════════════════════════════════════════════════════════
# PARTICIPATION / CANCELLATION
# ══════════════════════════════════════════════════════════════════════════════

def yes_no_counts(rows: Rows, index: int) -> dict[str, int]:
    counts = {YES: 0, NO: 0, UNKNOWN: 0}
    for row in rows:
        counts[normalize_yes_no(cell_at(row, index))] += 1
    return counts


def ess_participation_stats(rows: Rows, schema: Schema) -> dict[str, int]:
    """Offline participation split into yes/no/unknown, percentages over all rows."""
    stats = {
        "yes": 0,
        "no": 0,
        "unknown": 0,
        "total": 0,
        "yes_percentage": 0,
        "no_percentage": 0,
        "unknown_percentage": 0,
    }
    if schema.ess_offline < 0 or not rows:
        return stats

    counts = yes_no_counts(rows, schema.ess_offline)
    total = len(rows)
    stats.update(
        yes=counts[YES],
        no=counts[NO],
        unknown=counts[UNKNOWN],
        total=total,
        yes_percentage=percentage(counts[YES], total),
        no_percentage=percentage(counts[NO], total),
        unknown_percentage=percentage(counts[UNKNOWN], total),
    )
    return stats


def monthly_ess_stats(rows: Rows, schema: Schema) -> list[dict[str, Any]]:
    """Offline participation per month, months in first-seen order."""
    if schema.month < 0 or schema.ess_offline < 0 or not rows:
        return []

    grouped: dict[str, list[Sequence[Cell]]] = {}
    for row in rows:
        grouped.setdefault(_bucket(row, schema.month), []).append(row)

    stats = []
    for month, month_rows in grouped.items():
        counts = yes_no_counts(month_rows, schema.ess_offline)
        total = len(month_rows)
        stats.append(
            {
                "month": month,
                "yes": counts[YES],
                "no": counts[NO],
                "unknown": counts[UNKNOWN],
                "total": total,
                "yes_percentage": percentage(counts[YES], total),
                "no_percentage": percentage(counts[NO], total),
            }
        )
    return stats


def cancellation_stats(rows: Rows, schema: Schema) -> dict[str, int]:
    stats = {
        "cancelled": 0,
        "not_cancelled": 0,
        "total": 0,
        "cancelled_percentage": 0,
        "not_cancelled_percentage": 0,
    }
    if schema.cancellation < 0 or not rows:
        return stats

    cancelled = sum(1 for row in rows if is_cancelled(cell_at(row, schema.cancellation)))
    total = len(rows)
    stats.update(
        cancelled=cancelled,
        not_cancelled=total - cancelled,
        total=total,
        cancelled_percentage=percentage(cancelled, total),
        not_cancelled_percentage=percentage(total - cancelled, total),
    )
    return stats


def ess_name_ranking(rows: Rows, schema: Schema) -> list[dict[str, Any]]:
    """
    Per-person meeting counts, busiest first.

    offline_yes counts rows where the person must attend in person; online_no
    counts rows where online attendance is not required. The two flags are
    independent columns, not complements of each other.
    """
    if schema.ess_name < 0 or (schema.ess_offline < 0 and schema.ess_online < 0):
        return []

    people: dict[str, dict[str, Any]] = {}
    for row in rows:
        name = cell_text(cell_at(row, schema.ess_name)).strip()
        if not name:
            continue
        entry = people.setdefault(name, {"name": name, "offline_yes": 0, "online_no": 0, "total": 0})
        entry["total"] += 1
        if schema.ess_offline >= 0 and normalize_yes_no(cell_at(row, schema.ess_offline)) == YES:
            entry["offline_yes"] += 1
        if schema.ess_online >= 0 and normalize_yes_no(cell_at(row, schema.ess_online)) == NO:
            entry["online_no"] += 1

    return sorted(
        people.values(),
        key=lambda entry: (entry["offline_yes"], entry["online_no"], entry["total"]),
        reverse=True,
    )


# ══════════════════════════════════════════════════════════════════════════════
# DISTINCT VALUES / ORDERING
# ══════════════════════════════════════════════════════════════════════════════

def distinct_values(rows: Rows, index: int) -> list[str]:
    """Trimmed, non-empty, de-duplicated values in first-seen order."""
    if index < 0:
        return []
    seen: dict[str, None] = {}
    for row in rows:
        text = cell_text(cell_at(row, index)).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def month_sort_key(month: str) -> tuple[int, int, str]:
    rank = MONTH_ORDER.get(month)
    if rank is None:
        return (1, 0, month)
    return (0, rank, "")


def sort_months(months: Iterable[str]) -> list[str]:
    return sorted(months, key=month_sort_key)


def extract_years(rows: Rows, schema: Schema) -> list[str]:
    """
    Distinct years for the year filter.

    Uses the Year column when one is resolved and there are rows. Otherwise
    looks for a trailing four-digit token in month text such as "Dec 2024",
    and falls back to the default pair when nothing turns up.
    """
    if schema.year >= 0 and rows:
        return sorted(distinct_values(rows, schema.year))

    found: set[str] = set()
    if schema.month >= 0:
        for row in rows:
            parts = cell_text(cell_at(row, schema.month)).split(" ")
            if len(parts) > 1:
                token = parts[-1].strip()
                if YEAR_TOKEN_RE.match(token):
                    found.add(token)
    if found:
        return sorted(found)
    return list(DEFAULT_YEARS)


def distinct_lists(rows: Rows, schema: Schema) -> dict[str, list[str]]:
    return {
        "brands": sorted(distinct_values(rows, schema.brand)),
        "months": sort_months(distinct_values(rows, schema.month)),
        "years": extract_years(rows, schema),
        "ess_names": sorted(distinct_values(rows, schema.ess_name)),
        "event_types": sorted(distinct_values(rows, schema.event_type)),
        "regions": sorted(distinct_values(rows, schema.region)),
    }


# ══════════════════════════════════════════════════════════════════════════════
# MONETARY / HEADCOUNT TOTALS
# ══════════════════════════════════════════════════════════════════════════════

def column_total(rows: Rows, index: int) -> dict[str, float]:
    total = 0.0
    counted = 0
    for row in rows:
        number = parse_number(cell_at(row, index))
        if number is None:
            continue
        total += number
        counted += 1
    return {"total": round(total, 2), "counted": counted}


def monetary_totals(rows: Rows, schema: Schema) -> dict[str, Optional[dict[str, float]]]:
    return {
        role: column_total(rows, schema.get(role)) if schema.is_resolved(role) else None
        for role in MONETARY_ROLES
    }


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def compute_aggregates(
    filtered_rows: Rows,
    schema: Schema,
    all_rows: Optional[Rows] = None,
) -> dict[str, Any]:
    """
    Every statistic in one payload.

    Args:
        filtered_rows: Rows that passed the active filters.
        schema:        Resolved (possibly overridden) schema.
        all_rows:      Unfiltered rows used for the distinct lists that feed
                       filter choices. Defaults to filtered_rows.
    """
    source = filtered_rows if all_rows is None else all_rows
    payload = {
        "region_stats": region_distribution(filtered_rows, schema),
        "ess_participation_stats": ess_participation_stats(filtered_rows, schema),
        "monthly_ess_stats": monthly_ess_stats(filtered_rows, schema),
        "cancellation_stats": cancellation_stats(filtered_rows, schema),
        "event_type_stats": event_type_distribution(filtered_rows, schema),
        "ess_name_ranking": ess_name_ranking(filtered_rows, schema),
        "distinct_lists": distinct_lists(source, schema),
        "monetary_totals": monetary_totals(filtered_rows, schema),
    }
    logger.debug(
        "Aggregated %d rows: %d regions, %d event types, %d people",
        len(filtered_rows),
        len(payload["region_stats"]["regions"]),
        len(payload["event_type_stats"]["types"]),
        len(payload["ess_name_ranking"]),
    )
    return payload
