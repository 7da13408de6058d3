"""
Column role resolution (schema inference) for loosely structured meeting sheets.

Each semantic role (month, region, ESS participation flags, ...) is located by
an ordered chain of matchers. A matcher looks at the sheet and returns a column
index or None; the first matcher that answers wins and records its tier.

    A   strict header triggers           every role, against the header row
    B   strict triggers on data row 0    every role, only if A found nothing,
                                         promotes that row to header
    A2  loose header keywords            month, region, event_type, ess_online,
                                         ess_name, cancellation, travel_cost
    C   content scoring                  event_type, ess_online, cancellation
    D   fixed position                   brand only (column J)

Tier B is global: it runs once per sheet, and only when Tier A resolved no
role at all. Everything after B runs per role for roles still unresolved.
An unresolved role is a normal outcome and is reported as UNRESOLVED (-1).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Mapping, Optional, Sequence

from meeting_stats.header_detector import render_header_row, sheet_width, split_header
from meeting_stats.shared import (
    BRAND_FALLBACK_INDEX,
    CANCELLATION_MARKER,
    CANCELLATION_SCAN_ROWS,
    EVENT_TYPE_DATE_HEADER_PENALTY,
    EVENT_TYPE_DATE_PENALTY,
    EVENT_TYPE_EXACT_POINTS,
    EVENT_TYPE_KEYWORDS,
    EVENT_TYPE_MIN_SCORE,
    EVENT_TYPE_PARTIAL_POINTS,
    EVENT_TYPE_SCAN_ROWS,
    NO,
    ROLES,
    UNRESOLVED,
    YES,
    YES_NO_MIN_FILL,
    YES_NO_MIN_RATIO,
    YES_NO_SCAN_ROWS,
    Cell,
    cell_at,
    cell_text,
    is_blank,
    looks_like_date_text,
    normalize_yes_no,
)

logger = logging.getLogger(__name__)

TIER_HEADER = "header"
TIER_FIRST_ROW = "first-row"
TIER_LOOSE_HEADER = "loose-header"
TIER_CONTENT = "content"
TIER_POSITION = "position"
TIER_MANUAL = "manual"

TRAVEL_SHEET_KEYWORD = "会议差旅"

Predicate = Callable[[str], bool]


# ══════════════════════════════════════════════════════════════════════════════
# SCHEMA
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Schema:
    """Role → zero-based column index, or UNRESOLVED."""

    year: int = UNRESOLVED
    month: int = UNRESOLVED
    region: int = UNRESOLVED
    brand: int = UNRESOLVED
    ess_name: int = UNRESOLVED
    ess_offline: int = UNRESOLVED
    ess_online: int = UNRESOLVED
    cancellation: int = UNRESOLVED
    event_type: int = UNRESOLVED
    budget: int = UNRESOLVED
    travel_cost: int = UNRESOLVED
    speaker_contract: int = UNRESOLVED
    sanofi_paid_speaker: int = UNRESOLVED
    speaker_fee: int = UNRESOLVED

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> "Schema":
        return cls(**{role: index for role, index in mapping.items() if role in ROLES})

    def get(self, role: str) -> int:
        if role not in ROLES:
            raise KeyError(f"Unknown role: {role}")
        return getattr(self, role)

    def is_resolved(self, role: str) -> bool:
        return self.get(role) >= 0

    def resolved_roles(self) -> list[str]:
        return [role for role in ROLES if self.is_resolved(role)]

    def as_dict(self) -> dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def with_overrides(self, overrides: Mapping[str, int]) -> "Schema":
        return replace(self, **{role: index for role, index in overrides.items() if role in ROLES})

    def shared_columns(self) -> dict[int, list[str]]:
        """Columns claimed by more than one role. Tolerated, but worth surfacing."""
        owners: dict[int, list[str]] = defaultdict(list)
        for role in ROLES:
            index = self.get(role)
            if index >= 0:
                owners[index].append(role)
        return {index: roles for index, roles in owners.items() if len(roles) > 1}


@dataclass
class ResolvedSheet:
    headers: list[str]
    rows: list[list[Cell]]
    schema: Schema
    tiers: dict[str, str] = field(default_factory=dict)
    header_detected: bool = False
    promoted_first_row: bool = False
    sheet_name: Optional[str] = None

    @property
    def width(self) -> int:
        return len(self.headers)

    def header_for(self, role: str) -> Optional[str]:
        index = self.schema.get(role)
        if 0 <= index < len(self.headers):
            return self.headers[index]
        return None


@dataclass
class SheetView:
    """What a matcher is allowed to look at."""

    headers: list[str]
    rows: list[list[Cell]]
    sheet_name: Optional[str] = None

    @property
    def width(self) -> int:
        return len(self.headers)


# ══════════════════════════════════════════════════════════════════════════════
# PREDICATE BUILDERS
# ══════════════════════════════════════════════════════════════════════════════

def equals(*options: str) -> Predicate:
    return lambda text: text in options


def lower_equals(*options: str) -> Predicate:
    return lambda text: text.lower() in options


def contains(*needles: str) -> Predicate:
    return lambda text: any(needle in text for needle in needles)


def lower_contains(*needles: str) -> Predicate:
    return lambda text: any(needle in text.lower() for needle in needles)


def lower_contains_all(*needles: str) -> Predicate:
    return lambda text: all(needle in text.lower() for needle in needles)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda text: any(predicate(text) for predicate in predicates)


def excluding(predicate: Predicate, *needles: str) -> Predicate:
    return lambda text: predicate(text) and not any(needle in text.lower() for needle in needles)


# Each role maps to predicates in priority order. A later predicate is only
# consulted when no header cell satisfies the earlier ones.
STRICT_TRIGGERS: dict[str, tuple[Predicate, ...]] = {
    "year": (any_of(lower_equals("year", "fiscal year", "fy"), contains("年份")),),
    "month": (lower_equals("month"),),
    "region": (lower_equals("region"),),
    "brand": (any_of(lower_equals("brand", "team"), lower_contains("brand/team", "brand", "team")),),
    "ess_name": (any_of(lower_equals("ess name"), lower_contains_all("ess", "name")),),
    "ess_offline": (
        any_of(equals("是否需要ESS线下参会"), lower_contains("ess参会", "线下参会", "ess线下")),
    ),
    "ess_online": (
        any_of(equals("是否需要ESS线上参会"), lower_contains("ess线上", "线上参会")),
    ),
    "cancellation": (any_of(contains("取消"), lower_contains("cancel")),),
    "event_type": (
        any_of(
            lower_equals("event type"),
            lower_contains("event type (campaign"),
            lower_contains_all("campaign", "one time", "sub event"),
            contains("Event Taxonomy"),
            contains("会议种类"),
        ),
    ),
    "budget": (
        equals("会议申请金额含税"),
        any_of(contains("会议申请金额", "申请金额"), lower_contains("amount")),
    ),
    "travel_cost": (contains("结算-差旅总", "结算—差旅总", "结算-总计", "结算—总计"),),
    "speaker_contract": (
        any_of(
            lower_contains("# of speaker contract", "speaker contract", "speakers"),
            contains("贡献者人数", "演讲者数量"),
        ),
    ),
    "sanofi_paid_speaker": (
        any_of(
            lower_contains("# of sanofi paid speaker", "sanofi paid speaker"),
            contains("赛诺菲支付贡献者", "赛诺菲贡献者"),
        ),
    ),
    "speaker_fee": (
        any_of(
            lower_contains("total speaker fee by sanofi", "speaker fee"),
            contains("劳务金额", "赛诺菲支付劳务"),
        ),
    ),
}

LOOSE_TRIGGERS: dict[str, tuple[Predicate, ...]] = {
    "month": (any_of(lower_contains("month", "月"), lower_equals("m")),),
    "region": (any_of(lower_contains("region", "区域", "地区"), lower_equals("r")),),
    "event_type": (
        excluding(
            any_of(lower_contains("event type"), lower_contains_all("event", "type")),
            "start",
            "date",
            "日期",
        ),
    ),
    "ess_online": (
        any_of(
            contains("ESS线上", "线上参会", "线上参加"),
            lower_contains("participation", "attend", "meeting"),
        ),
    ),
    "ess_name": (lower_contains("ess", "name", "人员", "人名"),),
    "cancellation": (any_of(contains("状态"), lower_contains("status", "state")),),
}

TRAVEL_SETTLEMENT_TRIGGER: Predicate = excluding(
    lambda text: "结算" in text and any(word in text for word in ("总计", "总额", "合计", "差旅")),
    "计划",
)


def find_header(cells: Sequence[str], predicates: Sequence[Predicate]) -> Optional[int]:
    """Return the first cell index satisfying the highest-priority predicate."""
    normalized = [(cell or "").strip() for cell in cells]
    for predicate in predicates:
        for index, text in enumerate(normalized):
            if text and predicate(text):
                return index
    return None


def match_strict_triggers(cells: Sequence[str]) -> dict[str, int]:
    found: dict[str, int] = {}
    for role in ROLES:
        index = find_header(cells, STRICT_TRIGGERS[role])
        if index is not None:
            found[role] = index
    return found


# ══════════════════════════════════════════════════════════════════════════════
# FALLBACK MATCHERS (tiers A2, C, D)
# ══════════════════════════════════════════════════════════════════════════════

Matcher = Callable[[SheetView], Optional[int]]


def loose_header_matcher(role: str) -> Matcher:
    predicates = LOOSE_TRIGGERS[role]

    def matcher(sheet: SheetView) -> Optional[int]:
        return find_header(sheet.headers, predicates)

    return matcher


def match_travel_settlement(sheet: SheetView) -> Optional[int]:
    if not sheet.sheet_name or TRAVEL_SHEET_KEYWORD not in sheet.sheet_name:
        return None
    return find_header(sheet.headers, (TRAVEL_SETTLEMENT_TRIGGER,))


def _best_index(scores: Sequence[float]) -> Optional[int]:
    best: Optional[int] = None
    for index, score in enumerate(scores):
        if best is None or score > scores[best]:
            best = index
    return best


def score_event_type_columns(sheet: SheetView) -> list[int]:
    scores: list[int] = []
    for header in sheet.headers:
        lowered = (header or "").lower()
        penalised = "date" in lowered or "start" in lowered
        scores.append(EVENT_TYPE_DATE_HEADER_PENALTY if penalised else 0)

    for row in sheet.rows[:EVENT_TYPE_SCAN_ROWS]:
        for column in range(sheet.width):
            if scores[column] < 0:
                continue
            value = cell_at(row, column)
            if value is None:
                continue
            text = cell_text(value).strip().lower()
            if text in EVENT_TYPE_KEYWORDS:
                scores[column] += EVENT_TYPE_EXACT_POINTS
            elif any(keyword in text for keyword in EVENT_TYPE_KEYWORDS):
                scores[column] += EVENT_TYPE_PARTIAL_POINTS
            elif looks_like_date_text(text):
                scores[column] -= EVENT_TYPE_DATE_PENALTY
    return scores


def match_event_type_by_content(sheet: SheetView) -> Optional[int]:
    if not sheet.rows or not sheet.width:
        return None
    scores = score_event_type_columns(sheet)
    best = _best_index(scores)
    if best is None or scores[best] <= EVENT_TYPE_MIN_SCORE:
        logger.debug("Event type content scoring inconclusive: best=%s scores=%s", best, scores)
        return None
    logger.debug("Event type resolved by content: column %s score %s", best, scores[best])
    return best


def yes_no_ratios(sheet: SheetView) -> list[Optional[float]]:
    """Per column, the share of sampled values that are yes/no tokens.

    None marks a column too sparse to judge.
    """
    sample = sheet.rows[:YES_NO_SCAN_ROWS]
    ratios: list[Optional[float]] = []
    for column in range(sheet.width):
        yes_no = 0
        filled = 0
        for row in sample:
            value = cell_at(row, column)
            if is_blank(value):
                continue
            filled += 1
            if normalize_yes_no(value) in (YES, NO):
                yes_no += 1
        if not sample or filled < len(sample) * YES_NO_MIN_FILL:
            ratios.append(None)
        else:
            ratios.append(yes_no / filled)
    return ratios


def match_yes_no_column(sheet: SheetView) -> Optional[int]:
    if not sheet.rows:
        return None
    ratios = yes_no_ratios(sheet)
    best: Optional[int] = None
    for index, ratio in enumerate(ratios):
        if ratio is None:
            continue
        if best is None or ratio > ratios[best]:
            best = index
    if best is None or ratios[best] <= YES_NO_MIN_RATIO:
        return None
    return best


def match_cancellation_marker(sheet: SheetView) -> Optional[int]:
    sample = sheet.rows[:CANCELLATION_SCAN_ROWS]
    counts = [0] * sheet.width
    for row in sample:
        for column in range(sheet.width):
            if cell_text(cell_at(row, column)).strip().upper() == CANCELLATION_MARKER:
                counts[column] += 1
    best = _best_index(counts)
    if best is None or counts[best] == 0:
        return None
    return best


def match_brand_position(sheet: SheetView) -> Optional[int]:
    # Compatibility shim for the legacy export where Brand/Team sits in column J
    # under an unrelated header. Not a general rule; review before relying on it.
    if sheet.width > BRAND_FALLBACK_INDEX:
        logger.warning(
            "Brand/Team column not found by name; assuming fixed column index %s (%r)",
            BRAND_FALLBACK_INDEX,
            sheet.headers[BRAND_FALLBACK_INDEX],
        )
        return BRAND_FALLBACK_INDEX
    return None


FALLBACK_CHAINS: dict[str, tuple[tuple[str, Matcher], ...]] = {
    "month": ((TIER_LOOSE_HEADER, loose_header_matcher("month")),),
    "region": ((TIER_LOOSE_HEADER, loose_header_matcher("region")),),
    "event_type": (
        (TIER_LOOSE_HEADER, loose_header_matcher("event_type")),
        (TIER_CONTENT, match_event_type_by_content),
    ),
    "ess_online": (
        (TIER_LOOSE_HEADER, loose_header_matcher("ess_online")),
        (TIER_CONTENT, match_yes_no_column),
    ),
    "ess_name": ((TIER_LOOSE_HEADER, loose_header_matcher("ess_name")),),
    "cancellation": (
        (TIER_LOOSE_HEADER, loose_header_matcher("cancellation")),
        (TIER_CONTENT, match_cancellation_marker),
    ),
    "travel_cost": ((TIER_LOOSE_HEADER, match_travel_settlement),),
    "brand": ((TIER_POSITION, match_brand_position),),
}


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def detect_columns(
    raw_rows: Sequence[Sequence[Cell]],
    sheet_name: Optional[str] = None,
) -> ResolvedSheet:
    """
    Split a raw sheet into headers/data and resolve every role.

    Args:
        raw_rows:   2-D cell array as produced by the workbook loader.
        sheet_name: Active sheet name; only the travel-cost settlement
                    fallback looks at it.

    Returns:
        ResolvedSheet with the final headers (possibly promoted from the
        first data row), the remaining data rows, the Schema and, per
        resolved role, the tier that resolved it.
    """
    headers, rows, header_detected = split_header(raw_rows)
    if not headers:
        return ResolvedSheet(headers=[], rows=[], schema=Schema(), sheet_name=sheet_name)

    found = match_strict_triggers(headers)
    tiers = {role: TIER_HEADER for role in found}
    promoted = False

    if not found and rows:
        width = max(len(headers), sheet_width(rows))
        candidate = render_header_row(rows[0], width)
        found = match_strict_triggers(candidate)
        if found:
            logger.info("No roles matched the header row; promoting first data row to header")
            headers = candidate
            rows = rows[1:]
            promoted = True
            tiers = {role: TIER_FIRST_ROW for role in found}

    sheet = SheetView(headers=headers, rows=rows, sheet_name=sheet_name)
    for role, chain in FALLBACK_CHAINS.items():
        if role in found:
            continue
        for tier, matcher in chain:
            index = matcher(sheet)
            if index is not None:
                found[role] = index
                tiers[role] = tier
                break

    schema = Schema.from_mapping(found)
    for index, roles in schema.shared_columns().items():
        logger.warning("Column %s (%r) matched several roles: %s", index, headers[index], ", ".join(roles))

    unresolved = [role for role in ROLES if role not in found]
    logger.debug("Resolved roles %s; unresolved %s", tiers, unresolved)

    return ResolvedSheet(
        headers=headers,
        rows=rows,
        schema=schema,
        tiers=tiers,
        header_detected=header_detected,
        promoted_first_row=promoted,
        sheet_name=sheet_name,
    )


def resolve_schema(raw_rows: Sequence[Sequence[Cell]], sheet_name: Optional[str] = None) -> Schema:
    return detect_columns(raw_rows, sheet_name=sheet_name).schema


def describe_schema(resolved: ResolvedSheet) -> dict[str, Any]:
    """JSON-friendly view of a resolution, one entry per role."""
    return {
        role: {
            "index": resolved.schema.get(role),
            "header": resolved.header_for(role),
            "tier": resolved.tiers.get(role),
        }
        for role in ROLES
    }
