"""Pick the workbook sheet a view should read from.

Sheet names in the exported workbooks drift between releases (brackets get
dropped, a period suffix is added, an English name shows up), so matching is
layered: the trusted domain phrase first, progressively looser matches after
it, and keyword guessing only for the travel-cost view.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_VIEW = "default"
TRAVEL_COST_VIEW = "travel-cost"

MEETING_INFO_SHEET = "会议信息统计表【Monthly】"
TRAVEL_COST_SHEET = "会议差旅【Monthly】"

TRAVEL_PRIMARY_KEYWORD = "会议差旅"
TRAVEL_PERIOD_QUALIFIER = "monthly"
TRAVEL_KEYWORDS = ("差旅", "travel", "cost")

BRACKET_CHARS_RE = re.compile(r"[【】\[\]()（）]")

SheetMatcher = Callable[[Sequence[str], str], Optional[str]]


def simplify_sheet_name(name: str) -> str:
    return BRACKET_CHARS_RE.sub("", name).strip()


def _first(sheet_names: Sequence[str], predicate: Callable[[str], bool]) -> Optional[str]:
    for name in sheet_names:
        if name and predicate(name):
            return name
    return None


def match_exact_phrase(sheet_names: Sequence[str], target: str) -> Optional[str]:
    return _first(sheet_names, lambda name: target in name)


def match_simplified_phrase(sheet_names: Sequence[str], target: str) -> Optional[str]:
    simplified = simplify_sheet_name(target)
    if not simplified:
        return None
    return _first(sheet_names, lambda name: simplified in name)


def match_either_direction(sheet_names: Sequence[str], target: str) -> Optional[str]:
    target_lower = target.lower()

    def predicate(name: str) -> bool:
        name_lower = name.lower()
        return target_lower in name_lower or name_lower in target_lower

    return _first(sheet_names, predicate)


def match_travel_keywords(sheet_names: Sequence[str], target: str) -> Optional[str]:
    """Last resort for the travel sheet, whose name is the least consistent."""
    if TRAVEL_PRIMARY_KEYWORD not in target:
        return None
    # First keyword hit in workbook order wins, even over a "会议差旅 ... Monthly" sheet later on.
    keyword_hit = _first(
        sheet_names,
        lambda name: any(keyword in name.lower() for keyword in TRAVEL_KEYWORDS),
    )
    if keyword_hit:
        return keyword_hit
    return _first(
        sheet_names,
        lambda name: TRAVEL_PRIMARY_KEYWORD in name and TRAVEL_PERIOD_QUALIFIER in name.lower(),
    )


SHEET_MATCHERS: tuple[tuple[str, SheetMatcher], ...] = (
    ("exact", match_exact_phrase),
    ("simplified", match_simplified_phrase),
    ("either-direction", match_either_direction),
    ("travel-keyword", match_travel_keywords),
)


def find_matching_sheet(sheet_names: Sequence[str], target: str) -> Optional[str]:
    if not sheet_names:
        return None
    for label, matcher in SHEET_MATCHERS:
        found = matcher(sheet_names, target)
        if found is not None:
            logger.debug("Sheet %r matched %r via %s layer", found, target, label)
            return found
    logger.debug("No sheet matched %r among %s", target, list(sheet_names))
    return None


def target_sheet_for_view(view_type: str) -> str:
    if view_type == TRAVEL_COST_VIEW:
        return TRAVEL_COST_SHEET
    return MEETING_INFO_SHEET


def select_sheet(sheet_names: Sequence[str], view_type: str = DEFAULT_VIEW) -> Optional[str]:
    """Return the sheet a view should use, falling back to the first sheet."""
    names = list(sheet_names or [])
    if not names:
        return None
    chosen = find_matching_sheet(names, target_sheet_for_view(view_type))
    if chosen is None:
        logger.info("No sheet matched view %r; using first sheet %r", view_type, names[0])
        return names[0]
    return chosen
