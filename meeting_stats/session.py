"""
Workbook session: the single owner of the loaded sheet, its schema and filters.

Writes go through methods that bump a revision counter for what they changed
(rows, schema or filters). Derived values are memoised against the counters
they depend on, so reads are cheap and a read after any write recomputes.
Load and sheet-switch failures are reported as LoadResult values and leave
the previous state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from meeting_stats import aggregator
from meeting_stats.column_resolver import ResolvedSheet, Schema, detect_columns
from meeting_stats.loader import (
    Workbook,
    WorkbookParseError,
    WorkbookReadError,
    read_workbook,
    read_workbook_file,
)
from meeting_stats.performance import score_team
from meeting_stats.row_filter import FilterState, filter_rows
from meeting_stats.shared import ROLES, Cell
from meeting_stats.sheet_selector import DEFAULT_VIEW, select_sheet

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_PARSE_FAILED = "parse_failed"
STATUS_READ_FAILED = "read_failed"

AUTO_SHEET = "auto"


@dataclass
class LoadResult:
    status: str
    error: Optional[str] = None
    file_name: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class WorkbookSession:
    def __init__(self) -> None:
        self.workbook: Optional[Workbook] = None
        self.sheet_name: Optional[str] = None
        self.view_type: str = DEFAULT_VIEW
        self.resolved: Optional[ResolvedSheet] = None
        self.is_manually_set = False
        self._schema = Schema()
        self._filters = FilterState()
        self._rows_revision = 0
        self._schema_revision = 0
        self._filters_revision = 0
        self._cache: dict[str, tuple[tuple[int, ...], Any]] = {}

    # ── loading ────────────────────────────────────────────────────────────────

    def load_file(self, path: "str | Path", view_type: str = DEFAULT_VIEW) -> LoadResult:
        path = Path(path)
        try:
            workbook = read_workbook_file(path)
        except WorkbookReadError as exc:
            logger.error("Read failed for %s: %s", path, exc)
            return LoadResult(status=STATUS_READ_FAILED, error=str(exc), file_name=path.name)
        except WorkbookParseError as exc:
            logger.error("Parse failed for %s: %s", path, exc)
            return LoadResult(status=STATUS_PARSE_FAILED, error=str(exc), file_name=path.name)
        return self._install(workbook, None, view_type)

    def load_bytes(self, data: bytes, file_name: str, view_type: str = DEFAULT_VIEW) -> LoadResult:
        if data is None:
            return LoadResult(status=STATUS_READ_FAILED, error="No data received", file_name=file_name)
        try:
            workbook = read_workbook(data, file_name)
        except WorkbookParseError as exc:
            logger.error("Parse failed for %s: %s", file_name, exc)
            return LoadResult(status=STATUS_PARSE_FAILED, error=str(exc), file_name=file_name)
        return self._install(workbook, None, view_type)

    def switch_sheet(self, sheet_name: Optional[str] = AUTO_SHEET, view_type: Optional[str] = None) -> LoadResult:
        """Re-resolve against another sheet of the loaded workbook. Manual overrides are dropped."""
        if self.workbook is None:
            return LoadResult(status=STATUS_READ_FAILED, error="No workbook loaded")
        return self._install(self.workbook, sheet_name, view_type or self.view_type)

    def _install(self, workbook: Workbook, requested: Optional[str], view_type: str) -> LoadResult:
        warnings = list(workbook.warnings)
        if requested and requested != AUTO_SHEET and workbook.has_sheet(requested):
            chosen = requested
        else:
            if requested and requested != AUTO_SHEET:
                message = f"Sheet {requested!r} not found; selected automatically"
                logger.warning(message)
                warnings.append(message)
            chosen = select_sheet(workbook.sheet_names, view_type)

        if chosen is None:
            return LoadResult(
                status=STATUS_PARSE_FAILED,
                error=f"{workbook.file_name} contains no sheets",
                file_name=workbook.file_name,
            )

        resolved = detect_columns(workbook.rows(chosen), sheet_name=chosen)
        if not resolved.headers:
            warnings.append(f"Sheet {chosen!r} is empty")

        self.workbook = workbook
        self.sheet_name = chosen
        self.view_type = view_type
        self.resolved = resolved
        self._schema = resolved.schema
        self.is_manually_set = False
        self._rows_revision += 1
        self._schema_revision += 1

        logger.info("Active sheet %r: %d data rows, %d roles resolved", chosen, len(resolved.rows), len(resolved.schema.resolved_roles()))
        return LoadResult(
            status=STATUS_OK,
            file_name=workbook.file_name,
            sheet_name=chosen,
            sheet_names=list(workbook.sheet_names),
            warnings=warnings,
        )

    # ── schema ─────────────────────────────────────────────────────────────────

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def auto_schema(self) -> Schema:
        return self.resolved.schema if self.resolved else Schema()

    @property
    def headers(self) -> list[str]:
        return self.resolved.headers if self.resolved else []

    @property
    def rows(self) -> list[list[Cell]]:
        return self.resolved.rows if self.resolved else []

    @property
    def sheet_names(self) -> list[str]:
        return list(self.workbook.sheet_names) if self.workbook else []

    def apply_manual_columns(self, **partial: Any) -> bool:
        """Override any subset of roles. Returns False when nothing valid was given."""
        valid: dict[str, int] = {}
        for role, index in partial.items():
            if role not in ROLES:
                logger.warning("Ignoring override for unknown role %r", role)
                continue
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                logger.warning("Ignoring override %s=%r", role, index)
                continue
            valid[role] = index
        if not valid:
            return False

        self._schema = self._schema.with_overrides(valid)
        self.is_manually_set = True
        self._schema_revision += 1
        logger.info("Manual column overrides applied: %s", valid)
        return True

    def reset_to_auto_schema(self) -> None:
        self._schema = self.auto_schema
        self.is_manually_set = False
        self._schema_revision += 1

    @property
    def is_column_mapping_complete(self) -> bool:
        return self._schema.is_resolved("month") and self._schema.is_resolved("region")

    # ── filters ────────────────────────────────────────────────────────────────

    @property
    def filters(self) -> FilterState:
        return self._filters

    def update_filters(self, **changes: Any) -> FilterState:
        updated = self._filters.updated(**changes)
        if updated != self._filters:
            self._filters = updated
            self._filters_revision += 1
        return self._filters

    def reset_filters(self) -> FilterState:
        if not self._filters.is_default():
            self._filters = FilterState()
            self._filters_revision += 1
        return self._filters

    # ── derived values ─────────────────────────────────────────────────────────

    def _memo(self, name: str, depends: Sequence[int], compute: Callable[[], Any]) -> Any:
        key = tuple(depends)
        cached = self._cache.get(name)
        if cached is not None and cached[0] == key:
            return cached[1]
        value = compute()
        self._cache[name] = (key, value)
        return value

    def _rows_schema(self) -> tuple[int, int]:
        return (self._rows_revision, self._schema_revision)

    def _all_inputs(self) -> tuple[int, int, int]:
        return (self._rows_revision, self._schema_revision, self._filters_revision)

    @property
    def filtered_rows(self) -> list[Sequence[Cell]]:
        return self._memo("filtered_rows", self._all_inputs(), lambda: filter_rows(self.rows, self._schema, self._filters))

    def _filtered_stat(self, name: str, fn: Callable[[Any, Schema], Any]) -> Any:
        return self._memo(name, self._all_inputs(), lambda: fn(self.filtered_rows, self._schema))

    @property
    def region_stats(self) -> dict[str, Any]:
        return self._filtered_stat("region_stats", aggregator.region_distribution)

    @property
    def event_type_stats(self) -> dict[str, Any]:
        return self._filtered_stat("event_type_stats", aggregator.event_type_distribution)

    @property
    def ess_participation_stats(self) -> dict[str, int]:
        return self._filtered_stat("ess_participation_stats", aggregator.ess_participation_stats)

    @property
    def monthly_ess_stats(self) -> list[dict[str, Any]]:
        return self._filtered_stat("monthly_ess_stats", aggregator.monthly_ess_stats)

    @property
    def cancellation_stats(self) -> dict[str, int]:
        return self._filtered_stat("cancellation_stats", aggregator.cancellation_stats)

    @property
    def ess_name_ranking(self) -> list[dict[str, Any]]:
        return self._filtered_stat("ess_name_ranking", aggregator.ess_name_ranking)

    @property
    def monetary_totals(self) -> dict[str, Any]:
        return self._filtered_stat("monetary_totals", aggregator.monetary_totals)

    @property
    def team_performance(self) -> list[dict[str, Any]]:
        return self._memo("team_performance", self._all_inputs(), lambda: score_team(self.ess_name_ranking))

    @property
    def distinct_lists(self) -> dict[str, list[str]]:
        return self._memo("distinct_lists", self._rows_schema(), lambda: aggregator.distinct_lists(self.rows, self._schema))

    @property
    def brands(self) -> list[str]:
        return self.distinct_lists["brands"]

    @property
    def months(self) -> list[str]:
        return self.distinct_lists["months"]

    @property
    def years(self) -> list[str]:
        return self.distinct_lists["years"]

    @property
    def ess_names(self) -> list[str]:
        return self.distinct_lists["ess_names"]

    @property
    def event_types(self) -> list[str]:
        return self.distinct_lists["event_types"]

    @property
    def regions(self) -> list[str]:
        return self.distinct_lists["regions"]

    @property
    def aggregates(self) -> dict[str, Any]:
        def build() -> dict[str, Any]:
            return {
                "region_stats": self.region_stats,
                "ess_participation_stats": self.ess_participation_stats,
                "monthly_ess_stats": self.monthly_ess_stats,
                "cancellation_stats": self.cancellation_stats,
                "event_type_stats": self.event_type_stats,
                "ess_name_ranking": self.ess_name_ranking,
                "distinct_lists": self.distinct_lists,
                "monetary_totals": self.monetary_totals,
            }

        return self._memo("aggregates", self._all_inputs(), build)
