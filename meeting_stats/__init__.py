"""meeting-stats: schema inference and statistics for loosely structured meeting workbooks."""

from meeting_stats.aggregator import compute_aggregates
from meeting_stats.column_resolver import ResolvedSheet, Schema, detect_columns, resolve_schema
from meeting_stats.performance import score_performance, score_team
from meeting_stats.row_filter import FilterState, filter_rows
from meeting_stats.session import LoadResult, WorkbookSession
from meeting_stats.sheet_selector import select_sheet

__version__ = "0.1.0"

__all__ = [
    "FilterState",
    "LoadResult",
    "ResolvedSheet",
    "Schema",
    "WorkbookSession",
    "compute_aggregates",
    "detect_columns",
    "filter_rows",
    "resolve_schema",
    "score_performance",
    "score_team",
    "select_sheet",
    "__version__",
]
