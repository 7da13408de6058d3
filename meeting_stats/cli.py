from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from meeting_stats import __version__ as TOOL_VERSION
from meeting_stats.column_resolver import describe_schema
from meeting_stats.contracts import attach_contract, build_run_summary
from meeting_stats.performance import score_performance
from meeting_stats.row_filter import CANCELLATION_STATUSES
from meeting_stats.session import STATUS_PARSE_FAILED, STATUS_READ_FAILED, LoadResult, WorkbookSession
from meeting_stats.shared import MONETARY_ROLES, ROLES
from meeting_stats.sheet_selector import DEFAULT_VIEW, TRAVEL_COST_VIEW

TOOL_NAME = "meeting-stats"
VIEW_TYPES = (DEFAULT_VIEW, TRAVEL_COST_VIEW)
DEFAULT_VIEW_ENV = "MEETING_STATS_DEFAULT_VIEW"
SUPPORTED_COLUMNS_SUFFIXES = {".json", ".yml", ".yaml"}

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_READ_FAILED = 3

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class MeetingStatsArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    ensure_parent(path)
    path.write_text(json_dumps(payload), encoding="utf-8")


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def default_view() -> str:
    view = os.environ.get(DEFAULT_VIEW_ENV, DEFAULT_VIEW)
    return view if view in VIEW_TYPES else DEFAULT_VIEW


def exit_code_for_load(result: LoadResult) -> int:
    if result.status == STATUS_READ_FAILED:
        return EXIT_READ_FAILED
    if result.status == STATUS_PARSE_FAILED:
        return EXIT_PARSE_FAILED
    return EXIT_SUCCESS


def open_session(args: argparse.Namespace) -> tuple[WorkbookSession, LoadResult]:
    session = WorkbookSession()
    result = session.load_file(Path(args.input), view_type=args.view)
    if result.ok and getattr(args, "sheet_name", None):
        result = session.switch_sheet(args.sheet_name, view_type=args.view)
    if not result.ok:
        raise CliError(result.error or f"Could not load {args.input}", exit_code_for_load(result))
    for warning in result.warnings:
        emit_human(f"Warning: {warning}", quiet=getattr(args, "quiet", False))
    return session, result


def load_column_overrides(columns_path: Path) -> dict[str, int]:
    if not columns_path.exists():
        raise CliError(f"Column mapping not found: {columns_path}", EXIT_COMMAND_ERROR)
    suffix = columns_path.suffix.lower()
    if suffix not in SUPPORTED_COLUMNS_SUFFIXES:
        raise CliError("Column mapping must be .json, .yml, or .yaml", EXIT_COMMAND_ERROR)
    if suffix in {".yml", ".yaml"}:
        raise CliError("YAML column mappings are not supported yet. Use JSON for now.", EXIT_COMMAND_ERROR)
    try:
        payload = json.loads(columns_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise CliError(f"Could not read column mapping: {exc}", EXIT_COMMAND_ERROR) from exc
    if not isinstance(payload, dict):
        raise CliError("Column mapping root must be a JSON object.", EXIT_COMMAND_ERROR)
    unknown = sorted(key for key in payload if key not in ROLES)
    if unknown:
        raise CliError(f"Unknown roles in column mapping: {', '.join(unknown)}", EXIT_COMMAND_ERROR)
    for role, index in payload.items():
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise CliError(f"Column index for {role} must be a non-negative integer", EXIT_COMMAND_ERROR)
    return payload


# ══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def render_sheets_text(payload: dict[str, Any]) -> str:
    lines = [f"{TOOL_NAME} sheets", f"File: {payload['input']}", f"View: {payload['view']}"]
    for name in payload["sheet_names"]:
        marker = "*" if name == payload["selected_sheet"] else " "
        lines.append(f" {marker} {name}")
    return "\n".join(lines)


def render_schema_text(payload: dict[str, Any]) -> str:
    lines = [
        f"{TOOL_NAME} schema",
        f"File: {payload['input']}",
        f"Sheet: {payload['sheet_name']}",
        f"Header row detected: {'yes' if payload['header_detected'] else 'no'}",
    ]
    if payload["promoted_first_row"]:
        lines.append("First data row promoted to header")
    for role in ROLES:
        entry = payload["columns"][role]
        if entry["index"] < 0:
            lines.append(f"  {role:<20} unresolved")
        else:
            lines.append(f"  {role:<20} #{entry['index']:<3} {entry['header']!r} ({entry['tier']})")
    for index, roles in payload["shared_columns"].items():
        lines.append(f"Column {index} shared by: {', '.join(roles)}")
    return "\n".join(lines)


def _render_distribution(title: str, buckets: dict[str, dict[str, int]]) -> list[str]:
    lines = [f"{title}:"]
    if not buckets:
        lines.append("  (unavailable)")
    for value, entry in sorted(buckets.items(), key=lambda item: -item[1]["count"]):
        lines.append(f"  {value}: {entry['count']} ({entry['percentage']}%)")
    return lines


def render_summary_text(payload: dict[str, Any]) -> str:
    aggregates = payload["aggregates"]
    ess = aggregates["ess_participation_stats"]
    cancel = aggregates["cancellation_stats"]
    lines = [
        f"{TOOL_NAME} summary",
        f"File: {payload['input']}",
        f"Sheet: {payload['sheet_name']}",
        f"Rows: {payload['rows_filtered']} of {payload['rows_total']}",
    ]
    if not payload["mapping_complete"]:
        lines.append("Column mapping incomplete: month and region are required for the full view")
    lines.extend(_render_distribution("Regions", aggregates["region_stats"]["regions"]))
    lines.extend(_render_distribution("Event types", aggregates["event_type_stats"]["types"]))
    lines.append(
        f"ESS offline participation: yes {ess['yes']} ({ess['yes_percentage']}%), "
        f"no {ess['no']} ({ess['no_percentage']}%), unknown {ess['unknown']} ({ess['unknown_percentage']}%)"
    )
    lines.append(
        f"Cancelled: {cancel['cancelled']} ({cancel['cancelled_percentage']}%), "
        f"not cancelled: {cancel['not_cancelled']} ({cancel['not_cancelled_percentage']}%)"
    )
    if aggregates["monthly_ess_stats"]:
        lines.append("Monthly ESS:")
        for entry in aggregates["monthly_ess_stats"]:
            lines.append(f"  {entry['month']}: yes {entry['yes']}, no {entry['no']}, unknown {entry['unknown']}")
    if payload["team_performance"]:
        lines.append("ESS performance:")
        for entry in payload["team_performance"]:
            lines.append(
                f"  {entry['name']}: offline {entry['offline_yes']}, online-no {entry['online_no']}, "
                f"total {entry['total']} -> {entry['formatted_percentage']}"
            )
    for role in MONETARY_ROLES:
        totals = aggregates["monetary_totals"][role]
        if totals is not None:
            lines.append(f"{role}: {totals['total']:,.2f} over {totals['counted']} rows")
    return "\n".join(lines)


def render_score_text(payload: dict[str, Any]) -> str:
    return "\n".join(
        [
            f"Offline score: {payload['offline_score']}",
            f"Online score: {payload['online_score']}",
            f"Total score: {payload['total_score']}",
            f"Performance: {payload['formatted_percentage']}",
        ]
    )


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_sheets(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    session, result = open_session(args)
    payload = {
        "tool": TOOL_NAME,
        "command": "sheets",
        "version": TOOL_VERSION,
        "input": str(input_path),
        "view": args.view,
        "sheet_names": result.sheet_names,
        "selected_sheet": result.sheet_name,
    }
    if args.json:
        run_summary = build_run_summary(
            tool=TOOL_NAME,
            command="sheets",
            input_path=input_path,
            sheet_name=result.sheet_name,
            metrics={"sheet_count": len(result.sheet_names)},
            warnings=result.warnings,
        )
        maybe_emit_json_stdout(attach_contract(payload, "meeting_stats.sheets", run_summary), True)
    else:
        print(render_sheets_text(payload))
    return EXIT_SUCCESS


def schema_payload(session: WorkbookSession, input_path: Path) -> dict[str, Any]:
    resolved = session.resolved
    return {
        "tool": TOOL_NAME,
        "command": "schema",
        "version": TOOL_VERSION,
        "input": str(input_path),
        "sheet_name": session.sheet_name,
        "headers": session.headers,
        "header_detected": resolved.header_detected,
        "promoted_first_row": resolved.promoted_first_row,
        "columns": describe_schema(resolved),
        "shared_columns": {str(index): roles for index, roles in session.schema.shared_columns().items()},
        "mapping_complete": session.is_column_mapping_complete,
    }


def run_schema(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    session, result = open_session(args)
    payload = schema_payload(session, input_path)
    if args.json:
        run_summary = build_run_summary(
            tool=TOOL_NAME,
            command="schema",
            input_path=input_path,
            sheet_name=session.sheet_name,
            metrics={
                "resolved_roles": len(session.schema.resolved_roles()),
                "data_rows": len(session.rows),
            },
            warnings=result.warnings,
        )
        maybe_emit_json_stdout(attach_contract(payload, "meeting_stats.schema", run_summary), True)
    else:
        print(render_schema_text(payload))
    return EXIT_SUCCESS


def run_summary(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    output_path = safe_output_path(Path(args.output)) if args.output else None
    session, result = open_session(args)

    if args.columns:
        overrides = load_column_overrides(Path(args.columns))
        if not session.apply_manual_columns(**overrides):
            raise CliError(f"No usable column overrides in {args.columns}", EXIT_COMMAND_ERROR)

    months = args.month
    if months is not None and len(months) == 1:
        months = months[0]
    try:
        session.update_filters(
            year=args.year,
            month=months,
            brand=args.brand,
            cancellation_status=args.cancellation,
        )
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc

    payload = {
        "tool": TOOL_NAME,
        "command": "summary",
        "version": TOOL_VERSION,
        "input": str(input_path),
        "sheet_name": session.sheet_name,
        "view": session.view_type,
        "filters": session.filters.as_dict(),
        "schema": session.schema.as_dict(),
        "is_manually_set": session.is_manually_set,
        "mapping_complete": session.is_column_mapping_complete,
        "rows_total": len(session.rows),
        "rows_filtered": len(session.filtered_rows),
        "aggregates": session.aggregates,
        "team_performance": session.team_performance,
    }
    run_summary_block = build_run_summary(
        tool=TOOL_NAME,
        command="summary",
        input_path=input_path,
        sheet_name=session.sheet_name,
        output_path=output_path,
        metrics={"rows_total": payload["rows_total"], "rows_filtered": payload["rows_filtered"]},
        warnings=result.warnings,
    )
    payload = attach_contract(payload, "meeting_stats.summary", run_summary_block)

    if output_path:
        write_json(output_path, payload)
        emit_human(f"Summary written: {output_path}", quiet=args.quiet)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_summary_text(payload), quiet=args.quiet)
    return EXIT_SUCCESS


def run_score(args: argparse.Namespace) -> int:
    payload = score_performance(args.offline, args.online)
    if args.json:
        run_summary_block = build_run_summary(tool=TOOL_NAME, command="score", input_path=None)
        maybe_emit_json_stdout(attach_contract(payload, "meeting_stats.score", run_summary_block), True)
    else:
        print(render_score_text(payload))
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = MeetingStatsArgumentParser(prog=TOOL_NAME, description="Schema inference and statistics for meeting workbooks.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    view = default_view()

    sheets = subparsers.add_parser("sheets", help="List sheets and the one a view would use.")
    sheets.add_argument("input", help="Input workbook path")
    sheets.add_argument("--view", choices=VIEW_TYPES, default=view, help="View type used for sheet selection")
    sheets.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    sheets.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    sheets.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    schema = subparsers.add_parser("schema", help="Show which column each role resolved to.")
    schema.add_argument("input", help="Input workbook path")
    schema.add_argument("--sheet", dest="sheet_name", help="Sheet name ('auto' selects by view)")
    schema.add_argument("--view", choices=VIEW_TYPES, default=view, help="View type used for sheet selection")
    schema.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    schema.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    schema.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    summary = subparsers.add_parser("summary", help="Filter rows and print statistics.")
    summary.add_argument("input", help="Input workbook path")
    summary.add_argument("--sheet", dest="sheet_name", help="Sheet name ('auto' selects by view)")
    summary.add_argument("--view", choices=VIEW_TYPES, default=view, help="View type used for sheet selection")
    summary.add_argument("--year", help="Only rows of this year")
    summary.add_argument("--month", nargs="+", help="Only rows of these months")
    summary.add_argument("--brand", help="Only rows of this brand/team")
    summary.add_argument("--cancellation", choices=CANCELLATION_STATUSES, default="all", help="Cancellation status filter")
    summary.add_argument("--columns", help="JSON object of role -> column index overrides")
    summary.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    summary.add_argument("--output", help="Also write the JSON payload to this path")
    summary.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    summary.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    score = subparsers.add_parser("score", help="Score one person's meeting counts.")
    score.add_argument("offline", type=int, help="Offline meetings requiring attendance")
    score.add_argument("online", type=int, help="Meetings not requiring online attendance")
    score.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "sheets":
            return run_sheets(args)
        if args.command == "schema":
            return run_schema(args)
        if args.command == "summary":
            return run_summary(args)
        if args.command == "score":
            return run_score(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
