"""Shared versioned contracts for meeting-stats machine outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTRACT_VERSIONS = {
    "meeting_stats.sheets": "1.0.0",
    "meeting_stats.schema": "1.0.0",
    "meeting_stats.summary": "1.0.0",
    "meeting_stats.score": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_path: Path | None,
    status: str = "ok",
    sheet_name: str | None = None,
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path) if input_path else None,
        "sheet_name": sheet_name,
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def attach_contract(payload: dict[str, Any], name: str, run_summary: dict[str, Any]) -> dict[str, Any]:
    contract = build_contract(name)
    return {
        **payload,
        "contract": contract,
        "schema_version": contract["version"],
        "run_summary": run_summary,
    }
