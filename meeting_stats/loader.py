"""
loader.py: workbook decoding for meeting-stats

Supports: .xlsx .xlsm .xls .ods .csv .tsv .txt

Public API:
    workbook = read_workbook_file("path/to/meetings.xlsx")
    rows     = workbook.rows(workbook.sheet_names[0])

Every sheet comes back as a list of rows, every cell as str | int | float | None.
Nothing here knows about headers or roles; that is the resolver's job.

Raises:
    WorkbookReadError   the bytes could not be obtained (missing path, I/O error)
    WorkbookParseError  the bytes could not be decoded into sheets
"""

from __future__ import annotations

import csv
import datetime as _dt
import io
import logging
import math
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd

from meeting_stats.shared import PLAIN_NUMBER_RE, Cell

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS     = {".csv", ".tsv", ".txt"}
OPENXML_FORMATS  = {".xlsx", ".xlsm"}
LEGACY_FORMATS   = {".xls"}
ODS_FORMATS      = {".ods"}
ALL_FORMATS      = TEXT_FORMATS | OPENXML_FORMATS | LEGACY_FORMATS | ODS_FORMATS

MAX_WORKBOOK_BYTES = 50 * 1024 * 1024
MAX_BYTES_ENV = "MEETING_STATS_MAX_BYTES"


class SheetLoadError(Exception):
    """Base class for workbook loading failures."""


class WorkbookReadError(SheetLoadError):
    """The input bytes could not be read."""


class WorkbookParseError(SheetLoadError):
    """The input bytes were read but could not be decoded into sheets."""


@dataclass
class Workbook:
    file_name: str
    detected_format: str
    sheet_names: list[str]
    sheets: dict[str, list[list[Cell]]]
    detected_encoding: Optional[str] = None
    delimiter: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def rows(self, sheet_name: str) -> list[list[Cell]]:
        return self.sheets.get(sheet_name, [])

    def has_sheet(self, sheet_name: Optional[str]) -> bool:
        return sheet_name is not None and sheet_name in self.sheets


def max_workbook_bytes() -> int:
    override = os.environ.get(MAX_BYTES_ENV)
    if override:
        try:
            return int(override)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", MAX_BYTES_ENV, override)
    return MAX_WORKBOOK_BYTES


# ══════════════════════════════════════════════════════════════════════════════
# CELL NORMALIZATION
# ══════════════════════════════════════════════════════════════════════════════

def normalize_cell(value: Any) -> Cell:
    """Coerce a decoded cell to str | int | float | None."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.replace("\x00", "")
        return text if text else None
    if pd.api.types.is_bool(value):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (pd.Timestamp, _dt.datetime)):
        if pd.isna(value):
            return None
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (_dt.date, _dt.time)):
        return value.isoformat()
    if pd.api.types.is_integer(value):
        return int(value)
    if pd.api.types.is_float(value):
        number = float(value)
        if math.isnan(number):
            return None
        return int(number) if number.is_integer() else number
    if pd.isna(value):
        return None
    return str(value)


def coerce_text_cell(text: str) -> Cell:
    """Turn numeric-looking delimited text into numbers, the way workbooks store them."""
    stripped = text.replace("\x00", "").strip()
    if not stripped:
        return None
    if PLAIN_NUMBER_RE.fullmatch(stripped):
        number = float(stripped)
        if "." not in stripped and number.is_integer():
            return int(stripped)
        return number
    return text.replace("\x00", "")


def trim_row(row: list[Cell]) -> list[Cell]:
    end = len(row)
    while end and (row[end - 1] is None or (isinstance(row[end - 1], str) and not row[end - 1].strip())):
        end -= 1
    return row[:end]


def tidy_rows(rows: list[list[Cell]]) -> list[list[Cell]]:
    """Trim trailing empty cells and drop rows with nothing left."""
    tidied = (trim_row(row) for row in rows)
    return [row for row in tidied if row]


def frame_to_rows(df: pd.DataFrame) -> list[list[Cell]]:
    return tidy_rows([[normalize_cell(value) for value in record] for record in df.itertuples(index=False, name=None)])


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """
    Detect encoding from raw bytes.

    Returns dict with: detected, confidence, is_utf8, suspicious_chars.
    """
    result     = chardet.detect(raw)
    detected   = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)

    is_utf8 = detected.upper().replace("-", "") in ("UTF8", "UTF8SIG", "ASCII")

    suspicious: list[str] = []
    if not is_utf8:
        for row_idx, line in enumerate(raw.split(b"\n")[:100], start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as e:
                bad_byte = line[e.start : e.end]
                suspicious.append(
                    f"row {row_idx}: byte {bad_byte!r} at position {e.start}"
                )

    return {
        "detected":         detected,
        "confidence":       confidence,
        "is_utf8":          is_utf8,
        "suspicious_chars": suspicious[:10],
    }


# ══════════════════════════════════════════════════════════════════════════════
# SAFE TEXT READING (mixed-encoding tolerant)
# ══════════════════════════════════════════════════════════════════════════════

def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result, e.g. GB18030 exports)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Also strips embedded null bytes and a leading BOM.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer CSV delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [l for l in text.splitlines() if l.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            sniffed = csv.Sniffer().sniff(sample, delimiters=",;\t|")
            return sniffed.delimiter
        except csv.Error:
            pass

    candidates  = [",", ";", "\t", "|"]
    best_delim  = ","
    best_score  = float("-inf")
    best_width  = 0
    sample_text = "\n".join(sample_lines[:120])

    for delim in candidates:
        rows = [
            row
            for row in csv.reader(io.StringIO(sample_text), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue

        widths       = [len(row) for row in rows]
        mode_width, mode_count = Counter(widths).most_common(1)[0]
        consistency  = mode_count / len(widths)

        score = (mode_width * 2.0) + (consistency * mode_width)
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0

        if score > best_score or (score == best_score and mode_width > best_width):
            best_score = score
            best_width = mode_width
            best_delim = delim

    return best_delim


def _validate_txt_table(rows: list[list[str]]) -> None:
    """Reject .txt files that are prose rather than delimited data."""
    if len(rows) < 2:
        raise WorkbookParseError(
            ".txt file does not appear to contain delimited/tabular data "
            "(need at least 2 non-empty rows)"
        )
    if sum(1 for row in rows if len(row) > 1) < 2:
        raise WorkbookParseError(
            ".txt file does not appear to contain delimited/tabular data "
            "(fewer than 2 rows contain multiple fields)"
        )


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(data: bytes, file_name: str, suffix: str) -> Workbook:
    enc_info = _detect_encoding_info(data)
    enc      = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text     = _read_text_safely(data, enc)

    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    try:
        parsed = [row for row in csv.reader(io.StringIO(text), delimiter=delimiter) if any(c.strip() for c in row)]
    except csv.Error as exc:
        raise WorkbookParseError(f"Could not parse {suffix} file: {exc}") from exc

    if suffix == ".txt":
        _validate_txt_table(parsed)

    warnings: list[str] = []
    if enc_info["suspicious_chars"]:
        warnings.append(
            f"Detected {enc} encoding with {len(enc_info['suspicious_chars'])} non-UTF-8 lines; "
            "decoded line by line"
        )

    sheet_name = Path(file_name).stem or "Sheet1"
    rows = tidy_rows([[coerce_text_cell(cell) for cell in row] for row in parsed])
    return Workbook(
        file_name=file_name,
        detected_format=suffix.lstrip("."),
        sheet_names=[sheet_name],
        sheets={sheet_name: rows},
        detected_encoding=enc,
        delimiter=delimiter,
        warnings=warnings,
    )


def _require_engine(suffix: str) -> Optional[str]:
    """Return the pandas engine for a workbook suffix, failing clearly if it is not installed."""
    if suffix in LEGACY_FORMATS:
        try:
            import xlrd  # noqa: F401
        except ImportError as exc:
            raise WorkbookParseError(".xls files require xlrd; run: pip install xlrd") from exc
        return "xlrd"
    if suffix in ODS_FORMATS:
        try:
            import odf  # noqa: F401
        except ImportError as exc:
            raise WorkbookParseError(".ods files require odfpy; run: pip install odfpy") from exc
        return "odf"
    return "openpyxl"


def _load_spreadsheet(data: bytes, file_name: str, suffix: str) -> Workbook:
    engine = _require_engine(suffix)
    try:
        frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, engine=engine)
    except Exception as exc:
        raise WorkbookParseError(f"Could not open workbook {file_name}: {exc}") from exc

    if not frames:
        raise WorkbookParseError(f"Workbook {file_name} contains no sheets")

    sheets = {str(name): frame_to_rows(frame) for name, frame in frames.items()}
    return Workbook(
        file_name=file_name,
        detected_format=suffix.lstrip("."),
        sheet_names=list(sheets),
        sheets=sheets,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def read_workbook(data: bytes, file_name: str) -> Workbook:
    """
    Decode an in-memory workbook.

    Args:
        data:      Complete file contents.
        file_name: Original file name; only its suffix and stem are used.

    Raises:
        WorkbookParseError for unsupported formats, oversized input or
        content that cannot be decoded.
    """
    suffix = Path(file_name).suffix.lower()
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise WorkbookParseError(
            f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}"
        )

    limit = max_workbook_bytes()
    if len(data) > limit:
        raise WorkbookParseError(f"{file_name} is {len(data)} bytes; the limit is {limit}")
    if not data:
        raise WorkbookParseError(f"{file_name} is empty")

    if suffix in TEXT_FORMATS:
        workbook = _load_text(data, file_name, suffix)
    else:
        workbook = _load_spreadsheet(data, file_name, suffix)

    logger.info(
        "Decoded %s (%s): %d sheet(s) %s",
        file_name,
        workbook.detected_format,
        len(workbook.sheet_names),
        workbook.sheet_names,
    )
    return workbook


def read_workbook_file(path: "str | Path") -> Workbook:
    path = Path(path)
    if not path.exists():
        raise WorkbookReadError(f"File not found: {path}")
    if path.is_dir():
        raise WorkbookReadError(f"Not a file: {path}")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise WorkbookReadError(f"Could not read {path}: {exc}") from exc
    return read_workbook(data, path.name)
