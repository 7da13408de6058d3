import datetime
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import Workbook

from meeting_stats import loader
from meeting_stats.loader import (
    MAX_BYTES_ENV,
    WorkbookParseError,
    WorkbookReadError,
    normalize_cell,
    read_workbook,
    read_workbook_file,
)


def write_xlsx(path: Path) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = "Meetings"
    ws.append(["Month", "Region", "Start", "Online", "Count", "Notes"])
    ws.append(["May", "East", datetime.date(2024, 5, 12), True, 3, None])
    ws.append([None, None, None, None, None, None])
    ws.append(["Jun", "North", datetime.date(2024, 6, 1), False, 2.5, "moved"])
    notes = wb.create_sheet("说明")
    notes.append(["示例"])
    wb.save(path)
    return path


class WorkbookDecodingTests(unittest.TestCase):
    def test_xlsx_sheets_and_cell_normalization(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = read_workbook_file(write_xlsx(Path(tmpdir) / "meetings.xlsx"))

        self.assertEqual(workbook.detected_format, "xlsx")
        self.assertEqual(workbook.sheet_names, ["Meetings", "说明"])
        rows = workbook.rows("Meetings")
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0], ["Month", "Region", "Start", "Online", "Count", "Notes"])
        # Trailing empty cell trimmed, date rendered as ISO text, bool as TRUE.
        self.assertEqual(rows[1], ["May", "East", "2024-05-12", "TRUE", 3])
        self.assertEqual(rows[2], ["Jun", "North", "2024-06-01", "FALSE", 2.5, "moved"])
        self.assertEqual(workbook.rows("说明"), [["示例"]])
        self.assertEqual(workbook.rows("missing"), [])

    def test_csv_semicolon_with_bom_and_numbers(self):
        data = "\ufeff月份;地区;金额\n5月;华东;1200\n6月;华北;800.5\n\n".encode("utf-8")
        workbook = read_workbook(data, "meetings.csv")
        self.assertEqual(workbook.sheet_names, ["meetings"])
        self.assertEqual(workbook.delimiter, ";")
        self.assertEqual(
            workbook.rows("meetings"),
            [["月份", "地区", "金额"], ["5月", "华东", 1200], ["6月", "华北", 800.5]],
        )

    def test_latin1_csv_is_decoded(self):
        data = "Month,Venue\nMay,Café Royal\n".encode("latin-1")
        workbook = read_workbook(data, "venues.csv")
        self.assertEqual(workbook.rows("venues")[1], ["May", "Café Royal"])

    def test_tsv_uses_tab(self):
        workbook = read_workbook(b"Month\tRegion\nMay\tEast\n", "m.tsv")
        self.assertEqual(workbook.rows("m"), [["Month", "Region"], ["May", "East"]])

    def test_plain_txt_is_rejected(self):
        with self.assertRaisesRegex(WorkbookParseError, "does not appear to contain delimited/tabular data"):
            read_workbook(b"This is a text file.\n", "notes.txt")

    def test_unsupported_suffix(self):
        with self.assertRaisesRegex(WorkbookParseError, "Unsupported format"):
            read_workbook(b"{}", "data.json")

    def test_corrupt_xlsx_is_a_parse_failure(self):
        with self.assertRaisesRegex(WorkbookParseError, "Could not open workbook"):
            read_workbook(b"not-a-zip-file", "broken.xlsx")

    def test_empty_input_is_a_parse_failure(self):
        with self.assertRaises(WorkbookParseError):
            read_workbook(b"", "empty.csv")

    def test_missing_file_is_a_read_failure(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaisesRegex(WorkbookReadError, "File not found"):
                read_workbook_file(Path(tmpdir) / "absent.xlsx")
            with self.assertRaises(WorkbookReadError):
                read_workbook_file(tmpdir)


class LoaderLimitTests(unittest.TestCase):
    def test_size_cap_from_environment(self):
        with mock.patch.dict(os.environ, {MAX_BYTES_ENV: "10"}):
            with self.assertRaisesRegex(WorkbookParseError, "the limit is 10"):
                read_workbook(b"Month,Region\nMay,East\n", "m.csv")

    def test_size_cap_constant_is_patchable(self):
        with mock.patch.dict(os.environ):
            os.environ.pop(MAX_BYTES_ENV, None)
            with mock.patch.object(loader, "MAX_WORKBOOK_BYTES", 5):
                with self.assertRaises(WorkbookParseError):
                    read_workbook(b"Month,Region\n", "m.csv")

    def test_bad_environment_value_is_ignored(self):
        with mock.patch.dict(os.environ, {MAX_BYTES_ENV: "lots"}):
            self.assertEqual(loader.max_workbook_bytes(), loader.MAX_WORKBOOK_BYTES)

    def test_missing_xlrd_raises_clear_error(self):
        original_import = __import__

        def fake_import(name, globals=None, locals=None, fromlist=(), level=0):
            if name == "xlrd":
                raise ImportError("simulated missing xlrd")
            return original_import(name, globals, locals, fromlist, level)

        with mock.patch("builtins.__import__", side_effect=fake_import):
            with self.assertRaisesRegex(WorkbookParseError, r"\.xls files require xlrd"):
                read_workbook(b"not-a-real-xls", "legacy.xls")

    def test_missing_odfpy_raises_clear_error(self):
        original_import = __import__

        def fake_import(name, globals=None, locals=None, fromlist=(), level=0):
            if name == "odf":
                raise ImportError("simulated missing odf")
            return original_import(name, globals, locals, fromlist, level)

        with mock.patch("builtins.__import__", side_effect=fake_import):
            with self.assertRaisesRegex(WorkbookParseError, r"\.ods files require odfpy"):
                read_workbook(b"not-a-real-ods", "sheet.ods")


class NormalizeCellTests(unittest.TestCase):
    def test_scalar_coercions(self):
        self.assertIsNone(normalize_cell(float("nan")))
        self.assertIsNone(normalize_cell(""))
        self.assertEqual(normalize_cell(4.0), 4)
        self.assertEqual(normalize_cell(4.25), 4.25)
        self.assertEqual(normalize_cell(False), "FALSE")
        self.assertEqual(normalize_cell("a\x00b"), "ab")
        self.assertEqual(normalize_cell(datetime.datetime(2024, 5, 1, 9, 30)), "2024-05-01 09:30:00")


if __name__ == "__main__":
    unittest.main()
