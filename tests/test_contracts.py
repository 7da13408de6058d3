from __future__ import annotations

import re
import unittest
from pathlib import Path

from meeting_stats.contracts import CONTRACT_VERSIONS, attach_contract, build_contract, build_run_summary


class ContractTests(unittest.TestCase):
    def test_every_contract_has_a_semver(self):
        for name, version in CONTRACT_VERSIONS.items():
            with self.subTest(contract=name):
                self.assertTrue(name.startswith("meeting_stats."))
                self.assertRegex(version, r"^\d+\.\d+\.\d+$")

    def test_unknown_contract_raises(self):
        with self.assertRaises(KeyError):
            build_contract("meeting_stats.nope")

    def test_run_summary_shape(self):
        summary = build_run_summary(
            tool="meeting-stats",
            command="summary",
            input_path=Path("in.xlsx"),
            sheet_name="Sheet1",
            metrics={"rows_total": 3},
            warnings=["one"],
        )
        self.assertEqual(summary["input_file"], "in.xlsx")
        self.assertIsNone(summary["output_file"])
        self.assertEqual(summary["warnings_count"], 1)
        self.assertEqual(summary["status"], "ok")
        self.assertTrue(re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$", summary["generated_at"]))

    def test_attach_contract_keeps_payload(self):
        summary = build_run_summary(tool="meeting-stats", command="score", input_path=None)
        payload = attach_contract({"total_score": 4}, "meeting_stats.score", summary)
        self.assertEqual(payload["total_score"], 4)
        self.assertEqual(payload["contract"], {"name": "meeting_stats.score", "version": "1.0.0"})
        self.assertEqual(payload["schema_version"], "1.0.0")
        self.assertIsNone(payload["run_summary"]["input_file"])
        self.assertEqual(payload["run_summary"]["metrics"], {})


if __name__ == "__main__":
    unittest.main()
