from __future__ import annotations

import json
import unittest
from datetime import date
from pathlib import Path

from sheet_ledger import __version__
from sheet_ledger.carry_forward import carry_forward
from sheet_ledger.contracts import (
    CONTRACT_VERSIONS,
    carry_forward_payload,
    entries_payload,
    error_payload,
    import_summary_payload,
    quarters_payload,
    suggestions_payload,
)
from sheet_ledger.entries import create_entry, list_entries
from sheet_ledger.importer import import_export
from sheet_ledger.store import EntryStore

ROOT = Path(__file__).resolve().parents[1]
DAILY_SAMPLE = ROOT / "sample-data" / "daily_oktober_2025.tsv"


class ContractTests(unittest.TestCase):
    def setUp(self):
        self.store = EntryStore(":memory:")

    def tearDown(self):
        self.store.close()

    def assertEnvelope(self, payload, name, command):
        self.assertEqual(payload["contract"], {"name": name, "version": CONTRACT_VERSIONS[name]})
        self.assertEqual(payload["schema_version"], payload["contract"]["version"])
        self.assertEqual(payload["tool_version"], __version__)
        self.assertEqual(payload["run_summary"]["tool"], "sheet-ledger")
        self.assertEqual(payload["run_summary"]["command"], command)
        self.assertTrue(payload["run_summary"]["generated_at"].endswith("Z"))
        json.dumps(payload)

    def test_import_summary_reports_counts_and_discards(self):
        result = import_export(self.store, DAILY_SAMPLE.read_bytes(), filename=DAILY_SAMPLE.name, default_date=date(2025, 10, 20))
        payload = import_summary_payload(result, input_file=DAILY_SAMPLE.name)
        self.assertEnvelope(payload, "ledger.import_summary", "import")
        self.assertEqual(payload["created"], 5)
        self.assertEqual(payload["layout"], "daily")
        self.assertEqual(payload["quarters"], ["Q4-2025"])
        self.assertEqual(payload["run_summary"]["metrics"], {"created": 5, "discarded": 2})
        self.assertEqual(payload["run_summary"]["warnings_count"], 2)
        self.assertEqual(payload["run_summary"]["input_file"], DAILY_SAMPLE.name)

    def test_carry_forward_message_covers_zero_and_plural(self):
        empty = carry_forward_payload(carry_forward(self.store, "daily", "Q3-2025", 2025, "Q4-2025", 2025))
        self.assertEnvelope(empty, "ledger.carry_forward", "carry-forward")
        self.assertEqual(empty["count"], 0)
        self.assertIn("No unfinished daily entries", empty["message"])

        create_entry(self.store, "daily", {"entity_name": "Acme", "date": "2025-08-01", "status": "Progress"})
        create_entry(self.store, "daily", {"entity_name": "Beta", "date": "2025-08-02", "status": "Hold"})
        copied = carry_forward_payload(carry_forward(self.store, "daily", "Q3-2025", 2025, "Q4-2025", 2025))
        self.assertEqual(copied["message"], "Copied 2 unfinished daily entries from Q3-2025 to Q4-2025")

    def test_entries_and_quarters_payloads(self):
        create_entry(self.store, "daily", {"entity_name": "Acme", "date": "2025-10-13", "members": "Budi"})
        payload = entries_payload("daily", "Q4-2025", list_entries(self.store, "daily", "Q4-2025"))
        self.assertEnvelope(payload, "ledger.entries", "list")
        entry = payload["entries"][0]
        self.assertEqual(entry["date"], "2025-10-13")
        self.assertEqual(entry["members"], ["Budi"])
        self.assertNotIn("source_line", entry)

        quarters = quarters_payload("daily", [("Q4-2025", 2025)])
        self.assertEnvelope(quarters, "ledger.quarters", "quarters")
        self.assertEqual(quarters["quarters"], [{"quarter": "Q4-2025", "year": 2025}])

    def test_suggestions_and_error_payloads(self):
        suggestions = suggestions_payload("daily", "acm", {"exact": ["Acme"], "similar": []})
        self.assertEnvelope(suggestions, "ledger.suggestions", "suggest")
        self.assertEqual(suggestions["exact"], ["Acme"])

        error = error_payload("import", "header_not_found", "No header")
        self.assertEnvelope(error, "ledger.error", "import")
        self.assertEqual(error["run_summary"]["status"], "failed")
        self.assertEqual(error["error"], {"code": "header_not_found", "message": "No header"})


if __name__ == "__main__":
    unittest.main()
