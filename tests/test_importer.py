from __future__ import annotations

import io
import unittest
from datetime import date
from pathlib import Path

from openpyxl import Workbook

from sheet_ledger.errors import HeaderNotFound, NoValidRows, StoreError
from sheet_ledger.importer import import_export
from sheet_ledger.store import EntryStore


ROOT = Path(__file__).resolve().parents[1]
DAILY_SAMPLE = ROOT / "sample-data" / "daily_oktober_2025.tsv"
PROJECT_SAMPLE = ROOT / "sample-data" / "survey_project_2025.tsv"
TODAY = date(2025, 10, 20)


class FailingStore(EntryStore):
    """Writes the first row of a batch, then fails like a full disk would."""

    def insert_many(self, entries):
        entries = list(entries)
        super().insert_many(entries[:1])
        raise StoreError("disk I/O error")


class DailyImportTests(unittest.TestCase):
    def setUp(self):
        self.store = EntryStore(":memory:")

    def tearDown(self):
        self.store.close()

    def import_sample(self, **kwargs):
        return import_export(
            self.store,
            DAILY_SAMPLE.read_bytes(),
            filename=DAILY_SAMPLE.name,
            default_date=kwargs.pop("default_date", TODAY),
            **kwargs,
        )

    def test_sample_export_produces_canonical_entries(self):
        result = self.import_sample()
        self.assertEqual(result.kind, "daily")
        self.assertEqual(result.created, 5)
        self.assertEqual(result.header_row, 4)
        self.assertEqual(result.quarters, ["Q4-2025"])
        self.assertEqual(result.discarded, {"EMPTY": 1, "NO_PAYLOAD": 1})

        by_name = {}
        for entry in self.store.find("daily", quarter="Q4-2025"):
            by_name.setdefault(entry.entity_name, []).append(entry)
        self.assertEqual(
            {name: [e.sequence for e in entries] for name, entries in by_name.items()},
            {"PT Acme Indonesia": [1, 1], "Beta Logistik": [2], "Gamma Mart": [3], "Delta Bank": [4]},
        )

        acme_followup = by_name["PT Acme Indonesia"][1]
        self.assertEqual(acme_followup.service, "NET")
        self.assertEqual(acme_followup.status, "Done")
        self.assertEqual(acme_followup.action, "Remote")

        beta = by_name["Beta Logistik"][0]
        self.assertEqual(beta.date, date(2025, 10, 16))
        self.assertEqual(beta.members, ["Andi", "Rina"])
        self.assertEqual(beta.detail, "Ganti adaptor\nTes ulang kamera")
        self.assertEqual(beta.status, "Done")
        self.assertEqual(beta.action, "Onsite")

        gamma = by_name["Gamma Mart"][0]
        self.assertEqual(gamma.status, "Progress")
        self.assertEqual(gamma.members, ["Sari"])

        delta = by_name["Delta Bank"][0]
        self.assertIsNone(delta.date)
        self.assertEqual(delta.status, "Hold")

    def test_undated_rows_follow_default_date_quarter(self):
        self.import_sample(default_date=date(2026, 1, 5))
        delta = self.store.find("daily", entity_name="Delta Bank")[0]
        self.assertEqual((delta.quarter, delta.year, delta.sequence), ("Q1-2026", 2026, 1))

    def test_reimport_reuses_numbers_for_known_entities(self):
        self.import_sample()
        self.import_sample()
        self.assertEqual(self.store.count("daily"), 10)
        numbers = {(e.entity_name, e.sequence) for e in self.store.find("daily", quarter="Q4-2025")}
        self.assertEqual(len(numbers), 4)
        self.assertEqual(self.store.max_sequence("daily", "Q4-2025"), 4)

    def test_new_entity_in_later_batch_takes_next_number(self):
        self.import_sample()
        late = "\tNo\tCLIENT\tSERVICE\tCASE & ISSUE\tACTION\tDATE\tPIC TIM\tDETAIL ACTION\tSTATUS\n" \
               "\t1\tEpsilon Clinic\tCCTV\tNVR penuh\tRemote\t28 Oktober 2025\tRina\tHapus rekaman\tProgress\n"
        import_export(self.store, late.encode("utf-8"), default_date=TODAY)
        self.assertEqual(self.store.sequence_for("daily", "Q4-2025", "Epsilon Clinic"), 5)

    def test_missing_header_writes_nothing(self):
        raw = ("\n" * 3 + "client\tdate\nAcme\t13 Oktober 2025\n").encode("utf-8")
        with self.assertRaises(HeaderNotFound):
            import_export(self.store, raw, default_date=TODAY)
        self.assertEqual(self.store.count(), 0)

    def test_header_without_rows_is_rejected(self):
        raw = "\tNo\tCLIENT\tSERVICE\n\tJumlah\n".encode("utf-8")
        with self.assertRaises(NoValidRows):
            import_export(self.store, raw, default_date=TODAY)
        self.assertEqual(self.store.count(), 0)

    def test_persistence_failure_leaves_no_partial_batch(self):
        store = FailingStore(":memory:")
        with self.assertRaises(StoreError):
            import_export(store, DAILY_SAMPLE.read_bytes(), default_date=TODAY)
        self.assertEqual(store.count(), 0)
        store.close()

    def test_source_lines_count_sheet_lines_across_multiline_cells(self):
        result = self.import_sample()
        lines = {entry.entity_name: entry.source_line for entry in result.entries}
        self.assertEqual(lines["Beta Logistik"], 7)
        self.assertEqual(lines["Gamma Mart"], 9)
        self.assertEqual(lines["Delta Bank"], 12)

    def test_stray_opening_quote_keeps_remaining_rows(self):
        raw = (
            "\tNo\tCLIENT\tSERVICE\tCASE & ISSUE\tACTION\tDATE\tPIC TIM\tDETAIL ACTION\tSTATUS\n"
            "\t1\tAcme\tNET\tLink down\tOnsite\t13 Oktober 2025\tBudi\t\"Tunggu vendor\tHold\n"
            "\t2\tBeta\tCCTV\tKamera mati\tRemote\t14 Oktober 2025\tSari\tReset NVR\tDone\n"
            "\t3\tGamma\tNET\tIP baru\tRemote\t15 Oktober 2025\tAndi\tKonfigurasi VLAN\tProgress\n"
        ).encode("utf-8")
        result = import_export(self.store, raw, default_date=TODAY)
        self.assertEqual(result.created, 3)
        entries = self.store.find("daily", quarter="Q4-2025")
        self.assertEqual([e.entity_name for e in entries], ["Acme", "Beta", "Gamma"])
        self.assertEqual(entries[0].status, "Hold")
        self.assertEqual([e.source_line for e in result.entries], [2, 3, 4])

    def test_crlf_export_matches_lf_export(self):
        crlf = DAILY_SAMPLE.read_bytes().replace(b"\n", b"\r\n")
        result = import_export(self.store, crlf, default_date=TODAY)
        self.assertEqual(result.created, 5)
        beta = self.store.find("daily", entity_name="Beta Logistik")[0]
        self.assertEqual(beta.detail, "Ganti adaptor\nTes ulang kamera")


class ProjectImportTests(unittest.TestCase):
    def test_project_rows_split_across_quarters(self):
        store = EntryStore(":memory:")
        result = import_export(store, PROJECT_SAMPLE.read_bytes(), filename=PROJECT_SAMPLE.name, default_date=TODAY)
        self.assertEqual(result.kind, "project")
        self.assertEqual(result.created, 4)
        self.assertEqual(result.quarters, ["Q3-2025", "Q4-2025"])

        omega = store.find("project", entity_name="Gedung Omega")
        self.assertEqual([(e.quarter, e.sequence) for e in omega], [("Q4-2025", 1), ("Q4-2025", 1)])
        self.assertEqual(omega[1].service, "Fiber Optic")
        self.assertEqual(omega[0].report_survey, "Done")
        self.assertEqual(omega[0].work_order, "Progress")
        self.assertEqual(omega[0].material, "Request")
        self.assertEqual(omega[0].due_date, date(2025, 11, 30))
        self.assertEqual(omega[0].detail, "Survey jalur kabel")

        self.assertEqual(store.sequence_for("project", "Q3-2025", "Ruko Sigma"), 1)
        self.assertEqual(store.sequence_for("project", "Q3-2025", "Kantor Theta"), 2)
        theta = store.find("project", entity_name="Kantor Theta")[0]
        self.assertEqual(theta.material, "Done Installation")
        self.assertEqual(store.count("daily"), 0)
        store.close()


class WorkbookImportTests(unittest.TestCase):
    def test_merged_cells_in_xlsx_carry_down(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["LAPORAN DAILY ACTIVITY"])
        ws.append([None, "No", "CLIENT", "SERVICE", "CASE & ISSUE", "ACTION", "DATE", "PIC TIM", "DETAIL ACTION", "STATUS"])
        ws.append([None, 1, "Epsilon Clinic", "CCTV", "NVR penuh", "Remote", "5 November 2025", "Rina", "Hapus rekaman", "Progress"])
        ws.append([None, None, None, None, "NVR penuh lagi", "Onsite", "12 November 2025", "Rina & Andi", "Tambah hardisk", "Hold"])
        ws.merge_cells("C3:C4")
        ws.merge_cells("D3:D4")
        buffer = io.BytesIO()
        wb.save(buffer)

        store = EntryStore(":memory:")
        result = import_export(store, buffer.getvalue(), filename="daily.xlsx", default_date=TODAY)
        self.assertEqual(result.created, 2)
        entries = store.find("daily", quarter="Q4-2025")
        self.assertEqual([(e.entity_name, e.service, e.sequence) for e in entries], [
            ("Epsilon Clinic", "CCTV", 1),
            ("Epsilon Clinic", "CCTV", 1),
        ])
        self.assertEqual(entries[1].members, ["Rina", "Andi"])
        store.close()


if __name__ == "__main__":
    unittest.main()
