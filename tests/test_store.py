from __future__ import annotations

import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

from sheet_ledger.errors import StoreError
from sheet_ledger.models import CanonicalEntry
from sheet_ledger.store import EntryStore


def entry(name: str, quarter: str = "Q4-2025", sequence: int = 1, **fields) -> CanonicalEntry:
    year = int(quarter.split("-")[1])
    return CanonicalEntry(kind=fields.pop("kind", "daily"), entity_name=name, quarter=quarter, year=year, sequence=sequence, **fields)


class EntryStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = EntryStore(":memory:")

    def tearDown(self):
        self.store.close()

    def test_round_trips_all_fields(self):
        original = entry(
            "PT Acme",
            service="NET",
            issue="Link down\ncabang 2",
            action="Onsite",
            date=date(2025, 10, 13),
            members=["Budi", "Sari"],
            detail="Cek router",
            status="Progress",
            due_date=date(2025, 11, 1),
            created_at=datetime(2025, 10, 13, 8, 0, tzinfo=timezone.utc),
        )
        with self.store.transaction():
            self.store.insert_many([original])
        loaded = self.store.get(original.id)
        self.assertEqual(loaded, original)

    def test_writes_outside_transaction_are_refused(self):
        with self.assertRaises(StoreError):
            self.store.insert_many([entry("Acme")])

    def test_transaction_rolls_back_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                self.store.insert_many([entry("Acme"), entry("Beta", sequence=2)])
                raise RuntimeError("boom")
        self.assertEqual(self.store.count(), 0)

    def test_nested_transaction_joins_outer(self):
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                with self.store.transaction():
                    self.store.insert_many([entry("Acme")])
                raise RuntimeError("outer fails")
        self.assertEqual(self.store.count(), 0)

    def test_max_and_lookup_are_scoped_by_kind_and_quarter(self):
        with self.store.transaction():
            self.store.insert_many([
                entry("Acme", "Q4-2025", 1),
                entry("Beta", "Q4-2025", 2),
                entry("Acme", "Q3-2025", 7),
                entry("Omega", "Q4-2025", 5, kind="project"),
            ])
        self.assertEqual(self.store.max_sequence("daily", "Q4-2025"), 2)
        self.assertEqual(self.store.max_sequence("daily", "Q1-2026"), 0)
        self.assertEqual(self.store.max_sequence("project", "Q4-2025"), 5)
        self.assertEqual(self.store.sequence_for("daily", "Q3-2025", "Acme"), 7)
        self.assertIsNone(self.store.sequence_for("daily", "Q3-2025", "Beta"))

    def test_find_filters_and_orders_by_creation(self):
        early = datetime(2025, 10, 1, tzinfo=timezone.utc)
        late = datetime(2025, 10, 2, tzinfo=timezone.utc)
        with self.store.transaction():
            self.store.insert_many([
                entry("Beta", status="Progress", created_at=late),
                entry("Acme", status="Done", created_at=early),
                entry("Gamma", status="", created_at=early),
            ])
        names = [e.entity_name for e in self.store.find("daily", quarter="Q4-2025", exclude_status="Done")]
        self.assertEqual(names, ["Gamma", "Beta"])

    def test_quarters_are_newest_first(self):
        with self.store.transaction():
            self.store.insert_many([entry("A", "Q3-2025"), entry("B", "Q1-2026"), entry("C", "Q4-2025")])
        self.assertEqual(self.store.quarters("daily"), [("Q1-2026", 2026), ("Q4-2025", 2025), ("Q3-2025", 2025)])

    def test_update_and_delete(self):
        with self.store.transaction():
            stored = self.store.insert_many([entry("Acme"), entry("Beta", sequence=2)])
        stored[0].status = "Done"
        with self.store.transaction():
            self.assertEqual(self.store.update_many([stored[0]]), 1)
            self.assertTrue(self.store.delete(stored[1].id))
            self.assertFalse(self.store.delete(999))
        self.assertEqual(self.store.get(stored[0].id).status, "Done")
        self.assertIsNone(self.store.get(stored[1].id))

    def test_file_backed_store_persists_between_connections(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ledger.db"
            with EntryStore(path) as first:
                with first.transaction():
                    first.insert_many([entry("Acme")])
            with EntryStore(path) as second:
                self.assertEqual(second.entity_names("daily", "Q4-2025"), {"Acme"})


if __name__ == "__main__":
    unittest.main()
