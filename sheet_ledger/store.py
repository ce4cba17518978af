"""SQLite persistence for canonical entries.

Write paths go through ``EntryStore.transaction()``, which opens the
transaction with ``BEGIN IMMEDIATE``. SQLite admits a single writer per
database, so the read-max-then-insert done by the sequence allocator is
serialized across threads and processes.
"""

from __future__ import annotations

import datetime as dt
import json
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sheet_ledger.errors import StoreError
from sheet_ledger.logging_config import get_logger
from sheet_ledger.models import CanonicalEntry, utc_now
from sheet_ledger.quarters import quarter_sort_key

log = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    entity_name TEXT NOT NULL,
    service TEXT NOT NULL DEFAULT '',
    issue TEXT NOT NULL DEFAULT '',
    action TEXT NOT NULL DEFAULT '',
    occurred_on TEXT,
    members TEXT NOT NULL DEFAULT '[]',
    detail TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT '',
    report_survey TEXT NOT NULL DEFAULT '',
    work_order TEXT NOT NULL DEFAULT '',
    material TEXT NOT NULL DEFAULT '',
    due_date TEXT,
    quarter TEXT NOT NULL,
    year INTEGER NOT NULL,
    sequence INTEGER NOT NULL CHECK (sequence > 0),
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_entries_quarter_name ON entries (kind, quarter, entity_name);
CREATE INDEX IF NOT EXISTS idx_entries_quarter_sequence ON entries (kind, quarter, sequence);
"""

_COLUMNS = (
    "kind",
    "entity_name",
    "service",
    "issue",
    "action",
    "occurred_on",
    "members",
    "detail",
    "status",
    "report_survey",
    "work_order",
    "material",
    "due_date",
    "quarter",
    "year",
    "sequence",
    "created_at",
)


def _date_or_none(value: str | None) -> dt.date | None:
    return dt.date.fromisoformat(value) if value else None


def entry_to_params(entry: CanonicalEntry) -> dict[str, Any]:
    return {
        "kind": entry.kind,
        "entity_name": entry.entity_name,
        "service": entry.service,
        "issue": entry.issue,
        "action": entry.action,
        "occurred_on": entry.date.isoformat() if entry.date else None,
        "members": json.dumps(list(entry.members), ensure_ascii=False),
        "detail": entry.detail,
        "status": entry.status,
        "report_survey": entry.report_survey,
        "work_order": entry.work_order,
        "material": entry.material,
        "due_date": entry.due_date.isoformat() if entry.due_date else None,
        "quarter": entry.quarter,
        "year": entry.year,
        "sequence": entry.sequence,
        "created_at": (entry.created_at or utc_now()).isoformat(),
    }


def row_to_entry(row: sqlite3.Row) -> CanonicalEntry:
    return CanonicalEntry(
        id=row["id"],
        kind=row["kind"],
        entity_name=row["entity_name"],
        service=row["service"],
        issue=row["issue"],
        action=row["action"],
        date=_date_or_none(row["occurred_on"]),
        members=json.loads(row["members"] or "[]"),
        detail=row["detail"],
        status=row["status"],
        report_survey=row["report_survey"],
        work_order=row["work_order"],
        material=row["material"],
        due_date=_date_or_none(row["due_date"]),
        quarter=row["quarter"],
        year=row["year"],
        sequence=row["sequence"],
        created_at=dt.datetime.fromisoformat(row["created_at"]),
    )


class EntryStore:
    """One SQLite connection plus the queries the ledger needs."""

    def __init__(self, path: str | Path = ":memory:", *, timeout: float = 10.0) -> None:
        self.path = str(path)
        try:
            self._conn = sqlite3.connect(
                self.path,
                timeout=timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open entry store at {self.path}: {exc}") from exc
        self._depth = 0

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "EntryStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ══════════════════════════════════════════════════════════════════════

    @contextmanager
    def transaction(self) -> Iterator["EntryStore"]:
        """Write transaction. Nested use joins the outer transaction."""
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        try:
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StoreError(f"Could not start write transaction: {exc}") from exc

        self._depth = 1
        try:
            yield self
        except sqlite3.Error as exc:
            self._conn.rollback()
            log.error("transaction_rolled_back", error=str(exc))
            raise StoreError(str(exc)) from exc
        except BaseException:
            self._conn.rollback()
            raise
        else:
            try:
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(f"Commit failed: {exc}") from exc
        finally:
            self._depth = 0

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    # ══════════════════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════════════════

    def find(
        self,
        kind: str,
        *,
        quarter: str | None = None,
        year: int | None = None,
        entity_name: str | None = None,
        exclude_status: str | None = None,
    ) -> list[CanonicalEntry]:
        clauses = ["kind = ?"]
        params: list[Any] = [kind]
        if quarter is not None:
            clauses.append("quarter = ?")
            params.append(quarter)
        if year is not None:
            clauses.append("year = ?")
            params.append(year)
        if entity_name is not None:
            clauses.append("entity_name = ?")
            params.append(entity_name)
        if exclude_status is not None:
            clauses.append("status != ?")
            params.append(exclude_status)
        sql = f"SELECT * FROM entries WHERE {' AND '.join(clauses)} ORDER BY created_at, id"
        return [row_to_entry(row) for row in self._execute(sql, params).fetchall()]

    def get(self, entry_id: int) -> CanonicalEntry | None:
        row = self._execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
        return row_to_entry(row) if row else None

    def max_sequence(self, kind: str, quarter: str) -> int:
        row = self._execute(
            "SELECT MAX(sequence) AS top FROM entries WHERE kind = ? AND quarter = ?",
            (kind, quarter),
        ).fetchone()
        return int(row["top"] or 0)

    def sequence_for(self, kind: str, quarter: str, entity_name: str) -> int | None:
        row = self._execute(
            "SELECT sequence FROM entries WHERE kind = ? AND quarter = ? AND entity_name = ? "
            "ORDER BY created_at, id LIMIT 1",
            (kind, quarter, entity_name),
        ).fetchone()
        return int(row["sequence"]) if row else None

    def entity_names(self, kind: str, quarter: str) -> set[str]:
        rows = self._execute(
            "SELECT DISTINCT entity_name FROM entries WHERE kind = ? AND quarter = ?",
            (kind, quarter),
        ).fetchall()
        return {row["entity_name"] for row in rows}

    def all_entity_names(self, kind: str) -> list[str]:
        rows = self._execute(
            "SELECT DISTINCT entity_name FROM entries WHERE kind = ? ORDER BY entity_name",
            (kind,),
        ).fetchall()
        return [row["entity_name"] for row in rows]

    def quarters(self, kind: str) -> list[tuple[str, int]]:
        rows = self._execute(
            "SELECT DISTINCT quarter, year FROM entries WHERE kind = ?",
            (kind,),
        ).fetchall()
        pairs = [(row["quarter"], int(row["year"])) for row in rows]
        return sorted(pairs, key=lambda pair: quarter_sort_key(pair[0]), reverse=True)

    def count(self, kind: str | None = None) -> int:
        if kind is None:
            row = self._execute("SELECT COUNT(*) AS n FROM entries").fetchone()
        else:
            row = self._execute("SELECT COUNT(*) AS n FROM entries WHERE kind = ?", (kind,)).fetchone()
        return int(row["n"])

    # ══════════════════════════════════════════════════════════════════════
    # WRITES (call inside transaction())
    # ══════════════════════════════════════════════════════════════════════

    def _require_transaction(self) -> None:
        if not self._depth:
            raise StoreError("Writes must run inside EntryStore.transaction()")

    def insert_many(self, entries: Iterable[CanonicalEntry]) -> list[CanonicalEntry]:
        self._require_transaction()
        placeholders = ", ".join(f":{column}" for column in _COLUMNS)
        sql = f"INSERT INTO entries ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        stored: list[CanonicalEntry] = []
        for entry in entries:
            if entry.created_at is None:
                entry.created_at = utc_now()
            cursor = self._execute(sql, entry_to_params(entry))
            entry.id = cursor.lastrowid
            stored.append(entry)
        return stored

    def update_many(self, entries: Iterable[CanonicalEntry]) -> int:
        self._require_transaction()
        assignments = ", ".join(f"{column} = :{column}" for column in _COLUMNS if column != "created_at")
        sql = f"UPDATE entries SET {assignments} WHERE id = :id"
        updated = 0
        for entry in entries:
            params = entry_to_params(entry)
            params["id"] = entry.id
            updated += self._execute(sql, params).rowcount
        return updated

    def delete(self, entry_id: int) -> bool:
        self._require_transaction()
        return self._execute("DELETE FROM entries WHERE id = ?", (entry_id,)).rowcount > 0
