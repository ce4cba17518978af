"""Batch import of one sheet export.

Pipeline:
    raw bytes -> loader.load_table -> preprocessing.resolve_rows
              -> build_entry (normalise) -> SequenceAllocator -> store.insert_many

Validation failures (``HeaderNotFound``, ``NoValidRows``) are raised before
any write. The insert itself is a single transaction: either every
candidate row is stored or none is.
"""

from __future__ import annotations

from datetime import date

from sheet_ledger.errors import NoValidRows
from sheet_ledger.loader import load_table
from sheet_ledger.logging_config import get_logger
from sheet_ledger.models import KIND_PROJECT, CanonicalEntry, ImportResult
from sheet_ledger.normalization import (
    normalise_action,
    normalise_material,
    normalise_report,
    normalise_status,
    parse_date,
    split_members,
)
from sheet_ledger.preprocessing import ResolvedRow, resolve_rows
from sheet_ledger.quarters import quarter_for_date
from sheet_ledger.sequencing import SequenceAllocator
from sheet_ledger.store import EntryStore

log = get_logger(__name__)


def build_entry(row: ResolvedRow, kind: str) -> CanonicalEntry:
    entry = CanonicalEntry(
        kind=kind,
        entity_name=row.entity_name,
        service=row.service,
        issue=row.get("issue"),
        action=normalise_action(row.get("action")),
        date=parse_date(row.get("date")),
        members=split_members(row.get("members")),
        detail=row.get("detail"),
        status=normalise_status(row.get("status")),
        source_line=row.row_number,
    )
    if kind == KIND_PROJECT:
        entry.report_survey = normalise_report(row.get("report_survey"))
        entry.work_order = normalise_report(row.get("work_order"))
        entry.material = normalise_material(row.get("material"))
        entry.due_date = parse_date(row.get("due_date"))
    return entry


def assign_sequences(
    store: EntryStore,
    entries: list[CanonicalEntry],
    *,
    default_date: date,
) -> list[CanonicalEntry]:
    """Stamp quarter, year and sequence on each entry. Call inside a transaction."""
    allocators: dict[str, SequenceAllocator] = {}
    for entry in entries:
        entry.quarter, entry.year = quarter_for_date(entry.date or default_date)
        allocator = allocators.get(entry.kind)
        if allocator is None:
            allocator = allocators[entry.kind] = SequenceAllocator(store, entry.kind)
        entry.sequence = allocator.allocate(entry.quarter, entry.entity_name)
    return entries


def import_export(
    store: EntryStore,
    raw: bytes,
    *,
    filename: str = "",
    kind: str | None = None,
    default_date: date | None = None,
    sheet_name: str | int | None = 0,
) -> ImportResult:
    """Parse, validate and persist one export.

    Rows without a parseable date are filed under the quarter of
    ``default_date`` (today when not given).
    """
    table = load_table(raw, filename=filename, kind=kind, sheet_name=sheet_name)
    layout = table.layout
    resolved, discarded = resolve_rows(table)
    candidates = [build_entry(row, layout.kind) for row in resolved]
    if not candidates:
        raise NoValidRows(
            f"{filename or 'Upload'}: {layout.label.lower()} header found on row "
            f"{table.header_line} but no data rows survived"
        )

    with store.transaction():
        assign_sequences(store, candidates, default_date=default_date or date.today())
        stored = store.insert_many(candidates)

    quarters = sorted({entry.quarter for entry in stored})
    log.info(
        "import_completed",
        file=filename,
        layout=layout.kind,
        created=len(stored),
        quarters=quarters,
        discarded=sum(discarded.values()),
    )
    return ImportResult(
        kind=layout.kind,
        created=len(stored),
        quarters=quarters,
        discarded=dict(discarded),
        header_row=table.header_line,
        entries=stored,
    )
