from __future__ import annotations

from sheet_ledger.errors import InvalidQuarter
from sheet_ledger.logging_config import get_logger
from sheet_ledger.models import STATUS_DONE, CanonicalEntry, CarryForwardResult, utc_now
from sheet_ledger.quarters import validate_quarter
from sheet_ledger.sequencing import SequenceAllocator
from sheet_ledger.store import EntryStore

log = get_logger(__name__)


def latest_per_entity(entries: list[CanonicalEntry]) -> list[CanonicalEntry]:
    """Most recently created record per entity name, newest first."""
    ordered = sorted(entries, key=lambda entry: (entry.created_at, entry.id or 0), reverse=True)
    seen: set[str] = set()
    latest: list[CanonicalEntry] = []
    for entry in ordered:
        if entry.entity_name in seen:
            continue
        seen.add(entry.entity_name)
        latest.append(entry)
    return latest


def carry_forward(
    store: EntryStore,
    kind: str,
    source_quarter: str,
    source_year: int,
    dest_quarter: str,
    dest_year: int,
) -> CarryForwardResult:
    """Copy the latest unfinished record of each entity into the destination quarter.

    Entities already present in the destination are skipped. The copies keep
    their original occurrence date and get a fresh creation time and a
    sequence number in the destination quarter. Runs as one transaction.
    """
    source_quarter = validate_quarter(source_quarter, source_year)
    dest_quarter = validate_quarter(dest_quarter, dest_year)
    if source_quarter == dest_quarter:
        raise InvalidQuarter(f"Source and destination are both {source_quarter}")

    with store.transaction():
        unfinished = store.find(kind, quarter=source_quarter, exclude_status=STATUS_DONE)
        representatives = latest_per_entity(unfinished)
        existing = store.entity_names(kind, dest_quarter)

        allocator = SequenceAllocator(store, kind)
        copies: list[CanonicalEntry] = []
        skipped: list[str] = []
        for entry in representatives:
            if entry.entity_name in existing:
                skipped.append(entry.entity_name)
                continue
            copy = entry.descriptive_copy(quarter=dest_quarter, year=dest_year, created_at=utc_now())
            copy.sequence = allocator.allocate(dest_quarter, copy.entity_name)
            copies.append(copy)
        store.insert_many(copies)

    copied_names = [entry.entity_name for entry in copies]
    log.info(
        "carry_forward_completed",
        kind=kind,
        source=source_quarter,
        dest=dest_quarter,
        copied=len(copies),
        skipped=len(skipped),
    )
    return CarryForwardResult(
        kind=kind,
        source_quarter=source_quarter,
        dest_quarter=dest_quarter,
        count=len(copies),
        copied_names=copied_names,
        skipped_existing=skipped,
    )
