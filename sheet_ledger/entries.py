"""Single-entry operations: create, update, delete, listing and name lookup."""

from __future__ import annotations

from datetime import date
from typing import Any

from rapidfuzz.distance import Levenshtein

from sheet_ledger.errors import EntryNotFound, InvalidEntry
from sheet_ledger.logging_config import get_logger
from sheet_ledger.models import EDITABLE_FIELDS, KINDS, CanonicalEntry
from sheet_ledger.normalization import (
    clean_cell_text,
    normalise_action,
    normalise_material,
    normalise_report,
    normalise_status,
    parse_date,
    split_members,
)
from sheet_ledger.quarters import current_quarter, quarter_for_date, quarter_sort_key
from sheet_ledger.sequencing import SequenceAllocator
from sheet_ledger.store import EntryStore

log = get_logger(__name__)

SUGGEST_EXACT_LIMIT = 10
SUGGEST_SIMILAR_LIMIT = 5
SIMILARITY_FLOOR = 0.4

_NORMALISERS = {
    "entity_name": clean_cell_text,
    "service": clean_cell_text,
    "issue": lambda value: clean_cell_text(value, keep_newlines=True),
    "action": normalise_action,
    "date": parse_date,
    "members": lambda value: split_members(", ".join(value) if isinstance(value, (list, tuple)) else value),
    "detail": lambda value: clean_cell_text(value, keep_newlines=True),
    "status": normalise_status,
    "report_survey": normalise_report,
    "work_order": normalise_report,
    "material": normalise_material,
    "due_date": parse_date,
}


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise InvalidEntry(f"Unknown entry kind {kind!r}; expected one of {', '.join(KINDS)}")


def normalise_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise InvalidEntry(f"Unknown field(s): {', '.join(unknown)}")
    return {name: _NORMALISERS[name](value) for name, value in fields.items()}


def create_entry(store: EntryStore, kind: str, fields: dict[str, Any], *, today: date | None = None) -> CanonicalEntry:
    _check_kind(kind)
    values = normalise_fields(fields)
    if not values.get("entity_name"):
        raise InvalidEntry("entity_name is required")
    entry = CanonicalEntry(kind=kind, **values)
    entry.quarter, entry.year = quarter_for_date(entry.date or today or date.today())

    with store.transaction():
        entry.sequence = SequenceAllocator(store, kind).allocate(entry.quarter, entry.entity_name)
        store.insert_many([entry])

    log.info("entry_created", kind=kind, id=entry.id, quarter=entry.quarter, sequence=entry.sequence)
    return entry


def update_entry(store: EntryStore, entry_id: int, changes: dict[str, Any]) -> CanonicalEntry:
    """Apply field changes to one entry.

    Moving the entry to another quarter (by date) or renaming its entity
    re-allocates its sequence number within the target quarter. Clearing the
    date keeps the entry in its current quarter.
    """
    values = normalise_fields(changes)
    if "entity_name" in values and not values["entity_name"]:
        raise InvalidEntry("entity_name cannot be blank")

    with store.transaction():
        entry = store.get(entry_id)
        if entry is None:
            raise EntryNotFound(f"No entry with id {entry_id}")
        before = (entry.quarter, entry.entity_name)
        for name, value in values.items():
            setattr(entry, name, value)
        if entry.date is not None:
            entry.quarter, entry.year = quarter_for_date(entry.date)
        if (entry.quarter, entry.entity_name) != before:
            entry.sequence = SequenceAllocator(store, entry.kind).allocate(entry.quarter, entry.entity_name)
        store.update_many([entry])

    log.info(
        "entry_updated",
        id=entry_id,
        fields=sorted(values),
        quarter=entry.quarter,
        sequence=entry.sequence,
        moved=(entry.quarter, entry.entity_name) != before,
    )
    return entry


def delete_entry(store: EntryStore, entry_id: int) -> None:
    with store.transaction():
        if not store.delete(entry_id):
            raise EntryNotFound(f"No entry with id {entry_id}")
    log.info("entry_deleted", id=entry_id)


def list_entries(store: EntryStore, kind: str, quarter: str | None = None, year: int | None = None) -> list[CanonicalEntry]:
    _check_kind(kind)
    entries = store.find(kind, quarter=quarter, year=year)
    return sorted(entries, key=lambda entry: (entry.sequence, entry.entity_name.lower(), entry.created_at, entry.id or 0))


def list_quarters(store: EntryStore, kind: str, today: date | None = None) -> list[tuple[str, int]]:
    """Quarters that hold entries, newest first. The current quarter is always present."""
    _check_kind(kind)
    quarters = store.quarters(kind)
    current = current_quarter(today or date.today())
    if current not in quarters:
        quarters = sorted(
            [*quarters, current],
            key=lambda pair: quarter_sort_key(pair[0]),
            reverse=True,
        )
    return quarters


def similarity(a: str, b: str) -> float:
    return Levenshtein.normalized_similarity(a.lower(), b.lower())


def suggest_names(store: EntryStore, kind: str, query: str) -> dict[str, list[str]]:
    """Entity names for an autocomplete box.

    ``exact`` holds names containing the query. ``similar`` holds other names
    whose Levenshtein similarity to the query is above 0.4, best first.
    """
    _check_kind(kind)
    needle = clean_cell_text(query)
    if not needle:
        return {"exact": [], "similar": []}

    names = store.all_entity_names(kind)
    lowered = needle.lower()
    exact = [name for name in names if lowered in name.lower()][:SUGGEST_EXACT_LIMIT]
    scored = [
        (similarity(needle, name), name)
        for name in names
        if name not in exact
    ]
    similar = [
        name
        for score, name in sorted(scored, key=lambda pair: (-pair[0], pair[1]))
        if SIMILARITY_FLOOR < score < 1
    ][:SUGGEST_SIMILAR_LIMIT]
    return {"exact": exact, "similar": similar}
