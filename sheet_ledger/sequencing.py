"""Per-quarter sequence numbers for named entities.

Within one ``(kind, quarter)`` every record of an entity shares one number,
and distinct entities get distinct numbers handed out in first-seen order.
"""

from __future__ import annotations

from sheet_ledger.logging_config import get_logger
from sheet_ledger.models import ResequenceResult
from sheet_ledger.store import EntryStore

log = get_logger(__name__)


class SequenceAllocator:
    """Batch-scoped allocator. Create one per import, carry-forward or edit.

    Callers must hold ``store.transaction()`` for the whole allocate-then-insert
    span so the persisted maximum cannot move underneath the batch.
    """

    def __init__(self, store: EntryStore, kind: str) -> None:
        self.store = store
        self.kind = kind
        self._assigned: dict[tuple[str, str], int] = {}
        self._next: dict[str, int] = {}

    def allocate(self, quarter: str, entity_name: str) -> int:
        key = (quarter, entity_name)
        if key in self._assigned:
            return self._assigned[key]

        existing = self.store.sequence_for(self.kind, quarter, entity_name)
        if existing is not None:
            self._assigned[key] = existing
            return existing

        if quarter not in self._next:
            self._next[quarter] = self.store.max_sequence(self.kind, quarter) + 1
        sequence = self._next[quarter]
        self._next[quarter] = sequence + 1
        self._assigned[key] = sequence
        log.debug("sequence_allocated", kind=self.kind, quarter=quarter, entity=entity_name, sequence=sequence)
        return sequence

    @property
    def assigned(self) -> dict[tuple[str, str], int]:
        return dict(self._assigned)


def resequence_quarter(store: EntryStore, kind: str, quarter: str) -> ResequenceResult:
    """Renumber a quarter 1..n by first appearance of each entity in creation order.

    Maintenance only. Nothing calls this implicitly.
    """
    with store.transaction():
        entries = store.find(kind, quarter=quarter)
        numbering: dict[str, int] = {}
        changed = []
        for entry in entries:
            if entry.entity_name not in numbering:
                numbering[entry.entity_name] = len(numbering) + 1
            target = numbering[entry.entity_name]
            if entry.sequence != target:
                entry.sequence = target
                changed.append(entry)
        store.update_many(changed)

    log.info("quarter_resequenced", kind=kind, quarter=quarter, total=len(entries), changed=len(changed))
    return ResequenceResult(kind=kind, quarter=quarter, total=len(entries), changed=len(changed))
