from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from sheet_ledger.loader import LoadedTable
from sheet_ledger.logging_config import get_logger
from sheet_ledger.normalization import clean_cell_text

log = get_logger(__name__)

DISCARD_REASONS = {
    "EMPTY": "Completely empty row",
    "HEADER_REPEAT": "Repeated header row",
    "NO_ENTITY": "No entity name, even after carry-down",
    "NO_PAYLOAD": "Neither a date nor a detail value (summary or decoration row)",
}

MULTILINE_FIELDS = {"issue", "detail"}


@dataclass
class ResolvedRow:
    row_number: int
    entity_name: str
    service: str
    cells: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        return self.cells.get(name, "")


def _cell(row: list[str], columns: dict[str, int], name: str) -> str:
    idx = columns.get(name)
    if idx is None or idx >= len(row):
        return ""
    return clean_cell_text(row[idx], keep_newlines=name in MULTILINE_FIELDS)


def resolve_rows(table: LoadedTable) -> tuple[list[ResolvedRow], Counter]:
    """Apply carry-down to the entity and service columns, in document order.

    A blank entity or service cell inherits the last non-blank value seen
    above it. Returns the surviving rows and a count of discards per reason.
    """
    current_entity = ""
    current_service = ""
    resolved: list[ResolvedRow] = []
    discarded: Counter = Counter()

    for offset, raw_row in enumerate(table.rows):
        row_number = table.line_number(offset)
        if not any(str(cell).strip() for cell in raw_row):
            discarded["EMPTY"] += 1
            continue
        if table.layout.matches(raw_row):
            discarded["HEADER_REPEAT"] += 1
            continue

        cells = {name: _cell(raw_row, table.columns, name) for name in table.columns}

        if cells.get("entity_name"):
            current_entity = cells["entity_name"]
        if cells.get("service"):
            current_service = cells["service"]

        if not current_entity:
            discarded["NO_ENTITY"] += 1
            continue
        if not cells.get("date") and not cells.get("detail"):
            discarded["NO_PAYLOAD"] += 1
            continue

        resolved.append(
            ResolvedRow(
                row_number=row_number,
                entity_name=current_entity,
                service=current_service,
                cells=cells,
            )
        )

    if discarded:
        log.info("rows_discarded", layout=table.layout.kind, **{k.lower(): v for k, v in discarded.items()})
    return resolved, discarded
