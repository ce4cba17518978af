"""Header signatures and column maps for the two supported sheet layouts.

Each layout is a table: a signature that recognises the header row, the
canonical field each column feeds, the header texts that name that column,
and a fixed fallback offset for when the header cell is unrecognisable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sheet_ledger.models import KIND_DAILY, KIND_PROJECT

HEADER_SCAN_LIMIT = 15


def normalise_header_text(value: object) -> str:
    text = "" if value is None else str(value)
    text = text.replace("\ufeff", "").replace("\x00", "")
    return re.sub(r"\s+", " ", text).strip().upper()


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    offset: int
    aliases: tuple[str, ...]


@dataclass(frozen=True)
class Layout:
    kind: str
    label: str
    # (cell index, exact text or None, contained text or None)
    signature: tuple[tuple[int, str | None, str | None], ...]
    columns: tuple[ColumnSpec, ...]
    entity_field: str = "entity_name"

    def matches(self, row: list[str]) -> bool:
        for index, exact, contains in self.signature:
            cell = normalise_header_text(row[index]) if index < len(row) else ""
            if exact is not None and cell != exact:
                return False
            if contains is not None and contains not in cell:
                return False
        return True

    def resolve_columns(self, header: list[str]) -> dict[str, int]:
        """Map each field to a column index, preferring header text over offsets."""
        normalised = [normalise_header_text(cell) for cell in header]
        resolved: dict[str, int] = {}
        taken: set[int] = set()
        for spec in self.columns:
            for idx, cell in enumerate(normalised):
                if idx in taken or not cell:
                    continue
                if cell in spec.aliases:
                    resolved[spec.field] = idx
                    taken.add(idx)
                    break
        for spec in self.columns:
            if spec.field not in resolved and spec.offset not in taken:
                resolved[spec.field] = spec.offset
                taken.add(spec.offset)
        return resolved


DAILY_LAYOUT = Layout(
    kind=KIND_DAILY,
    label="Daily activity",
    signature=((1, "NO", None), (2, None, "CLIENT")),
    columns=(
        ColumnSpec("number", 1, ("NO", "NO.")),
        ColumnSpec("entity_name", 2, ("CLIENT", "CLIENT NAME", "NAMA CLIENT")),
        ColumnSpec("service", 3, ("SERVICE", "SERVICES", "LAYANAN")),
        ColumnSpec("issue", 4, ("CASE & ISSUE", "CASE AND ISSUE", "CASE", "ISSUE")),
        ColumnSpec("action", 5, ("ACTION",)),
        ColumnSpec("date", 6, ("DATE", "TANGGAL")),
        ColumnSpec("members", 7, ("PIC TIM", "PIC TEAM", "PIC")),
        ColumnSpec("detail", 8, ("DETAIL ACTION", "DETAIL", "DETAIL ACTIONS")),
        ColumnSpec("status", 9, ("STATUS",)),
    ),
)

PROJECT_LAYOUT = Layout(
    kind=KIND_PROJECT,
    label="Survey project",
    signature=((0, "NO", None), (1, None, "PROJECT")),
    columns=(
        ColumnSpec("number", 0, ("NO", "NO.")),
        ColumnSpec("entity_name", 1, ("SURVEY PROJECT", "PROJECT", "PROJECT NAME")),
        ColumnSpec("service", 2, ("SERVICE", "SERVICES")),
        ColumnSpec("report_survey", 3, ("REPORT SURVEY", "REPORT")),
        ColumnSpec("work_order", 4, ("WO", "WORK ORDER")),
        ColumnSpec("material", 5, ("MATERIAL", "MATERIALS")),
        ColumnSpec("due_date", 6, ("DUE DATE", "DEADLINE")),
        ColumnSpec("date", 7, ("DATE", "TANGGAL")),
        ColumnSpec("members", 8, ("PIC TIM", "PIC TEAM", "PIC")),
        ColumnSpec("detail", 9, ("PROGRESS", "DETAIL")),
        ColumnSpec("status", 10, ("STATUS",)),
    ),
)

LAYOUTS: dict[str, Layout] = {
    KIND_DAILY: DAILY_LAYOUT,
    KIND_PROJECT: PROJECT_LAYOUT,
}
