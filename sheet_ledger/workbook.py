from __future__ import annotations

from pathlib import Path

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from sheet_ledger.models import KIND_PROJECT, CanonicalEntry

# Daily sheets carry a leading blank column before "No".
DAILY_EXPORT_COLUMNS = [
    (None, ""),
    ("sequence", "No"),
    ("entity_name", "CLIENT"),
    ("service", "SERVICE"),
    ("issue", "CASE & ISSUE"),
    ("action", "ACTION"),
    ("date", "DATE"),
    ("members", "PIC TIM"),
    ("detail", "DETAIL ACTION"),
    ("status", "STATUS"),
]

PROJECT_EXPORT_COLUMNS = [
    ("sequence", "No"),
    ("entity_name", "SURVEY PROJECT"),
    ("service", "SERVICE"),
    ("report_survey", "REPORT SURVEY"),
    ("work_order", "WO"),
    ("material", "MATERIAL"),
    ("due_date", "DUE DATE"),
    ("date", "DATE"),
    ("members", "PIC TIM"),
    ("detail", "PROGRESS"),
    ("status", "STATUS"),
]

HEADER_COLOR = "1565C0"
STATUS_FILLS = {
    "Done": PatternFill("solid", fgColor="C8E6C9"),      # soft green
    "Progress": PatternFill("solid", fgColor="FFF2CC"),  # soft yellow
    "Hold": PatternFill("solid", fgColor="FCE4D6"),      # soft orange
}
WRAP_FIELDS = {"issue", "detail"}


def export_columns(kind: str) -> list[tuple[str | None, str]]:
    return PROJECT_EXPORT_COLUMNS if kind == KIND_PROJECT else DAILY_EXPORT_COLUMNS


def _cell_value(entry: CanonicalEntry, field: str | None) -> object:
    if field is None:
        return ""
    value = getattr(entry, field)
    if field == "members":
        return ", ".join(value)
    if field in {"date", "due_date"}:
        return value.isoformat() if value else ""
    return value


def entries_frame(kind: str, entries: list[CanonicalEntry]) -> pd.DataFrame:
    columns = export_columns(kind)
    rows = [[_cell_value(entry, field) for field, _ in columns] for entry in entries]
    return pd.DataFrame(rows, columns=[header for _, header in columns])


def _style_header(ws, col_widths: list[int]) -> None:
    """Bold white header on blue, frozen first row, fixed column widths."""
    fill = PatternFill("solid", fgColor=HEADER_COLOR)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 8, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            longest_line = max((len(line) for line in str(val).split("\n")), default=0)
            widths[i] = max(widths[i], min(max_width, longest_line + 2))
    return widths


def write_quarter_workbook(kind: str, quarter: str, entries: list[CanonicalEntry], output_path: Path) -> Path:
    """Write one quarter's entries as a styled sheet named after the quarter."""
    columns = export_columns(kind)
    headers = [header for _, header in columns]
    fields = [field for field, _ in columns]

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = quarter
    ws.append(headers)
    rows_for_width: list[list] = [headers]
    for entry in entries:
        row_out = [_cell_value(entry, field) for field in fields]
        ws.append(row_out)
        rows_for_width.append(row_out)
        last = ws.max_row
        fill = STATUS_FILLS.get(entry.status)
        if fill is not None:
            ws.cell(last, fields.index("status") + 1).fill = fill
        for field in WRAP_FIELDS & set(fields):
            ws.cell(last, fields.index(field) + 1).alignment = Alignment(wrap_text=True, vertical="top")
    _style_header(ws, _infer_col_widths(rows_for_width))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path


def write_quarter_tsv(kind: str, entries: list[CanonicalEntry], output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    entries_frame(kind, entries).to_csv(output_path, sep="\t", index=False)
    return output_path


def export_quarter(kind: str, quarter: str, entries: list[CanonicalEntry], output_path: Path) -> Path:
    if output_path.suffix.lower() in {".tsv", ".txt"}:
        return write_quarter_tsv(kind, entries, output_path)
    return write_quarter_workbook(kind, quarter, entries, output_path)
