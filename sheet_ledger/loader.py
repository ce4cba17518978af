"""Tabular reader for tab-separated and .xlsx sheet exports.

Public API:
    rows = read_rows(raw_bytes, filename="export.tsv")
    table = load_table(raw_bytes, filename="export.tsv", kind=None)

``load_table`` returns a ``LoadedTable`` with the detected layout, the
header row index, the resolved column map and the data rows below the header.
"""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import chardet
import pandas as pd

from sheet_ledger.errors import HeaderNotFound
from sheet_ledger.layouts import HEADER_SCAN_LIMIT, LAYOUTS, Layout
from sheet_ledger.logging_config import get_logger

log = get_logger(__name__)

TEXT_FORMATS = {".tsv", ".txt", ".csv", ""}
EXCEL_FORMATS = {".xlsx", ".xlsm"}
ALL_FORMATS = TEXT_FORMATS | EXCEL_FORMATS

# What pandas and openpyxl raise for a file that is not a readable workbook.
READ_ERRORS = (ValueError, zipfile.BadZipFile, UnicodeDecodeError)

# Excel's own cell limit. Quoted multi-line cells can be long.
csv.field_size_limit(32_767 * 4)


@dataclass
class LoadedTable:
    layout: Layout
    header_index: int
    header: list[str]
    columns: dict[str, int]
    rows: list[list[str]]
    encoding: str | None = None
    header_line: int = 0
    line_numbers: list[int] = field(default_factory=list)

    def line_number(self, offset: int) -> int:
        """Sheet line where ``rows[offset]`` starts."""
        if offset < len(self.line_numbers):
            return self.line_numbers[offset]
        return self.header_line + 1 + offset


# ══════════════════════════════════════════════════════════════════════════
# ENCODING
# ══════════════════════════════════════════════════════════════════════════

def detect_encoding(raw: bytes) -> str:
    if raw.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    try:
        raw.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass
    result = chardet.detect(raw[:200_000])
    return result.get("encoding") or "latin-1"


def decode_bytes(raw: bytes, preferred_encoding: str | None = None) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Latin-1 (never fails)

    A leading BOM and embedded null bytes are removed. CRLF and lone CR
    become LF.
    """
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    preferred = preferred_encoding or detect_encoding(raw)
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred):
            if not enc or enc == "utf-8-sig":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("latin-1")
        decoded_lines.append(decoded.replace("\x00", ""))
    text = "\n".join(decoded_lines)
    return text.replace("\r\n", "\n").replace("\r", "\n")


# ══════════════════════════════════════════════════════════════════════════
# ROW SPLITTING
# ══════════════════════════════════════════════════════════════════════════

def trim_trailing_empty_cells(row: list[str]) -> list[str]:
    trimmed = list(row)
    while trimmed and not str(trimmed[-1]).strip():
        trimmed.pop()
    return trimmed


def _ends_inside_quotes(line: str, delimiter: str, in_quotes: bool = False) -> bool:
    """Run the csv quoting rules over one line and report whether a quoted cell is still open."""
    at_cell_start = not in_quotes
    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if line[i + 1:i + 2] == '"':
                    i += 2
                    continue
                in_quotes = False
        elif ch == delimiter:
            at_cell_start = True
            i += 1
            continue
        elif ch == '"' and at_cell_start:
            in_quotes = True
        at_cell_start = False
        i += 1
    return in_quotes


def split_records(text: str, delimiter: str = "\t") -> list[tuple[int, list[str]]]:
    """Split decoded text into ``(line_number, cells)`` records.

    A quoted cell may span lines, but only when a closing quote follows
    somewhere below. A line whose opening quote is never closed is split
    on the delimiter as-is, so one stray quote cannot swallow the rest of
    the file.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    records: list[tuple[int, list[str]]] = []
    i = 0
    while i < len(lines):
        end = i
        if _ends_inside_quotes(lines[i], delimiter):
            j = i + 1
            while j < len(lines) and _ends_inside_quotes(lines[j], delimiter, in_quotes=True):
                j += 1
            end = j if j < len(lines) else None
        if end is None:
            row = lines[i].split(delimiter)
            end = i
        else:
            record = "\n".join(lines[i:end + 1])
            row = next(csv.reader(io.StringIO(record), delimiter=delimiter, quotechar='"'), [])
        records.append((i + 1, trim_trailing_empty_cells(row)))
        i = end + 1
    return records


def split_rows(text: str, delimiter: str = "\t") -> list[list[str]]:
    """Split decoded text into rows of cells. Quoted cells may span lines."""
    return [row for _, row in split_records(text, delimiter)]


def read_excel_rows(raw: bytes, sheet_name: str | int | None = 0) -> list[list[str]]:
    df = pd.read_excel(io.BytesIO(raw), sheet_name=sheet_name, header=None, dtype=str, engine="openpyxl")
    return [
        trim_trailing_empty_cells(["" if value is None else str(value) for value in row])
        for row in df.fillna("").itertuples(index=False, name=None)
    ]


def read_records(
    raw: bytes, *, filename: str = "", sheet_name: str | int | None = 0
) -> tuple[list[tuple[int, list[str]]], str | None]:
    """Return ``(records, encoding)`` where each record is ``(line_number, cells)``."""
    suffix = Path(filename).suffix.lower()
    if suffix in EXCEL_FORMATS or raw.startswith(b"PK\x03\x04"):
        return list(enumerate(read_excel_rows(raw, sheet_name=sheet_name), start=1)), None
    encoding = detect_encoding(raw)
    return split_records(decode_bytes(raw, encoding)), encoding


def read_rows(raw: bytes, *, filename: str = "", sheet_name: str | int | None = 0) -> tuple[list[list[str]], str | None]:
    """Return ``(rows, encoding)``. ``encoding`` is ``None`` for workbooks."""
    records, encoding = read_records(raw, filename=filename, sheet_name=sheet_name)
    return [row for _, row in records], encoding


# ══════════════════════════════════════════════════════════════════════════
# HEADER DETECTION
# ══════════════════════════════════════════════════════════════════════════

def locate_header(
    rows: list[list[str]],
    *,
    kind: str | None = None,
    scan_limit: int = HEADER_SCAN_LIMIT,
) -> tuple[int, Layout]:
    """Find the first row within ``scan_limit`` that matches a layout signature."""
    candidates = [LAYOUTS[kind]] if kind else list(LAYOUTS.values())
    for idx, row in enumerate(rows[:scan_limit]):
        for layout in candidates:
            if layout.matches(row):
                return idx, layout
    expected = " or ".join(layout.label.lower() for layout in candidates)
    raise HeaderNotFound(
        f"No {expected} header found in the first {scan_limit} rows"
    )


def load_table(
    raw: bytes,
    *,
    filename: str = "",
    kind: str | None = None,
    sheet_name: str | int | None = 0,
) -> LoadedTable:
    records, encoding = read_records(raw, filename=filename, sheet_name=sheet_name)
    rows = [row for _, row in records]
    lines = [line for line, _ in records]
    header_index, layout = locate_header(rows, kind=kind)
    header = rows[header_index]
    columns = layout.resolve_columns(header)
    log.debug(
        "header_located",
        layout=layout.kind,
        header_row=lines[header_index],
        columns=columns,
        encoding=encoding,
    )
    return LoadedTable(
        layout=layout,
        header_index=header_index,
        header=header,
        columns=columns,
        rows=rows[header_index + 1:],
        encoding=encoding,
        header_line=lines[header_index],
        line_numbers=lines[header_index + 1:],
    )
