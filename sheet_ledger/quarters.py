"""Quarter labels of the form ``Q{1-4}-{YYYY}``."""

from __future__ import annotations

import re
from datetime import date

from sheet_ledger.errors import InvalidQuarter

QUARTER_LABEL_RE = re.compile(r"^Q([1-4])-(\d{4})$")


def quarter_index(month: int) -> int:
    return (month - 1) // 3 + 1


def format_quarter(index: int, year: int) -> str:
    return f"Q{index}-{year}"


def quarter_for_date(value: date) -> tuple[str, int]:
    """Return ``(label, year)`` for the calendar quarter containing ``value``."""
    return format_quarter(quarter_index(value.month), value.year), value.year


def parse_quarter_label(label: str) -> tuple[int, int]:
    match = QUARTER_LABEL_RE.match((label or "").strip())
    if not match:
        raise InvalidQuarter(f"Quarter label must look like Q1-2025, got {label!r}")
    return int(match.group(1)), int(match.group(2))


def validate_quarter(label: str, year: int) -> str:
    """Check that ``label`` is well formed and agrees with ``year``."""
    _, label_year = parse_quarter_label(label)
    if label_year != year:
        raise InvalidQuarter(f"Quarter {label} does not belong to year {year}")
    return label.strip()


def previous_quarter(label: str) -> tuple[str, int]:
    index, year = parse_quarter_label(label)
    if index == 1:
        return format_quarter(4, year - 1), year - 1
    return format_quarter(index - 1, year), year


def current_quarter(today: date) -> tuple[str, int]:
    return quarter_for_date(today)


def quarter_sort_key(label: str) -> tuple[int, int]:
    index, year = parse_quarter_label(label)
    return year, index
