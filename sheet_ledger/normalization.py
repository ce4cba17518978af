"""Cell-level normalisers.

Every function here is total: malformed input degrades to an empty value
(``""``, ``None`` or ``[]``) and never raises, so a single bad cell cannot
abort a batch.
"""

from __future__ import annotations

import re
import warnings
from datetime import date, datetime

import pandas as pd

# ══════════════════════════════════════════════════════════════════════════
# CELL TEXT
# ══════════════════════════════════════════════════════════════════════════

SMART_QUOTES = {
    "\u201c": '"',
    "\u201d": '"',
    "\u2018": "'",
    "\u2019": "'",
}


def clean_cell_text(value: object, *, keep_newlines: bool = False) -> str:
    """Strip BOM, null bytes, smart quotes and outer whitespace."""
    if value is None:
        return ""
    text = str(value)
    text = text.replace("\ufeff", "").replace("\x00", "").replace("\xa0", " ")
    for smart, straight in SMART_QUOTES.items():
        text = text.replace(smart, straight)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if keep_newlines:
        lines = [line.strip() for line in text.split("\n")]
        return "\n".join(lines).strip()
    return " ".join(text.split())


# ══════════════════════════════════════════════════════════════════════════
# DATES
# ══════════════════════════════════════════════════════════════════════════

MONTH_NAMES = {
    # English
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
    # Indonesian
    "januari": 1, "februari": 2, "maret": 3, "mei": 5, "juni": 6, "juli": 7,
    "agustus": 8, "oktober": 10, "desember": 12,
    "agu": 8, "agt": 8, "okt": 10, "des": 12, "nop": 11, "nopember": 11,
}

DAY_MONTH_YEAR_RE = re.compile(
    r"^(\d{1,2})(?:\s*[-\u2013\u2014]\s*\d{1,2})?\s+([A-Za-z]+)\.?,?\s+(\d{4})$"
)
MONTH_DAY_YEAR_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})$")
ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")
LOOSE_NUMERIC_DATE_RE = re.compile(r"\d{1,4}\D+\d{1,2}\D+\d{2,4}")


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: object) -> date | None:
    """Parse a human-entered date. Returns ``None`` when nothing matches.

    Day ranges like ``16-17 Oktober 2025`` resolve to their first day.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_cell_text(value)
    if not text:
        return None

    match = DAY_MONTH_YEAR_RE.match(text)
    if match:
        month = MONTH_NAMES.get(match.group(2).lower())
        if month is None:
            return None
        return _safe_date(int(match.group(3)), month, int(match.group(1)))

    match = MONTH_DAY_YEAR_RE.match(text)
    if match:
        month = MONTH_NAMES.get(match.group(1).lower())
        if month is None:
            return None
        return _safe_date(int(match.group(3)), month, int(match.group(2)))

    match = ISO_RE.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = DAY_FIRST_RE.match(text)
    if match:
        return _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    # Anything with letters left over is a month name we do not know.
    if re.search(r"[A-Za-z]{3,}", text) or not LOOSE_NUMERIC_DATE_RE.search(text):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


# ══════════════════════════════════════════════════════════════════════════
# CLOSED-SET LABELS
# ══════════════════════════════════════════════════════════════════════════

STATUS_MAP = {
    "progress": "Progress",
    "on progress": "Progress",
    "in progress": "Progress",
    "onprogress": "Progress",
    "done": "Done",
    "selesai": "Done",
    "finished": "Done",
    "hold": "Hold",
    "on hold": "Hold",
    "pending": "Hold",
}

ACTION_MAP = {
    "onsite": "Onsite",
    "on site": "Onsite",
    "on-site": "Onsite",
    "remote": "Remote",
}

REPORT_MAP = {
    "done": "Done",
    "selesai": "Done",
    "progress": "Progress",
    "on progress": "Progress",
    "in progress": "Progress",
}

MATERIAL_MAP = {
    "request": "Request",
    "done installation": "Done Installation",
    "installed": "Done Installation",
    "hold": "Hold",
    "on hold": "Hold",
    "progress": "Progress",
    "on progress": "Progress",
    "logistic": "Logistic",
    "logistics": "Logistic",
}


def normalise_choice(value: object, table: dict[str, str]) -> str:
    """Case-insensitive, whitespace-collapsed lookup. Unknown labels become ``""``."""
    key = clean_cell_text(value).lower()
    return table.get(key, "")


def normalise_status(value: object) -> str:
    return normalise_choice(value, STATUS_MAP)


def normalise_action(value: object) -> str:
    return normalise_choice(value, ACTION_MAP)


def normalise_report(value: object) -> str:
    return normalise_choice(value, REPORT_MAP)


def normalise_material(value: object) -> str:
    return normalise_choice(value, MATERIAL_MAP)


# ══════════════════════════════════════════════════════════════════════════
# MEMBERS
# ══════════════════════════════════════════════════════════════════════════

MEMBER_SPLIT_RE = re.compile(r"[,&]")


def split_members(value: object) -> list[str]:
    """Split ``"A, B & C"`` into ``["A", "B", "C"]``, keeping first-seen order."""
    members: list[str] = []
    for part in MEMBER_SPLIT_RE.split(clean_cell_text(value)):
        name = part.strip()
        if name and name not in members:
            members.append(name)
    return members
