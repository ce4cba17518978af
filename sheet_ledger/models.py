from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field, replace
from typing import Any

KIND_DAILY = "daily"
KIND_PROJECT = "project"
KINDS = (KIND_DAILY, KIND_PROJECT)

STATUS_PROGRESS = "Progress"
STATUS_DONE = "Done"
STATUS_HOLD = "Hold"
STATUS_CHOICES = (STATUS_PROGRESS, STATUS_DONE, STATUS_HOLD, "")

ACTION_CHOICES = ("Onsite", "Remote", "")
REPORT_CHOICES = ("Done", "Progress", "")
MATERIAL_CHOICES = ("Request", "Done Installation", "Hold", "Progress", "Logistic", "")

# Descriptive fields copied verbatim by carry-forward.
DESCRIPTIVE_FIELDS = (
    "entity_name",
    "service",
    "issue",
    "action",
    "date",
    "members",
    "detail",
    "status",
    "report_survey",
    "work_order",
    "material",
    "due_date",
)
EDITABLE_FIELDS = DESCRIPTIVE_FIELDS


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class CanonicalEntry:
    kind: str
    entity_name: str
    service: str = ""
    issue: str = ""
    action: str = ""
    date: dt.date | None = None
    members: list[str] = field(default_factory=list)
    detail: str = ""
    status: str = ""
    report_survey: str = ""
    work_order: str = ""
    material: str = ""
    due_date: dt.date | None = None
    quarter: str = ""
    year: int = 0
    sequence: int = 0
    id: int | None = None
    created_at: dt.datetime | None = None
    source_line: int | None = None

    def descriptive_copy(self, **overrides: Any) -> "CanonicalEntry":
        """Copy without identity or numbering, ready to be re-allocated."""
        copied = replace(
            self,
            members=list(self.members),
            quarter="",
            year=0,
            sequence=0,
            id=None,
            created_at=None,
            source_line=None,
        )
        return replace(copied, **overrides) if overrides else copied

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for key in ("date", "due_date", "created_at"):
            value = payload[key]
            payload[key] = value.isoformat() if value is not None else None
        payload.pop("source_line")
        return payload


@dataclass
class ImportResult:
    kind: str
    created: int
    quarters: list[str]
    discarded: dict[str, int]
    header_row: int
    entries: list[CanonicalEntry] = field(default_factory=list)

    @property
    def discarded_total(self) -> int:
        return sum(self.discarded.values())


@dataclass
class CarryForwardResult:
    kind: str
    source_quarter: str
    dest_quarter: str
    count: int
    copied_names: list[str]
    skipped_existing: list[str] = field(default_factory=list)


@dataclass
class ResequenceResult:
    kind: str
    quarter: str
    total: int
    changed: int
