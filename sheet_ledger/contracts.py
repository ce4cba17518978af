"""Shared versioned contracts for machine-readable sheet-ledger outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sheet_ledger import __version__ as TOOL_VERSION
from sheet_ledger.models import CarryForwardResult, CanonicalEntry, ImportResult, ResequenceResult

CONTRACT_VERSIONS = {
    "ledger.import_summary": "1.0.0",
    "ledger.carry_forward": "1.0.0",
    "ledger.resequence": "1.0.0",
    "ledger.entries": "1.0.0",
    "ledger.entry": "1.0.0",
    "ledger.quarters": "1.0.0",
    "ledger.suggestions": "1.0.0",
    "ledger.error": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    status: str = "ok",
    input_file: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "sheet-ledger",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": input_file,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def _envelope(name: str, run_summary: dict[str, Any], **body: Any) -> dict[str, Any]:
    return {
        "contract": build_contract(name),
        "schema_version": CONTRACT_VERSIONS[name],
        "tool_version": TOOL_VERSION,
        "run_summary": run_summary,
        **body,
    }


def import_summary_payload(result: ImportResult, *, input_file: str) -> dict[str, Any]:
    warnings = [f"{count} row(s) discarded: {reason.lower()}" for reason, count in sorted(result.discarded.items())]
    return _envelope(
        "ledger.import_summary",
        build_run_summary(
            command="import",
            input_file=input_file,
            metrics={"created": result.created, "discarded": result.discarded_total},
            warnings=warnings,
        ),
        created=result.created,
        layout=result.kind,
        header_row=result.header_row,
        quarters=result.quarters,
        discarded=result.discarded,
    )


def carry_forward_payload(result: CarryForwardResult) -> dict[str, Any]:
    if result.count:
        message = f"Copied {result.count} unfinished {result.kind} entr{'y' if result.count == 1 else 'ies'} from {result.source_quarter} to {result.dest_quarter}"
    else:
        message = f"No unfinished {result.kind} entries to copy from {result.source_quarter}"
    return _envelope(
        "ledger.carry_forward",
        build_run_summary(command="carry-forward", metrics={"copied": result.count, "skipped": len(result.skipped_existing)}),
        message=message,
        kind=result.kind,
        source_quarter=result.source_quarter,
        dest_quarter=result.dest_quarter,
        count=result.count,
        copied_names=result.copied_names,
        skipped_existing=result.skipped_existing,
    )


def resequence_payload(result: ResequenceResult) -> dict[str, Any]:
    return _envelope(
        "ledger.resequence",
        build_run_summary(command="resequence", metrics={"total": result.total, "changed": result.changed}),
        kind=result.kind,
        quarter=result.quarter,
        total=result.total,
        changed=result.changed,
    )


def entries_payload(kind: str, quarter: str | None, entries: list[CanonicalEntry]) -> dict[str, Any]:
    return _envelope(
        "ledger.entries",
        build_run_summary(command="list", metrics={"count": len(entries)}),
        kind=kind,
        quarter=quarter,
        entries=[entry.to_dict() for entry in entries],
    )


def entry_payload(command: str, entry: CanonicalEntry) -> dict[str, Any]:
    return _envelope("ledger.entry", build_run_summary(command=command), entry=entry.to_dict())


def quarters_payload(kind: str, quarters: list[tuple[str, int]]) -> dict[str, Any]:
    return _envelope(
        "ledger.quarters",
        build_run_summary(command="quarters", metrics={"count": len(quarters)}),
        kind=kind,
        quarters=[{"quarter": label, "year": year} for label, year in quarters],
    )


def suggestions_payload(kind: str, query: str, suggestions: dict[str, list[str]]) -> dict[str, Any]:
    return _envelope(
        "ledger.suggestions",
        build_run_summary(command="suggest"),
        kind=kind,
        query=query,
        **suggestions,
    )


def error_payload(command: str, code: str, message: str) -> dict[str, Any]:
    return _envelope(
        "ledger.error",
        build_run_summary(command=command, status="failed"),
        error={"code": code, "message": message},
    )
