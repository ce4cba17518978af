from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from sheet_ledger import __version__ as TOOL_VERSION
from sheet_ledger import contracts
from sheet_ledger.carry_forward import carry_forward
from sheet_ledger.config import Settings
from sheet_ledger.entries import (
    create_entry,
    delete_entry,
    list_entries,
    list_quarters,
    suggest_names,
    update_entry,
)
from sheet_ledger.errors import HeaderNotFound, LedgerError, NoValidRows
from sheet_ledger.importer import import_export
from sheet_ledger.loader import READ_ERRORS
from sheet_ledger.logging_config import configure_logging
from sheet_ledger.models import KIND_DAILY, KINDS, CanonicalEntry
from sheet_ledger.quarters import current_quarter, parse_quarter_label, previous_quarter
from sheet_ledger.remote import fetch_export
from sheet_ledger.sequencing import resequence_quarter
from sheet_ledger.store import EntryStore
from sheet_ledger.workbook import export_quarter

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2

IMPORT_FORMATS = {".tsv", ".txt", ".csv", ".xlsx", ".xlsm"}

# CLI flag -> entry field, shared by ``add`` and ``update``.
FIELD_FLAGS = {
    "name": "entity_name",
    "service": "service",
    "issue": "issue",
    "action": "action",
    "date": "date",
    "members": "members",
    "detail": "detail",
    "status": "status",
    "report_survey": "report_survey",
    "work_order": "work_order",
    "material": "material",
    "due_date": "due_date",
}


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetLedgerArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (HeaderNotFound, NoValidRows)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def error_code(exc: Exception) -> str:
    if isinstance(exc, LedgerError):
        return exc.code
    return type(exc).__name__


# ══════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════

def render_entry_line(entry: CanonicalEntry) -> str:
    when = entry.date.isoformat() if entry.date else "----------"
    status = entry.status or "-"
    members = ", ".join(entry.members) or "-"
    return f"#{entry.id:<5} {entry.sequence:>3}. {entry.entity_name:<30} {when}  {status:<8} {members}"


def render_entries_text(kind: str, quarter: str | None, entries: list[CanonicalEntry]) -> str:
    title = f"{kind} entries" + (f" in {quarter}" if quarter else "")
    lines = [f"{title}: {len(entries)}"]
    lines.extend(render_entry_line(entry) for entry in entries)
    return "\n".join(lines)


def render_import_text(payload: dict[str, Any]) -> str:
    lines = [
        f"Layout: {payload['layout']} (header on row {payload['header_row']})",
        f"Entries created: {payload['created']}",
        f"Quarters: {', '.join(payload['quarters'])}",
    ]
    for warning in payload["run_summary"]["warnings"]:
        lines.append(f"  - {warning}")
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════════════
# ARGUMENTS
# ══════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db", help="SQLite database path (default: $SHEET_LEDGER_DB or sheet-ledger.db)")
    common.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    common.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    common.add_argument("-v", "--verbose", action="store_true", help="Structured info logs on stderr")

    kind_arg = argparse.ArgumentParser(add_help=False)
    kind_arg.add_argument("--kind", choices=list(KINDS), default=KIND_DAILY, help="Entry kind (default: daily)")

    parser = SheetLedgerArgumentParser(prog="sheet-ledger", description="Quarterly activity ledger fed from spreadsheet exports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    imp = subparsers.add_parser("import", parents=[common], help="Import a tab-separated or .xlsx sheet export.")
    imp.add_argument("input", help="Input file path")
    imp.add_argument("--kind", choices=list(KINDS), default=None, help="Expected layout (default: detect)")
    imp.add_argument("--sheet", dest="sheet_name", default=None, help="Workbook sheet name for .xlsx inputs")

    fetch = subparsers.add_parser("fetch", parents=[common], help="Download a shared sheet export and import it.")
    fetch.add_argument("url", help="Public URL (Google Sheets links are exported as TSV)")
    fetch.add_argument("--kind", choices=list(KINDS), default=None, help="Expected layout (default: detect)")

    carry = subparsers.add_parser("carry-forward", parents=[common, kind_arg], help="Copy unfinished entities into a new quarter.")
    carry.add_argument("--from", dest="source_quarter", help="Source quarter label (default: quarter before --to)")
    carry.add_argument("--from-year", dest="source_year", type=int, help="Source year (default: from the label)")
    carry.add_argument("--to", dest="dest_quarter", help="Destination quarter label (default: current quarter)")
    carry.add_argument("--to-year", dest="dest_year", type=int, help="Destination year (default: from the label)")

    lst = subparsers.add_parser("list", parents=[common, kind_arg], help="List entries.")
    lst.add_argument("--quarter", help="Quarter label, e.g. Q4-2025 (default: current quarter)")
    lst.add_argument("--all", dest="all_quarters", action="store_true", help="List every quarter")

    subparsers.add_parser("quarters", parents=[common, kind_arg], help="List quarters that hold entries.")

    suggest = subparsers.add_parser("suggest", parents=[common, kind_arg], help="Suggest existing entity names.")
    suggest.add_argument("query", help="Partial or misspelled name")

    add = subparsers.add_parser("add", parents=[common, kind_arg], help="Create a single entry.")
    update = subparsers.add_parser("update", parents=[common], help="Edit fields of an entry.")
    update.add_argument("entry_id", type=int, help="Entry id")
    for sub in (add, update):
        sub.add_argument("--name", help="Client or survey project name")
        sub.add_argument("--service")
        sub.add_argument("--issue", help="Case & issue text")
        sub.add_argument("--action", help="Onsite or Remote")
        sub.add_argument("--date", help="Occurrence date, e.g. '13 Oktober 2025'")
        sub.add_argument("--members", help="Team members separated by ',' or '&'")
        sub.add_argument("--detail", help="Detail action or progress text")
        sub.add_argument("--status", help="Progress, Done or Hold")
        sub.add_argument("--report-survey", dest="report_survey")
        sub.add_argument("--work-order", dest="work_order")
        sub.add_argument("--material")
        sub.add_argument("--due-date", dest="due_date")

    delete = subparsers.add_parser("delete", parents=[common], help="Delete an entry.")
    delete.add_argument("entry_id", type=int, help="Entry id")

    reseq = subparsers.add_parser("resequence", parents=[common, kind_arg], help="Renumber a quarter by creation order.")
    reseq.add_argument("--quarter", required=True, help="Quarter label, e.g. Q4-2025")

    export = subparsers.add_parser("export", parents=[common, kind_arg], help="Write a quarter to .xlsx or .tsv.")
    export.add_argument("--quarter", help="Quarter label (default: current quarter)")
    export.add_argument("-o", "--output", required=True, help="Output path (.xlsx or .tsv)")
    export.add_argument("--force", action="store_true", help="Overwrite an existing output file")

    subparsers.add_parser("version", help="Print version")
    return parser


def open_store(args: argparse.Namespace, settings: Settings) -> EntryStore:
    path = Path(args.db) if getattr(args, "db", None) else settings.db_path
    return EntryStore(path, timeout=settings.busy_timeout)


def collect_fields(args: argparse.Namespace) -> dict[str, Any]:
    return {
        field: getattr(args, flag)
        for flag, field in FIELD_FLAGS.items()
        if getattr(args, flag, None) is not None
    }


def resolve_carry_quarters(args: argparse.Namespace, settings: Settings) -> tuple[str, int, str, int]:
    if args.dest_quarter:
        dest_quarter = args.dest_quarter
        dest_year = args.dest_year if args.dest_year is not None else parse_quarter_label(dest_quarter)[1]
    else:
        dest_quarter, dest_year = current_quarter(settings.today())
    if args.source_quarter:
        source_quarter = args.source_quarter
        source_year = args.source_year if args.source_year is not None else parse_quarter_label(source_quarter)[1]
    else:
        source_quarter, source_year = previous_quarter(dest_quarter)
    return source_quarter, source_year, dest_quarter, dest_year


# ══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════

def run_import_bytes(args: argparse.Namespace, settings: Settings, raw: bytes, filename: str) -> int:
    with open_store(args, settings) as store:
        try:
            result = import_export(
                store,
                raw,
                filename=filename,
                kind=args.kind,
                default_date=settings.today(),
                sheet_name=getattr(args, "sheet_name", None) or 0,
            )
        except READ_ERRORS as exc:
            raise CliError(f"Could not read {filename}: {exc}", EXIT_PARSE_FAILED) from exc
    payload = contracts.import_summary_payload(result, input_file=filename)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_import_text(payload), quiet=args.quiet)
    return EXIT_SUCCESS


def run_import(args: argparse.Namespace, settings: Settings) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    if input_path.suffix.lower() not in IMPORT_FORMATS:
        raise CliError(
            f"Unsupported file type '{input_path.suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(IMPORT_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    return run_import_bytes(args, settings, input_path.read_bytes(), input_path.name)


def run_fetch(args: argparse.Namespace, settings: Settings) -> int:
    filename, raw = fetch_export(args.url)
    emit_human(f"Downloaded {filename} ({len(raw)} bytes)", quiet=args.quiet or args.json)
    return run_import_bytes(args, settings, raw, filename)


def run_carry_forward(args: argparse.Namespace, settings: Settings) -> int:
    source_quarter, source_year, dest_quarter, dest_year = resolve_carry_quarters(args, settings)
    with open_store(args, settings) as store:
        result = carry_forward(store, args.kind, source_quarter, source_year, dest_quarter, dest_year)
    payload = contracts.carry_forward_payload(result)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(payload["message"], quiet=args.quiet)
        for name in result.copied_names:
            emit_human(f"  + {name}", quiet=args.quiet)
        for name in result.skipped_existing:
            emit_human(f"  = {name} (already in {dest_quarter})", quiet=args.quiet)
    return EXIT_SUCCESS


def run_list(args: argparse.Namespace, settings: Settings) -> int:
    quarter = None if args.all_quarters else (args.quarter or current_quarter(settings.today())[0])
    if quarter:
        parse_quarter_label(quarter)
    with open_store(args, settings) as store:
        entries = list_entries(store, args.kind, quarter=quarter)
    if args.json:
        maybe_emit_json_stdout(contracts.entries_payload(args.kind, quarter, entries), True)
    else:
        emit_human(render_entries_text(args.kind, quarter, entries), quiet=args.quiet)
    return EXIT_SUCCESS


def run_quarters(args: argparse.Namespace, settings: Settings) -> int:
    with open_store(args, settings) as store:
        quarters = list_quarters(store, args.kind, today=settings.today())
    if args.json:
        maybe_emit_json_stdout(contracts.quarters_payload(args.kind, quarters), True)
    else:
        emit_human("\n".join(label for label, _ in quarters), quiet=args.quiet)
    return EXIT_SUCCESS


def run_suggest(args: argparse.Namespace, settings: Settings) -> int:
    with open_store(args, settings) as store:
        suggestions = suggest_names(store, args.kind, args.query)
    if args.json:
        maybe_emit_json_stdout(contracts.suggestions_payload(args.kind, args.query, suggestions), True)
    else:
        for name in suggestions["exact"]:
            emit_human(name, quiet=args.quiet)
        if suggestions["similar"]:
            emit_human("Did you mean: " + ", ".join(suggestions["similar"]), quiet=args.quiet)
    return EXIT_SUCCESS


def run_add(args: argparse.Namespace, settings: Settings) -> int:
    with open_store(args, settings) as store:
        entry = create_entry(store, args.kind, collect_fields(args), today=settings.today())
    if args.json:
        maybe_emit_json_stdout(contracts.entry_payload("add", entry), True)
    else:
        emit_human(f"Created {render_entry_line(entry).strip()} in {entry.quarter}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_update(args: argparse.Namespace, settings: Settings) -> int:
    changes = collect_fields(args)
    if not changes:
        raise CliError("Nothing to update. Pass at least one field flag.", EXIT_COMMAND_ERROR)
    with open_store(args, settings) as store:
        entry = update_entry(store, args.entry_id, changes)
    if args.json:
        maybe_emit_json_stdout(contracts.entry_payload("update", entry), True)
    else:
        emit_human(f"Updated {render_entry_line(entry).strip()} in {entry.quarter}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_delete(args: argparse.Namespace, settings: Settings) -> int:
    with open_store(args, settings) as store:
        delete_entry(store, args.entry_id)
    emit_human(f"Deleted entry {args.entry_id}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_resequence(args: argparse.Namespace, settings: Settings) -> int:
    parse_quarter_label(args.quarter)
    with open_store(args, settings) as store:
        result = resequence_quarter(store, args.kind, args.quarter)
    if args.json:
        maybe_emit_json_stdout(contracts.resequence_payload(result), True)
    else:
        emit_human(f"{result.quarter}: {result.changed} of {result.total} entries renumbered", quiet=args.quiet)
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace, settings: Settings) -> int:
    output_path = Path(args.output)
    if output_path.exists() and not args.force:
        raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)
    quarter = args.quarter or current_quarter(settings.today())[0]
    parse_quarter_label(quarter)
    with open_store(args, settings) as store:
        entries = list_entries(store, args.kind, quarter=quarter)
    export_quarter(args.kind, quarter, entries, output_path)
    emit_human(f"Exported {len(entries)} entries to {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


COMMANDS = {
    "import": run_import,
    "fetch": run_fetch,
    "carry-forward": run_carry_forward,
    "list": run_list,
    "quarters": run_quarters,
    "suggest": run_suggest,
    "add": run_add,
    "update": run_update,
    "delete": run_delete,
    "resequence": run_resequence,
    "export": run_export,
}


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "version":
            return run_version()
        handler = COMMANDS.get(args.command)
        if handler is None:
            raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        eprint(f"Invalid environment setting: {exc}")
        return EXIT_COMMAND_ERROR
    level = "ERROR" if args.quiet else ("INFO" if args.verbose else settings.log_level)
    configure_logging(level, settings.log_json)
    try:
        return handler(args, settings)
    except (CliError, LedgerError, OSError) as exc:
        code = classify_exception(exc)
        if args.json:
            maybe_emit_json_stdout(contracts.error_payload(args.command, error_code(exc), str(exc)), True)
        eprint(str(exc))
        return code


if __name__ == "__main__":
    raise SystemExit(main())
