#!/usr/bin/env python3
from __future__ import annotations

import pandas as pd
import streamlit as st

from sheet_ledger.carry_forward import carry_forward
from sheet_ledger.config import Settings
from sheet_ledger.entries import list_entries, list_quarters
from sheet_ledger.errors import LedgerError
from sheet_ledger.importer import import_export
from sheet_ledger.loader import READ_ERRORS
from sheet_ledger.logging_config import configure_logging
from sheet_ledger.models import KINDS
from sheet_ledger.quarters import previous_quarter
from sheet_ledger.remote import MAX_REMOTE_FILE_MB, fetch_export
from sheet_ledger.store import EntryStore
from sheet_ledger.workbook import entries_frame

UPLOAD_EXTS = ["tsv", "txt", "xlsx"]


@st.cache_resource(show_spinner=False)
def load_settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    return settings


def open_store(settings: Settings) -> EntryStore:
    return EntryStore(settings.db_path, timeout=settings.busy_timeout)


def ensure_state() -> None:
    st.session_state.setdefault("last_result", None)
    st.session_state.setdefault("last_error", None)


def run_import(settings: Settings, raw: bytes, filename: str, kind: str | None) -> None:
    try:
        with open_store(settings) as store:
            result = import_export(store, raw, filename=filename, kind=kind, default_date=settings.today())
    except (LedgerError, *READ_ERRORS) as exc:
        st.session_state["last_error"] = f"{filename}: {exc}"
        st.session_state["last_result"] = None
        return
    discarded = ", ".join(f"{count} {reason.lower()}" for reason, count in sorted(result.discarded.items()))
    st.session_state["last_error"] = None
    st.session_state["last_result"] = (
        f"Imported {result.created} {result.kind} entries from {filename} "
        f"into {', '.join(result.quarters)}" + (f" (discarded: {discarded})" if discarded else "")
    )


def render_import_panel(settings: Settings) -> None:
    st.subheader("Import")
    kind_choice = st.radio("Layout", options=["detect", *KINDS], horizontal=True, key="import_kind")
    kind = None if kind_choice == "detect" else kind_choice
    upload = st.file_uploader("Sheet export", type=UPLOAD_EXTS, key="upload_input")
    url = st.text_input(
        "Or a shared sheet URL",
        key="url_input",
        placeholder="https://docs.google.com/spreadsheets/d/...",
    )
    st.caption(f"URL mode downloads the sheet as TSV and rejects files above {MAX_REMOTE_FILE_MB} MB.")

    if st.button("Import", type="primary", disabled=not upload and not url.strip()):
        if upload is not None:
            run_import(settings, upload.getvalue(), upload.name, kind)
        else:
            try:
                filename, raw = fetch_export(url)
            except LedgerError as exc:
                st.session_state["last_error"] = str(exc)
                st.session_state["last_result"] = None
            else:
                run_import(settings, raw, filename, kind)

    if st.session_state["last_error"]:
        st.error(st.session_state["last_error"])
    elif st.session_state["last_result"]:
        st.success(st.session_state["last_result"])


def render_carry_forward_panel(settings: Settings, kind: str, quarter: str, year: int) -> None:
    source_quarter, source_year = previous_quarter(quarter)
    st.subheader("Carry forward")
    st.caption(f"Copy unfinished {kind} entries from {source_quarter} into {quarter}. Entities already in {quarter} are skipped.")
    if st.button(f"Carry forward from {source_quarter}", key="carry_button"):
        try:
            with open_store(settings) as store:
                result = carry_forward(store, kind, source_quarter, source_year, quarter, year)
        except LedgerError as exc:
            st.error(str(exc))
            return
        if result.count:
            st.success(f"Copied {result.count}: {', '.join(result.copied_names)}")
        else:
            st.info(f"No unfinished entries to copy from {source_quarter}.")


def render_quarter_table(settings: Settings, kind: str, quarter: str) -> None:
    with open_store(settings) as store:
        entries = list_entries(store, kind, quarter=quarter)
    st.subheader(f"{quarter} ({len(entries)} entries)")
    if not entries:
        st.info("Nothing recorded for this quarter yet.")
        return
    frame: pd.DataFrame = entries_frame(kind, entries)
    st.dataframe(frame.loc[:, [column for column in frame.columns if column]], hide_index=True, width="stretch")


def main() -> None:
    settings = load_settings()
    ensure_state()

    st.title("sheet-ledger")
    st.caption("Upload the daily or survey project sheet, carry unfinished work into the new quarter, and review the numbering.")

    render_import_panel(settings)
    st.divider()

    kind = st.radio("Entries", options=list(KINDS), horizontal=True, key="view_kind")
    with open_store(settings) as store:
        quarters = list_quarters(store, kind, today=settings.today())
    labels = [label for label, _ in quarters]
    selected = st.selectbox("Quarter", options=labels, index=0, key="view_quarter")
    year = dict(quarters)[selected]

    render_carry_forward_panel(settings, kind, selected, year)
    render_quarter_table(settings, kind, selected)


if __name__ == "__main__":
    main()
