"""Error taxonomy shared by the importer, allocator and store."""

from __future__ import annotations


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class HeaderNotFound(LedgerError):
    """No known header signature inside the scan window. The import is rejected."""

    code = "header_not_found"


class NoValidRows(LedgerError):
    """The file parsed but produced zero canonical entries."""

    code = "no_valid_rows"


class InvalidQuarter(LedgerError):
    code = "invalid_quarter"


class EntryNotFound(LedgerError):
    code = "entry_not_found"


class StoreError(LedgerError):
    """Persistence failure. The surrounding transaction has already been rolled back."""

    code = "store_error"


class RemoteFetchError(LedgerError):
    code = "remote_fetch_error"


class InvalidEntry(LedgerError):
    code = "invalid_entry"
