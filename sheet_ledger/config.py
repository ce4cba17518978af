"""Environment-driven settings for the CLI and the upload page."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path


DEFAULT_DB_PATH = "sheet-ledger.db"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_BUSY_TIMEOUT = 10.0


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_level: str = DEFAULT_LOG_LEVEL
    log_json: bool | None = None
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT
    today_override: date | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        today_raw = os.environ.get("SHEET_LEDGER_TODAY", "").strip()
        timeout_raw = os.environ.get("SHEET_LEDGER_BUSY_TIMEOUT", "").strip()
        return cls(
            db_path=Path(os.environ.get("SHEET_LEDGER_DB") or DEFAULT_DB_PATH),
            log_level=(os.environ.get("SHEET_LEDGER_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
            log_json=_env_flag("SHEET_LEDGER_LOG_JSON"),
            busy_timeout=float(timeout_raw) if timeout_raw else DEFAULT_BUSY_TIMEOUT,
            today_override=date.fromisoformat(today_raw) if today_raw else None,
        )

    def today(self) -> date:
        return self.today_override or date.today()
