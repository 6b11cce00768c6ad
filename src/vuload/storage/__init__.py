from __future__ import annotations

from pathlib import Path

from vuload.storage.duckdb_store import Storage
from vuload.storage.report_file import load_report, write_report


def default_storage() -> Storage:
    return Storage(Path(".vuload/vuload.duckdb"))


__all__ = ["Storage", "default_storage", "load_report", "write_report"]
