from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import duckdb
import pandas as pd

from vuload.config import RunConfig
from vuload.errors import ReportWriteError
from vuload.metrics import LoadTestMetrics


def _naive_utc(value: datetime) -> datetime:
    # TIMESTAMP columns hold UTC without an offset
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(slots=True)
class Storage:
    """Run history kept in DuckDB, one row set per finished load test."""

    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    config_json TEXT,
                    report_json TEXT,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS playbook_metrics (
                    run_id TEXT,
                    user_name TEXT,
                    playbook_name TEXT,
                    failed_to_auth BOOLEAN,
                    incomplete BOOLEAN,
                    total_response_time_ms BIGINT,
                    avg_response_time_ms BIGINT,
                    total_requests INTEGER,
                    total_playbook_time BIGINT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS request_metrics (
                    run_id TEXT,
                    user_name TEXT,
                    url TEXT,
                    ts TIMESTAMP,
                    response_time_ms BIGINT,
                    response_code INTEGER,
                    redirect BOOLEAN,
                    redirect_url TEXT,
                    login_redirect BOOLEAN,
                    login_request BOOLEAN
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(self, config: RunConfig, report: LoadTestMetrics) -> None:
        """Store one finished run. Any storage failure surfaces as ``ReportWriteError``."""
        config_json = json.dumps(config.to_metadata())
        report_json = json.dumps(report.to_dict())
        try:
            exists = self.run_exists(report.run_id)
        except (OSError, duckdb.Error) as exc:
            msg = f"Cannot store run {report.run_id}: {exc}"
            raise ReportWriteError(msg) from exc
        if exists:
            msg = f"Run {report.run_id} already exists"
            raise ReportWriteError(msg)
        try:
            with self._connect() as con:
                con.execute(
                    "INSERT INTO run_meta VALUES (?, ?, ?, ?, ?)",
                    [report.run_id, _naive_utc(report.timestamp), config_json, report_json, config.notes],
                )
                playbook_df = pd.DataFrame(
                    [
                        {
                            "run_id": report.run_id,
                            "user_name": p.user,
                            "playbook_name": p.playbook_name,
                            "failed_to_auth": p.failed_to_auth,
                            "incomplete": p.incomplete,
                            "total_response_time_ms": p.total_response_time_ms,
                            "avg_response_time_ms": p.avg_response_time_ms,
                            "total_requests": p.total_requests,
                            "total_playbook_time": p.total_playbook_time,
                        }
                        for p in report.playbook_metrics
                    ]
                )
                if not playbook_df.empty:
                    con.execute("INSERT INTO playbook_metrics SELECT * FROM playbook_df")
                request_df = pd.DataFrame(
                    [
                        {
                            "run_id": report.run_id,
                            "user_name": m.user,
                            "url": m.url,
                            "ts": _naive_utc(m.timestamp),
                            "response_time_ms": m.response_time_ms,
                            "response_code": m.response_code,
                            "redirect": m.redirect,
                            "redirect_url": m.redirect_url,
                            "login_redirect": m.login_redirect,
                            "login_request": m.login_request,
                        }
                        for m in report.iter_metrics()
                    ]
                )
                if not request_df.empty:
                    con.execute("INSERT INTO request_metrics SELECT * FROM request_df")
        except (OSError, duckdb.Error) as exc:
            msg = f"Cannot store run {report.run_id}: {exc}"
            raise ReportWriteError(msg) from exc

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT run_id, created_at, notes FROM run_meta ORDER BY created_at DESC"
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_report(self, run_id: str) -> LoadTestMetrics | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT report_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return LoadTestMetrics.from_dict(json.loads(row[0]))

    def load_playbook_metrics(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM playbook_metrics WHERE run_id = ? ORDER BY user_name",
                [run_id],
            ).fetchdf()

    def load_request_metrics(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM request_metrics WHERE run_id = ? ORDER BY ts",
                [run_id],
            ).fetchdf()
