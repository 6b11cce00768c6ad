from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

import duckdb

from vuload.config import LoginConfig, RunConfig, TargetConfig, ThinkTimeConfig, WaveConfig
from vuload.errors import ReportWriteError, SetupError
from vuload.loadgen.runner import run_load_test
from vuload.metrics import LoadTestMetrics
from vuload.storage import Storage, write_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SETUP = 1
EXIT_WRITE = 2


def _read_urls(path: Path) -> list[str]:
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def _build_config(args: argparse.Namespace) -> RunConfig:
    urls = list(args.url or [])
    if args.urls_file:
        urls.extend(_read_urls(args.urls_file))
    if not urls:
        msg = "at least one target URL is required (--url or --urls-file)"
        raise ValueError(msg)
    return RunConfig(
        target=TargetConfig(urls=urls, timeout_sec=args.timeout, max_redirects=args.max_redirects),
        login=LoginConfig(url=args.login_url, password=args.password),
        waves=WaveConfig(
            total_users=args.users,
            wave_size=args.wave_size,
            cooldown_sec=args.wave_cooldown,
        ),
        think_time=ThinkTimeConfig(min_sec=args.think_min, max_sec=args.think_max),
        min_steps=args.min_steps,
        seed=args.seed,
        playbook_name=args.playbook_name,
        notes=args.notes,
    )


async def _print_progress(launched: int, total: int) -> None:
    print(f"Wave progress: {int(launched / total * 100)}%", flush=True)


def _print_summary(report: LoadTestMetrics) -> None:
    print(f"Run complete: {report.run_id}")
    print(
        f"  sessions={len(report.playbook_metrics)} responses={report.total_responses} "
        f"avg={report.avg_response_time}ms p95={report.p95_response_time_ms:.0f}ms"
    )
    print(
        f"  2xx={report.total_200s} 3xx={report.total_300s} 4xx={report.total_400s} "
        f"5xx={report.total_500s} redirects={report.total_redirects}"
    )
    print(f"  auth_failures={report.total_auth_failures} aborted={report.total_incomplete}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Virtual user load test harness")
    parser.add_argument("--url", action="append", help="Target URL (repeatable)")
    parser.add_argument("--urls-file", type=Path, help="File with one target URL per line")
    parser.add_argument("--login-url", required=True, help="Login endpoint URL")
    parser.add_argument("--password", default="password")
    parser.add_argument("--users", type=int, default=15)
    parser.add_argument("--wave-size", type=int, default=3)
    parser.add_argument("--wave-cooldown", type=float, default=20.0)
    parser.add_argument("--think-min", type=float, default=1.0)
    parser.add_argument("--think-max", type=float, default=1.0)
    parser.add_argument("--min-steps", type=int, default=3)
    parser.add_argument("--timeout", type=float, default=10.0)
    parser.add_argument("--max-redirects", type=int, default=10)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--playbook-name", default="default")
    parser.add_argument("--notes", default="")
    parser.add_argument("--output", type=Path, default=Path("report.json"))
    parser.add_argument("--db", type=Path, default=None, help="Also store the run in this DuckDB file")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    try:
        config = _build_config(args)
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_SETUP

    try:
        report = asyncio.run(run_load_test(config, progress=_print_progress))
    except SetupError as exc:
        logger.error("Run aborted: %s", exc)
        return EXIT_SETUP
    _print_summary(report)

    status = EXIT_OK
    try:
        write_report(report, args.output)
    except ReportWriteError as exc:
        logger.error("%s", exc)
        status = EXIT_WRITE
    if args.db is not None:
        try:
            Storage(args.db).save_run(config, report)
        except (ReportWriteError, OSError, duckdb.Error) as exc:
            logger.error("%s", exc)
            status = EXIT_WRITE
    return status


if __name__ == "__main__":
    raise SystemExit(main())
