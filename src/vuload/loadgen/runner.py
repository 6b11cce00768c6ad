from __future__ import annotations

import asyncio
import logging
import time
import uuid
from random import Random
from typing import Awaitable, Callable, Sequence

import httpx

from vuload.config import RunConfig
from vuload.errors import SetupError
from vuload.loadgen.client import make_client
from vuload.loadgen.playbook import SleepFn, run_playbook
from vuload.loadgen.selection import select_urls
from vuload.metrics import (
    ErrorType,
    LoadTestMetrics,
    PlaybookMetric,
    SessionError,
    SessionOutcome,
    aggregate_load_test,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]
ClientFactory = Callable[[], httpx.AsyncClient]


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run_load_test(
    config: RunConfig,
    *,
    client_factory: ClientFactory | None = None,
    rng: Random | None = None,
    progress: ProgressCallback | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> LoadTestMetrics:
    """Run every virtual user in ``config`` and return the aggregated report.

    Raises ``SetupError`` before anything is launched if a session client
    cannot be created.
    """
    factory = client_factory or (lambda: make_client(config.target))
    rng = rng or Random(config.seed)
    await _preflight(factory)

    report = LoadTestMetrics(run_id=config.run_id or _new_run_id())
    started_mono = time.perf_counter()
    await _launch_waves(config, report, factory, rng, progress, sleep)
    report.total_load_test_time = int(time.perf_counter() - started_mono)
    aggregate_load_test(report)
    logger.info(
        "Run %s complete: %d sessions, %d responses, %d auth failures, %d aborted",
        report.run_id,
        len(report.playbook_metrics),
        report.total_responses,
        report.total_auth_failures,
        report.total_incomplete,
    )
    return report


async def _preflight(factory: ClientFactory) -> None:
    try:
        client = factory()
    except Exception as exc:
        msg = f"Cannot initialize session state: {exc}"
        raise SetupError(msg) from exc
    await client.aclose()


async def _launch_waves(
    config: RunConfig,
    report: LoadTestMetrics,
    factory: ClientFactory,
    rng: Random,
    progress: ProgressCallback | None,
    sleep: SleepFn,
) -> None:
    tasks: list[asyncio.Task[None]] = []
    lock = asyncio.Lock()
    total = config.waves.total_users
    for i in range(total):
        if i % config.waves.wave_size == 0 and i != 0:
            if progress:
                await progress(i, total)
            await sleep(config.waves.cooldown_sec)
        urls = select_urls(config.target.urls, rng, config.min_steps)
        tasks.append(
            asyncio.create_task(
                _run_session(config, config.user_name(i), urls, report, factory, rng, lock, sleep)
            )
        )
    # waves pace launches only; earlier waves may still be running here
    if tasks:
        await asyncio.gather(*tasks)
    if progress and total:
        await progress(total, total)


async def _run_session(
    config: RunConfig,
    user: str,
    urls: Sequence[str],
    report: LoadTestMetrics,
    factory: ClientFactory,
    rng: Random,
    lock: asyncio.Lock,
    sleep: SleepFn,
) -> None:
    outcome: SessionOutcome
    try:
        client = factory()
    except Exception as exc:
        logger.error("Cannot create client for %s: %s", user, exc)
        partial = PlaybookMetric(user=user, playbook_name=config.playbook_name, incomplete=True, error=str(exc))
        partial.finalize(0)
        outcome = SessionError(user=user, error_type=ErrorType.OTHER, message=str(exc), url="", partial=partial)
    else:
        async with client:
            outcome = await run_playbook(client, user, urls, config, rng, sleep)
    async with lock:
        report.add(outcome)
