from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from random import Random
from typing import Awaitable, Callable, Sequence

import httpx

from vuload.config import RunConfig, ThinkTimeConfig
from vuload.errors import TransportFailure
from vuload.loadgen.client import send_request
from vuload.metrics import PlaybookMetric, SessionError, SessionOutcome

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class SessionState(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    AUTH_FAILED = "auth_failed"


def think_time(config: ThinkTimeConfig, rng: Random) -> float:
    return rng.uniform(config.min_sec, config.max_sec)


async def run_playbook(
    client: httpx.AsyncClient,
    user: str,
    urls: Sequence[str],
    config: RunConfig,
    rng: Random,
    sleep: SleepFn = asyncio.sleep,
) -> SessionOutcome:
    """Drive one virtual user through ``urls`` in order.

    The first redirect to the login page triggers a login submission; a second
    one means the login did not stick, so the session is flagged and stops.
    A transport failure ends only this session and is returned as a
    ``SessionError`` carrying the partial metrics.
    """
    playbook = PlaybookMetric(user=user, playbook_name=config.playbook_name)
    state = SessionState.NOT_AUTHENTICATED
    started = time.perf_counter()
    logger.info("Playbook started for %s (%d steps)", user, len(urls))
    try:
        for url in urls:
            outcome = await send_request(
                client,
                user,
                url,
                config.login,
                playbook.metrics,
                max_redirects=config.target.max_redirects,
            )
            if outcome.redirected_to_login:
                if state is SessionState.NOT_AUTHENTICATED:
                    state = SessionState.AUTHENTICATING
                    await sleep(think_time(config.think_time, rng))
                    await send_request(
                        client,
                        user,
                        config.login.url,
                        config.login,
                        playbook.metrics,
                        submit_login=True,
                        max_redirects=config.target.max_redirects,
                    )
                    state = SessionState.AUTHENTICATED
                    logger.info("%s logged in after redirect from %s", user, url)
                else:
                    state = SessionState.AUTH_FAILED
                    playbook.failed_to_auth = True
                    logger.warning("%s redirected to login again at %s; stopping playbook", user, url)
                    break
            await sleep(think_time(config.think_time, rng))
    except TransportFailure as exc:
        playbook.incomplete = True
        playbook.error = str(exc)
        playbook.finalize(time.perf_counter() - started)
        logger.error("Playbook aborted for %s: %s", user, exc)
        return SessionError(
            user=user,
            error_type=exc.error_type,
            message=exc.message,
            url=exc.url,
            partial=playbook,
        )

    playbook.finalize(time.perf_counter() - started)
    logger.info(
        "Playbook ended for %s: %d requests, state=%s",
        user,
        playbook.total_requests,
        state.value,
    )
    return playbook
