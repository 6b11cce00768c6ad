from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from vuload.config import LoginConfig, TargetConfig
from vuload.errors import TransportFailure
from vuload.loadgen.redirects import RedirectTrace
from vuload.metrics import ErrorType, RequestMetric

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    metric: RequestMetric
    redirected_to_login: bool


def make_client(target: TargetConfig, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Build one session's client: its own cookie jar, redirects left to the caller."""
    return httpx.AsyncClient(
        headers=dict(target.headers),
        timeout=target.timeout_sec,
        follow_redirects=False,
        cookies=httpx.Cookies(),
        transport=transport,
    )


async def send_request(
    client: httpx.AsyncClient,
    user: str,
    url: str,
    login: LoginConfig,
    metrics: list[RequestMetric],
    *,
    submit_login: bool = False,
    max_redirects: int = 10,
) -> RequestOutcome:
    """Issue one request for ``user`` and append its metric to ``metrics``.

    Redirects are followed hop by hop so the chain can be checked against the
    login URL. At most ``max_redirects`` requests go out; past that the next
    hop is recorded but the last response received is kept.

    Raises ``TransportFailure`` when no response could be obtained, including
    when ``url`` cannot be parsed.
    """
    trace = RedirectTrace(login.url)
    start_mono = time.perf_counter()
    try:
        if submit_login:
            request = client.build_request("POST", url, data=login.form_for(user))
        else:
            request = client.build_request("GET", url)
        response = await client.send(request, follow_redirects=False)
        sent = 1
        while response.next_request is not None:
            trace.record(response.next_request.url)
            if sent >= max_redirects:
                break
            response = await client.send(response.next_request, follow_redirects=False)
            sent += 1
    except httpx.TimeoutException as exc:
        raise TransportFailure(url, ErrorType.TIMEOUT, str(exc)) from exc
    except httpx.ConnectError as exc:
        raise TransportFailure(url, ErrorType.CONNECT, str(exc)) from exc
    except httpx.ReadError as exc:
        raise TransportFailure(url, ErrorType.READ, str(exc)) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportFailure(url, ErrorType.OTHER, str(exc)) from exc
    latency_ms = int((time.perf_counter() - start_mono) * 1000)

    metric = RequestMetric(
        url=url,
        user=user,
        timestamp=datetime.now(timezone.utc),
        response_time_ms=latency_ms,
        response_code=response.status_code,
        redirect=trace.redirected,
        redirect_url=trace.final_url,
        login_redirect=trace.login_hit,
        login_request=submit_login,
    )
    metrics.append(metric)
    logger.debug(
        "%s %s -> %s in %dms (%d hops)",
        request.method,
        url,
        response.status_code,
        latency_ms,
        len(trace.hops),
    )
    return RequestOutcome(metric=metric, redirected_to_login=trace.login_hit)
