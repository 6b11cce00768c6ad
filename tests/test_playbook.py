from __future__ import annotations

import asyncio
from random import Random

from fakes import BASE, FakeSite, make_config, no_sleep
from vuload.config import ThinkTimeConfig
from vuload.loadgen.playbook import run_playbook, think_time
from vuload.metrics import ErrorType, PlaybookMetric, SessionError


def _play(site: FakeSite, urls: list[str], sleep=no_sleep, **overrides):
    config = make_config(urls, **overrides)

    async def go():
        async with site.client(config) as client:
            return await run_playbook(client, "virtual_user_0", urls, config, Random(1), sleep)

    return asyncio.run(go())


def test_three_plain_steps(site: FakeSite) -> None:
    urls = [f"{BASE}/a", f"{BASE}/b", f"{BASE}/c"]
    result = _play(site, urls)
    assert isinstance(result, PlaybookMetric)
    assert result.total_requests == 3
    assert [m.url for m in result.metrics] == urls
    assert result.failed_to_auth is False
    assert result.incomplete is False
    total = sum(m.response_time_ms for m in result.metrics)
    assert result.total_response_time_ms == total
    assert result.avg_response_time_ms == total // 3
    assert result.finalized


def test_login_redirect_triggers_one_login(site: FakeSite) -> None:
    urls = [f"{BASE}/private/a", f"{BASE}/private/b", f"{BASE}/c"]
    result = _play(site, urls)
    assert isinstance(result, PlaybookMetric)
    assert result.failed_to_auth is False
    assert len(site.login_posts()) == 1
    assert [m.login_request for m in result.metrics] == [False, True, False, False]
    assert result.metrics[0].login_redirect is True
    # after login the cookie carries the session
    assert result.metrics[2].redirect is False
    assert result.metrics[2].response_code == 200


def test_second_login_redirect_fails_auth_and_stops(site: FakeSite) -> None:
    site.login_sets_cookie = False
    urls = [f"{BASE}/private/a", f"{BASE}/private/b", f"{BASE}/c", f"{BASE}/d"]
    result = _play(site, urls)
    assert isinstance(result, PlaybookMetric)
    assert result.failed_to_auth is True
    assert len(site.login_posts()) == 1
    assert [m.url for m in result.metrics] == [f"{BASE}/private/a", f"{BASE}/login", f"{BASE}/private/b"]
    assert all(r.url.path not in ("/c", "/d") for r in site.requests)
    assert result.total_requests == 3


def test_think_time_between_every_step(site: FakeSite) -> None:
    pauses: list[float] = []

    async def record(seconds: float) -> None:
        pauses.append(seconds)

    urls = [f"{BASE}/private/a", f"{BASE}/b", f"{BASE}/c"]
    _play(site, urls, sleep=record, think_time=ThinkTimeConfig(min_sec=2.0, max_sec=2.0))
    # one before the login plus one after each step
    assert pauses == [2.0, 2.0, 2.0, 2.0]


def test_no_pause_after_auth_failure(site: FakeSite) -> None:
    site.login_sets_cookie = False
    pauses: list[float] = []

    async def record(seconds: float) -> None:
        pauses.append(seconds)

    _play(site, [f"{BASE}/private/a", f"{BASE}/private/b"], sleep=record)
    assert len(pauses) == 2


def test_transport_failure_returns_session_error(site: FakeSite) -> None:
    site.down_paths.add("/down")
    urls = [f"{BASE}/a", f"{BASE}/down", f"{BASE}/c"]
    result = _play(site, urls)
    assert isinstance(result, SessionError)
    assert result.error_type is ErrorType.CONNECT
    assert result.url == f"{BASE}/down"
    assert result.partial.incomplete is True
    assert result.partial.total_requests == 1
    assert result.partial.metrics[0].url == f"{BASE}/a"
    assert "connection refused" in result.partial.error


def test_think_time_stays_in_bounds() -> None:
    rng = Random(5)
    config = ThinkTimeConfig(min_sec=0.5, max_sec=1.5)
    for _ in range(100):
        assert 0.5 <= think_time(config, rng) <= 1.5
