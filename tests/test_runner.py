from __future__ import annotations

import asyncio
from random import Random

import httpx
import pytest

from fakes import BASE, FakeSite, make_config
from vuload.config import WaveConfig
from vuload.errors import SetupError
from vuload.loadgen import runner
from vuload.loadgen.client import make_client
from vuload.loadgen.runner import run_load_test
from vuload.metrics import ErrorType

URLS = [f"{BASE}/a", f"{BASE}/b", f"{BASE}/c", f"{BASE}/private/d", f"{BASE}/e"]


async def _yield(_: float) -> None:
    await asyncio.sleep(0)


def test_fifty_sessions_are_all_collected(site: FakeSite) -> None:
    config = make_config(URLS, waves=WaveConfig(total_users=50, wave_size=50, cooldown_sec=0.0))
    for _ in range(3):
        report = asyncio.run(run_load_test(config, client_factory=site.factory(config), sleep=_yield))
        users = [p.user for p in report.playbook_metrics]
        assert len(users) == 50
        assert sorted(users) == sorted(f"virtual_user_{i}" for i in range(50))
        assert report.total_responses == sum(p.total_requests for p in report.playbook_metrics)


def test_waves_pace_launches_and_report_progress(site: FakeSite) -> None:
    pauses: list[float] = []
    progress: list[tuple[int, int]] = []

    async def sleep(seconds: float) -> None:
        pauses.append(seconds)
        await asyncio.sleep(0)

    async def on_progress(launched: int, total: int) -> None:
        progress.append((launched, total))

    config = make_config(URLS, waves=WaveConfig(total_users=7, wave_size=3, cooldown_sec=20.0))
    report = asyncio.run(
        run_load_test(config, client_factory=site.factory(config), sleep=sleep, progress=on_progress)
    )
    assert progress == [(3, 7), (6, 7), (7, 7)]
    assert pauses.count(20.0) == 2
    assert len(report.playbook_metrics) == 7


def test_run_report_totals_match_sessions(site: FakeSite) -> None:
    site.status_for["/e"] = 500
    config = make_config(URLS, waves=WaveConfig(total_users=6, wave_size=2, cooldown_sec=0.0))
    report = asyncio.run(run_load_test(config, client_factory=site.factory(config), rng=Random(9), sleep=_yield))
    metrics = [m for p in report.playbook_metrics for m in p.metrics]
    assert report.total_responses == len(metrics)
    assert report.total_500s == sum(1 for m in metrics if m.response_code == 500)
    assert report.total_auth_failures == 0
    assert report.total_incomplete == 0
    assert report.avg_response_time == sum(m.response_time_ms for m in metrics) // len(metrics)


def test_transport_failure_only_aborts_its_session(site: FakeSite) -> None:
    site.down_paths.add("/down")
    config = make_config([f"{BASE}/down"], waves=WaveConfig(total_users=2, wave_size=3, cooldown_sec=0.0), min_steps=1)
    report = asyncio.run(run_load_test(config, client_factory=site.factory(config), sleep=_yield))
    assert len(report.playbook_metrics) == 2
    assert len(report.session_errors) == 2
    assert report.total_incomplete == 2
    assert all(e.error_type is ErrorType.CONNECT for e in report.session_errors)


def test_setup_failure_aborts_before_launch(site: FakeSite) -> None:
    config = make_config(URLS, waves=WaveConfig(total_users=4, wave_size=2, cooldown_sec=0.0))

    def broken() -> httpx.AsyncClient:
        raise OSError("no cookie store")

    with pytest.raises(SetupError):
        asyncio.run(run_load_test(config, client_factory=broken))
    assert site.requests == []


def test_client_failure_for_one_session_is_contained(site: FakeSite) -> None:
    config = make_config(URLS, waves=WaveConfig(total_users=3, wave_size=3, cooldown_sec=0.0))
    calls = {"n": 0}

    def flaky() -> httpx.AsyncClient:
        calls["n"] += 1
        # first call is the preflight, the third builds virtual_user_1
        if calls["n"] == 3:
            raise OSError("too many open files")
        return site.client(config)

    report = asyncio.run(run_load_test(config, client_factory=flaky, sleep=_yield))
    assert len(report.playbook_metrics) == 3
    assert [e.error_type for e in report.session_errors] == [ErrorType.OTHER]
    assert report.total_incomplete == 1


def test_zero_users_gives_empty_report(site: FakeSite) -> None:
    config = make_config(URLS, waves=WaveConfig(total_users=0))
    report = asyncio.run(run_load_test(config, client_factory=site.factory(config)))
    assert report.playbook_metrics == []
    assert report.total_responses == 0
    assert report.avg_response_time == 0


def test_run_id_from_config(site: FakeSite) -> None:
    config = make_config(URLS, run_id="fixed-run")
    report = asyncio.run(run_load_test(config, client_factory=site.factory(config), sleep=_yield))
    assert report.run_id == "fixed-run"


def test_unparseable_url_only_aborts_its_sessions(site: FakeSite, monkeypatch) -> None:
    config = make_config(URLS[:2], waves=WaveConfig(total_users=3, wave_size=3, cooldown_sec=0.0))
    monkeypatch.setattr(runner, "select_urls", lambda urls, rng, min_steps: [f"{BASE}/a", "http://[::1"])
    report = asyncio.run(run_load_test(config, client_factory=site.factory(config), sleep=_yield))
    assert len(report.playbook_metrics) == 3
    assert [e.error_type for e in report.session_errors] == [ErrorType.OTHER] * 3
    assert report.total_incomplete == 3
    # the step before the bad URL still counts
    assert report.total_responses == 3


def test_next_wave_launches_while_earlier_sessions_run() -> None:
    config = make_config([f"{BASE}/a"], waves=WaveConfig(total_users=4, wave_size=2, cooldown_sec=5.0), min_steps=1)
    finished_when_second_wave_started: list[list[int]] = []

    async def scenario():
        release = asyncio.Event()
        finished: list[int] = []
        built = 0

        def factory() -> httpx.AsyncClient:
            nonlocal built
            # client 0 is the preflight check, 1 and 2 the first wave
            index = built
            built += 1

            async def handler(request: httpx.Request) -> httpx.Response:
                if index in (1, 2):
                    await release.wait()
                    finished.append(index)
                else:
                    finished_when_second_wave_started.append(list(finished))
                    release.set()
                return httpx.Response(200)

            return make_client(config.target, transport=httpx.MockTransport(handler))

        return await asyncio.wait_for(run_load_test(config, client_factory=factory, sleep=_yield), timeout=5)

    report = asyncio.run(scenario())
    assert len(report.playbook_metrics) == 4
    assert finished_when_second_wave_started[0] == []
    assert report.session_errors == []
