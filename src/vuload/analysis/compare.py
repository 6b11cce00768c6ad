from __future__ import annotations

from dataclasses import dataclass
import pandas as pd


@dataclass(frozen=True, slots=True)
class Regression:
    metric: str
    delta_pct: float
    message: str


def compare_runs(base: pd.DataFrame, candidate: pd.DataFrame) -> list[Regression]:
    """Flag latency and error regressions between two request frames."""
    regressions: list[Regression] = []
    if base.empty or candidate.empty:
        return regressions
    base_avg = base["response_time_ms"].mean()
    cand_avg = candidate["response_time_ms"].mean()
    if base_avg > 0:
        delta = (cand_avg - base_avg) / base_avg
        if delta > 0.2:
            regressions.append(
                Regression(
                    metric="avg_response_time_ms",
                    delta_pct=delta * 100,
                    message="average response time increased materially",
                )
            )
    base_p95 = base["response_time_ms"].quantile(0.95)
    cand_p95 = candidate["response_time_ms"].quantile(0.95)
    if base_p95 > 0:
        delta = (cand_p95 - base_p95) / base_p95
        if delta > 0.2:
            regressions.append(
                Regression(
                    metric="p95_response_time_ms",
                    delta_pct=delta * 100,
                    message="p95 response time increased materially",
                )
            )
    base_err = base["response_code"].between(500, 599).mean()
    cand_err = candidate["response_code"].between(500, 599).mean()
    if base_err > 0:
        delta = (cand_err - base_err) / base_err
        if delta > 0.3:
            regressions.append(
                Regression(
                    metric="server_error_rate",
                    delta_pct=delta * 100,
                    message="server error rate regression detected",
                )
            )
    elif cand_err > 0:
        regressions.append(
            Regression(
                metric="server_error_rate",
                delta_pct=100.0,
                message="server errors appeared in candidate run",
            )
        )
    return regressions


def compare_auth_failures(base: pd.DataFrame, candidate: pd.DataFrame) -> list[Regression]:
    """Flag a rise in the share of sessions that failed to authenticate.

    Takes playbook frames as loaded from the run store.
    """
    if base.empty or candidate.empty:
        return []
    base_rate = base["failed_to_auth"].mean()
    cand_rate = candidate["failed_to_auth"].mean()
    if cand_rate <= base_rate:
        return []
    delta = ((cand_rate - base_rate) / base_rate * 100) if base_rate > 0 else 100.0
    return [
        Regression(
            metric="auth_failure_rate",
            delta_pct=delta,
            message="more sessions failed to authenticate",
        )
    ]
