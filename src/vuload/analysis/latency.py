from __future__ import annotations

import pandas as pd

from vuload.metrics import LoadTestMetrics

REQUEST_COLUMNS = [
    "user_name",
    "url",
    "ts",
    "response_time_ms",
    "response_code",
    "redirect",
    "redirect_url",
    "login_redirect",
    "login_request",
]


def request_frame(report: LoadTestMetrics) -> pd.DataFrame:
    """Flatten every request metric of ``report`` into one frame.

    Columns match the ``request_metrics`` table of the run store.
    """
    rows = [
        {
            "user_name": m.user,
            "url": m.url,
            "ts": m.timestamp,
            "response_time_ms": m.response_time_ms,
            "response_code": m.response_code,
            "redirect": m.redirect,
            "redirect_url": m.redirect_url,
            "login_redirect": m.login_redirect,
            "login_request": m.login_request,
        }
        for m in report.iter_metrics()
    ]
    return pd.DataFrame(rows, columns=REQUEST_COLUMNS)


def slowest_requests(frame: pd.DataFrame, limit: int = 10) -> pd.DataFrame:
    if frame.empty:
        return frame
    ordered = frame.sort_values("response_time_ms", ascending=False, kind="stable")
    return ordered.head(limit).reset_index(drop=True)


def url_summary(frame: pd.DataFrame) -> pd.DataFrame:
    columns = ["url", "requests", "mean_ms", "p95_ms", "max_ms", "client_errors", "server_errors"]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    work = frame.assign(
        client_error=frame["response_code"].between(400, 499),
        server_error=frame["response_code"].between(500, 599),
    )
    grouped = work.groupby("url")
    summary = pd.DataFrame(
        {
            "requests": grouped.size(),
            "mean_ms": grouped["response_time_ms"].mean(),
            "p95_ms": grouped["response_time_ms"].quantile(0.95),
            "max_ms": grouped["response_time_ms"].max(),
            "client_errors": grouped["client_error"].sum(),
            "server_errors": grouped["server_error"].sum(),
        }
    ).reset_index()
    return summary.sort_values("mean_ms", ascending=False).reset_index(drop=True)[columns]
