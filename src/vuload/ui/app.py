from __future__ import annotations

import asyncio
import json

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from vuload.analysis import (
    compare_auth_failures,
    compare_runs,
    request_frame,
    slowest_requests,
    url_summary,
)
from vuload.config import LoginConfig, RunConfig, TargetConfig, ThinkTimeConfig, WaveConfig
from vuload.errors import ReportWriteError, SetupError
from vuload.loadgen.runner import run_load_test
from vuload.metrics import LoadTestMetrics
from vuload.storage import default_storage


st.set_page_config(page_title="Virtual User Load Test", layout="wide")

storage = default_storage()


@st.cache_data
def _load_runs() -> pd.DataFrame:
    return storage.list_runs()


def _render_header() -> None:
    st.title("Virtual User Load Test")
    st.caption("Playbook replays, login detection, and run reports for HTTP services.")


def _build_config() -> RunConfig | None:
    with st.sidebar:
        st.header("Run Configuration")
        urls_text = st.text_area("Target URLs (one per line)", "")
        login_url = st.text_input("Login URL", "")
        users = st.slider("Virtual users", 1, 200, 15)
        wave_size = st.slider("Wave size", 1, 50, 3)
        cooldown = st.number_input("Wave cooldown (sec)", min_value=0.0, value=20.0)
        think_min = st.number_input("Think time min (sec)", min_value=0.0, value=1.0)
        think_max = st.number_input("Think time max (sec)", min_value=0.0, value=1.0)
        min_steps = st.number_input("Minimum steps", min_value=1, value=3)
        fixed_seed = st.checkbox("Fixed seed", value=True)
        seed = st.number_input("Seed", min_value=0, max_value=9999, value=7, disabled=not fixed_seed)
        notes = st.text_input("Notes", "")

    urls = [line.strip() for line in urls_text.splitlines() if line.strip()]
    if not urls or not login_url:
        return None
    try:
        return RunConfig(
            target=TargetConfig(urls=urls),
            login=LoginConfig(url=login_url),
            waves=WaveConfig(total_users=users, wave_size=wave_size, cooldown_sec=cooldown),
            think_time=ThinkTimeConfig(min_sec=think_min, max_sec=think_max),
            min_steps=int(min_steps),
            seed=int(seed) if fixed_seed else None,
            notes=notes,
        )
    except ValueError as exc:
        st.sidebar.error(str(exc))
        return None


def _run_button(config: RunConfig | None) -> LoadTestMetrics | None:
    if config is None:
        st.sidebar.info("Enter target URLs and a login URL to start a run")
        return None
    if not st.sidebar.button("Start run"):
        return None
    progress = st.sidebar.progress(0, text="Launching waves...")

    async def on_progress(launched: int, total: int) -> None:
        progress.progress(min(1.0, launched / total))

    try:
        report = asyncio.run(run_load_test(config, progress=on_progress))
    except SetupError as exc:
        st.sidebar.error(str(exc))
        return None
    try:
        storage.save_run(config, report)
    except ReportWriteError as exc:
        # the finished run is still shown, only its history entry is missing
        st.sidebar.error(str(exc))
        return report
    st.sidebar.success(f"Run completed: {report.run_id}")
    st.cache_data.clear()
    return report


def _plot_status_buckets(report: LoadTestMetrics) -> go.Figure:
    labels = ["2xx", "3xx", "4xx", "5xx", "other"]
    values = [
        report.total_200s,
        report.total_300s,
        report.total_400s,
        report.total_500s,
        report.total_unclassified,
    ]
    fig = go.Figure(go.Bar(x=labels, y=values, name="Responses"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), title="Status codes")
    return fig


def _plot_latency_hist(requests: pd.DataFrame) -> go.Figure:
    if requests.empty:
        return go.Figure()
    fig = px.histogram(requests, x="response_time_ms", nbins=30, title="Response time distribution")
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_user_latency(report: LoadTestMetrics) -> go.Figure:
    users = pd.DataFrame(
        [
            {
                "user": p.user,
                "avg_ms": p.avg_response_time_ms,
                "outcome": "auth failed" if p.failed_to_auth else ("aborted" if p.incomplete else "ok"),
            }
            for p in report.playbook_metrics
        ]
    )
    if users.empty:
        return go.Figure()
    fig = px.bar(users, x="user", y="avg_ms", color="outcome", title="Average response time per user")
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_timeline(requests: pd.DataFrame) -> go.Figure:
    if requests.empty:
        return go.Figure()
    fig = px.scatter(
        requests,
        x="ts",
        y="response_time_ms",
        color="user_name",
        title="Requests over time",
    )
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), showlegend=False)
    return fig


def _render_totals(report: LoadTestMetrics) -> None:
    cols = st.columns(6)
    cols[0].metric("Sessions", len(report.playbook_metrics))
    cols[1].metric("Responses", report.total_responses)
    cols[2].metric("Avg (ms)", report.avg_response_time)
    cols[3].metric("p95 (ms)", f"{report.p95_response_time_ms:.0f}")
    cols[4].metric("Auth failures", report.total_auth_failures)
    cols[5].metric("Aborted", report.total_incomplete)
    for error in report.session_errors:
        st.warning(f"{error.user}: {error.error_type.value} error at {error.url} ({error.message})")


def _render_report(report: LoadTestMetrics) -> None:
    requests = request_frame(report)
    st.subheader(f"Run {report.run_id}")
    st.caption(f"Started {report.timestamp.isoformat()}, {report.total_load_test_time}s total")
    _render_totals(report)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(_plot_status_buckets(report), use_container_width=True)
    with col2:
        st.plotly_chart(_plot_latency_hist(requests), use_container_width=True)

    col3, col4 = st.columns(2)
    with col3:
        st.plotly_chart(_plot_user_latency(report), use_container_width=True)
    with col4:
        st.plotly_chart(_plot_timeline(requests), use_container_width=True)

    st.subheader("Per URL")
    st.dataframe(url_summary(requests), use_container_width=True)
    limit = st.slider("Slowest requests", 5, 100, 10)
    st.dataframe(slowest_requests(requests, limit), use_container_width=True)


def _render_comparison(runs: pd.DataFrame) -> None:
    if runs.empty:
        return
    run_ids = runs["run_id"].tolist()
    st.subheader("Run Comparison")
    base = st.selectbox("Baseline run", run_ids, index=0)
    candidate = st.selectbox("Candidate run", run_ids, index=min(1, len(run_ids) - 1))
    if base == candidate:
        st.info("Select two different runs for comparison")
        return
    base_df = storage.load_request_metrics(base)
    cand_df = storage.load_request_metrics(candidate)

    fig = go.Figure()
    fig.add_trace(go.Histogram(x=base_df["response_time_ms"], name=f"{base}", opacity=0.6))
    fig.add_trace(go.Histogram(x=cand_df["response_time_ms"], name=f"{candidate}", opacity=0.6))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10), barmode="overlay")
    st.plotly_chart(fig, use_container_width=True)

    regressions = compare_runs(base_df, cand_df)
    regressions += compare_auth_failures(
        storage.load_playbook_metrics(base),
        storage.load_playbook_metrics(candidate),
    )
    if not regressions:
        st.success("No regressions detected")
    else:
        for reg in regressions:
            st.error(f"{reg.message} ({reg.delta_pct:.1f}% on {reg.metric})")


def main() -> None:
    _render_header()
    config = _build_config()
    finished = _run_button(config)
    if finished is not None:
        _render_report(finished)
        return

    uploaded = st.file_uploader("Open a JSON report", type="json")
    if uploaded is not None:
        _render_report(LoadTestMetrics.from_dict(json.load(uploaded)))
        return

    runs = _load_runs()
    if runs.empty:
        st.info("No runs yet. Start one from the sidebar or open a report file.")
        return
    selected_run = st.selectbox("Select run", runs["run_id"].tolist())
    report = storage.load_report(selected_run)
    if report is not None:
        _render_report(report)
    _render_comparison(runs)


if __name__ == "__main__":
    main()
