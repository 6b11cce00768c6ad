from __future__ import annotations

from vuload.analysis.compare import Regression, compare_auth_failures, compare_runs
from vuload.analysis.latency import request_frame, slowest_requests, url_summary

__all__ = [
    "Regression",
    "compare_auth_failures",
    "compare_runs",
    "request_frame",
    "slowest_requests",
    "url_summary",
]
