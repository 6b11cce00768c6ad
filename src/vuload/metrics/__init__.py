from __future__ import annotations

from vuload.metrics.aggregator import aggregate_load_test
from vuload.metrics.models import (
    ErrorType,
    LoadTestMetrics,
    PlaybookMetric,
    RequestMetric,
    SessionError,
    SessionOutcome,
)

__all__ = [
    "ErrorType",
    "LoadTestMetrics",
    "PlaybookMetric",
    "RequestMetric",
    "SessionError",
    "SessionOutcome",
    "aggregate_load_test",
]
