from __future__ import annotations

import logging

import numpy as np

from vuload.metrics.models import LoadTestMetrics

logger = logging.getLogger(__name__)


def aggregate_load_test(report: LoadTestMetrics) -> LoadTestMetrics:
    """Recompute the run-wide totals of ``report`` from its playbook metrics.

    Every derived field is rebuilt from scratch, so aggregating the same
    report twice yields the same totals.

    A request whose final status is 3xx counts toward ``total_300s`` and also
    adds to ``total_redirects`` on top of its redirect flag; a followed
    redirect that ended on a 200 only counts once, through the flag.
    """
    latencies: list[int] = []
    total_redirects = 0
    total_200s = total_300s = total_400s = total_500s = 0
    unclassified = 0

    for playbook in report.playbook_metrics:
        for metric in playbook.metrics:
            latencies.append(metric.response_time_ms)
            if metric.redirect:
                total_redirects += 1
            code = metric.response_code
            if 200 <= code < 300:
                total_200s += 1
            elif 300 <= code < 400:
                total_300s += 1
                total_redirects += 1
            elif 400 <= code < 500:
                total_400s += 1
            elif 500 <= code < 600:
                total_500s += 1
            else:
                unclassified += 1
                logger.warning("Unclassified response code %s for %s (%s)", code, metric.url, metric.user)

    total_responses = len(latencies)
    report.total_responses = total_responses
    report.total_redirects = total_redirects
    report.total_auth_failures = sum(1 for p in report.playbook_metrics if p.failed_to_auth)
    report.total_incomplete = sum(1 for p in report.playbook_metrics if p.incomplete)
    report.total_200s = total_200s
    report.total_300s = total_300s
    report.total_400s = total_400s
    report.total_500s = total_500s
    report.total_unclassified = unclassified
    if latencies:
        report.avg_response_time = sum(latencies) // total_responses
        report.p50_response_time_ms = float(np.percentile(latencies, 50))
        report.p95_response_time_ms = float(np.percentile(latencies, 95))
        report.p99_response_time_ms = float(np.percentile(latencies, 99))
    else:
        report.avg_response_time = 0
        report.p50_response_time_ms = report.p95_response_time_ms = report.p99_response_time_ms = 0.0
    return report
