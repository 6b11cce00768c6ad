from __future__ import annotations

import json
import logging
from pathlib import Path

from vuload.errors import ReportWriteError
from vuload.metrics import LoadTestMetrics

logger = logging.getLogger(__name__)


def write_report(report: LoadTestMetrics, path: Path) -> int:
    """Write ``report`` as one JSON document and return the bytes written."""
    payload = json.dumps(report.to_dict())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        written = path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot write report to {path}: {exc}"
        raise ReportWriteError(msg) from exc
    logger.info("%d bytes written to %s", written, path)
    return written


def load_report(path: Path) -> LoadTestMetrics:
    return LoadTestMetrics.from_dict(json.loads(path.read_text(encoding="utf-8")))
