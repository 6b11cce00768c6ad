from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping, Union


class ErrorType(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    READ = "read"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class RequestMetric:
    url: str
    user: str
    timestamp: datetime
    response_time_ms: int
    response_code: int
    redirect: bool = False
    redirect_url: str = ""
    login_redirect: bool = False
    login_request: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "UrlString": self.url,
            "User": self.user,
            "Timestamp": self.timestamp.isoformat(),
            "ResponseTimeMs": self.response_time_ms,
            "ResponseCode": self.response_code,
            "Redirect": self.redirect,
            "RedirectUrl": self.redirect_url,
            "LoginRedirect": self.login_redirect,
            "LoginRequest": self.login_request,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RequestMetric:
        return cls(
            url=data["UrlString"],
            user=data["User"],
            timestamp=datetime.fromisoformat(data["Timestamp"]),
            response_time_ms=int(data["ResponseTimeMs"]),
            response_code=int(data["ResponseCode"]),
            redirect=bool(data.get("Redirect", False)),
            redirect_url=data.get("RedirectUrl", ""),
            login_redirect=bool(data.get("LoginRedirect", False)),
            login_request=bool(data.get("LoginRequest", False)),
        )


@dataclass(slots=True)
class PlaybookMetric:
    """One virtual user's run.

    Built up by its own session runner and finalized exactly once when the
    session ends; read-only afterwards.
    """

    user: str
    playbook_name: str
    failed_to_auth: bool = False
    metrics: list[RequestMetric] = field(default_factory=list)
    total_response_time_ms: int = 0
    avg_response_time_ms: int = 0
    total_requests: int = 0
    total_playbook_time: int = 0
    incomplete: bool = False
    error: str = ""
    finalized: bool = False

    def finalize(self, duration_sec: float) -> None:
        if self.finalized:
            msg = f"Playbook metrics for {self.user} already finalized"
            raise RuntimeError(msg)
        total = sum(m.response_time_ms for m in self.metrics)
        self.total_response_time_ms = total
        self.total_requests = len(self.metrics)
        # integer division, matching the millisecond resolution of the samples
        self.avg_response_time_ms = total // self.total_requests if self.total_requests else 0
        self.total_playbook_time = int(duration_sec)
        self.finalized = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "PlaybookName": self.playbook_name,
            "User": self.user,
            "FailedToAuth": self.failed_to_auth,
            "Incomplete": self.incomplete,
            "Error": self.error,
            "TotalResponseTimeMs": self.total_response_time_ms,
            "AvgResponseTimeMs": self.avg_response_time_ms,
            "TotalRequests": self.total_requests,
            "TotalPlaybookTime": self.total_playbook_time,
            "Metrics": [m.to_dict() for m in self.metrics],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlaybookMetric:
        return cls(
            user=data["User"],
            playbook_name=data.get("PlaybookName", ""),
            failed_to_auth=bool(data.get("FailedToAuth", False)),
            metrics=[RequestMetric.from_dict(m) for m in data.get("Metrics") or []],
            total_response_time_ms=int(data.get("TotalResponseTimeMs", 0)),
            avg_response_time_ms=int(data.get("AvgResponseTimeMs", 0)),
            total_requests=int(data.get("TotalRequests", 0)),
            total_playbook_time=int(data.get("TotalPlaybookTime", 0)),
            incomplete=bool(data.get("Incomplete", False)),
            error=data.get("Error", ""),
            finalized=True,
        )


@dataclass(frozen=True, slots=True)
class SessionError:
    user: str
    error_type: ErrorType
    message: str
    url: str
    partial: PlaybookMetric

    def to_dict(self) -> dict[str, Any]:
        return {
            "User": self.user,
            "ErrorType": self.error_type.value,
            "Message": self.message,
            "UrlString": self.url,
        }


SessionOutcome = Union[PlaybookMetric, SessionError]


@dataclass(slots=True)
class LoadTestMetrics:
    run_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_load_test_time: int = 0
    playbook_metrics: list[PlaybookMetric] = field(default_factory=list)
    session_errors: list[SessionError] = field(default_factory=list)
    avg_response_time: int = 0
    total_responses: int = 0
    total_redirects: int = 0
    total_auth_failures: int = 0
    total_200s: int = 0
    total_300s: int = 0
    total_400s: int = 0
    total_500s: int = 0
    total_unclassified: int = 0
    total_incomplete: int = 0
    p50_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0

    def add(self, outcome: SessionOutcome) -> None:
        if isinstance(outcome, SessionError):
            self.session_errors.append(outcome)
            self.playbook_metrics.append(outcome.partial)
            return
        self.playbook_metrics.append(outcome)

    def iter_metrics(self) -> Iterator[RequestMetric]:
        for playbook in self.playbook_metrics:
            yield from playbook.metrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "RunId": self.run_id,
            "Timestamp": self.timestamp.isoformat(),
            "AvgResponseTime": self.avg_response_time,
            "TotalLoadTestTime": self.total_load_test_time,
            "TotalResponses": self.total_responses,
            "TotalRedirects": self.total_redirects,
            "TotalAuthFailures": self.total_auth_failures,
            "TotalIncomplete": self.total_incomplete,
            "TotalUnclassified": self.total_unclassified,
            "Total500s": self.total_500s,
            "Total400s": self.total_400s,
            "Total300s": self.total_300s,
            "Total200s": self.total_200s,
            "P50ResponseTimeMs": self.p50_response_time_ms,
            "P95ResponseTimeMs": self.p95_response_time_ms,
            "P99ResponseTimeMs": self.p99_response_time_ms,
            "SessionErrors": [e.to_dict() for e in self.session_errors],
            "PlaybookMetrics": [p.to_dict() for p in self.playbook_metrics],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LoadTestMetrics:
        playbooks = [PlaybookMetric.from_dict(p) for p in data.get("PlaybookMetrics") or []]
        by_user = {p.user: p for p in playbooks}
        errors = [
            SessionError(
                user=e["User"],
                error_type=ErrorType(e["ErrorType"]),
                message=e.get("Message", ""),
                url=e.get("UrlString", ""),
                partial=by_user.get(e["User"]) or PlaybookMetric(user=e["User"], playbook_name=""),
            )
            for e in data.get("SessionErrors") or []
        ]
        return cls(
            run_id=data.get("RunId", ""),
            timestamp=datetime.fromisoformat(data["Timestamp"]),
            total_load_test_time=int(data.get("TotalLoadTestTime", 0)),
            playbook_metrics=playbooks,
            session_errors=errors,
            avg_response_time=int(data.get("AvgResponseTime", 0)),
            total_responses=int(data.get("TotalResponses", 0)),
            total_redirects=int(data.get("TotalRedirects", 0)),
            total_auth_failures=int(data.get("TotalAuthFailures", 0)),
            total_200s=int(data.get("Total200s", 0)),
            total_300s=int(data.get("Total300s", 0)),
            total_400s=int(data.get("Total400s", 0)),
            total_500s=int(data.get("Total500s", 0)),
            total_unclassified=int(data.get("TotalUnclassified", 0)),
            total_incomplete=int(data.get("TotalIncomplete", 0)),
            p50_response_time_ms=float(data.get("P50ResponseTimeMs", 0.0)),
            p95_response_time_ms=float(data.get("P95ResponseTimeMs", 0.0)),
            p99_response_time_ms=float(data.get("P99ResponseTimeMs", 0.0)),
        )
