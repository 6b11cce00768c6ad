from __future__ import annotations

from vuload.metrics.models import ErrorType


class VuloadError(Exception):
    """Base class for errors raised by the harness."""


class SetupError(VuloadError):
    """The environment cannot support a run; nothing was launched."""


class TransportFailure(VuloadError):
    """A request could not complete at all.

    Raised by the request executor and contained by the session that issued
    the request.
    """

    def __init__(self, url: str, error_type: ErrorType, message: str) -> None:
        super().__init__(f"{error_type.value} error for {url}: {message}")
        self.url = url
        self.error_type = error_type
        self.message = message


class ReportWriteError(VuloadError):
    """The finished report could not be persisted."""
