from __future__ import annotations

from dataclasses import dataclass, field

import httpx


def base_url(url: httpx.URL | str) -> str:
    """Scheme, host (with port) and path of ``url``, without the query."""
    parsed = httpx.URL(url)
    return f"{parsed.scheme}://{parsed.netloc.decode('ascii')}{parsed.path}"


@dataclass(slots=True)
class RedirectTrace:
    """Hops observed while following one request's redirect chain."""

    login_url: str
    hops: list[str] = field(default_factory=list)
    login_hit: bool = False
    _login_base: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self._login_base = base_url(self.login_url)

    @property
    def redirected(self) -> bool:
        return bool(self.hops)

    @property
    def final_url(self) -> str:
        return self.hops[-1] if self.hops else ""

    def record(self, url: httpx.URL | str) -> None:
        self.hops.append(str(url))
        if base_url(url) == self._login_base:
            self.login_hit = True
