from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

import httpx


def _check_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        msg = f"invalid URL {url!r}: {exc}"
        raise ValueError(msg) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"URL must be absolute http(s), got {url!r}"
        raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class TargetConfig:
    urls: Sequence[str]
    timeout_sec: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)
    max_redirects: int = 10

    def __post_init__(self) -> None:
        if self.timeout_sec <= 0:
            msg = f"timeout_sec must be positive, got {self.timeout_sec}"
            raise ValueError(msg)
        if self.max_redirects < 1:
            msg = f"max_redirects must be at least 1, got {self.max_redirects}"
            raise ValueError(msg)
        for url in self.urls:
            _check_url(url)


@dataclass(frozen=True, slots=True)
class LoginConfig:
    url: str
    password: str = "password"
    username_field: str = "username"
    password_field: str = "password"

    def __post_init__(self) -> None:
        _check_url(self.url)

    def form_for(self, user: str) -> dict[str, str]:
        return {self.username_field: user, self.password_field: self.password}


@dataclass(frozen=True, slots=True)
class ThinkTimeConfig:
    min_sec: float = 1.0
    max_sec: float = 1.0

    def __post_init__(self) -> None:
        if self.min_sec < 0 or self.max_sec < 0:
            msg = "think time bounds must not be negative"
            raise ValueError(msg)
        if self.min_sec > self.max_sec:
            msg = f"think time min ({self.min_sec}) exceeds max ({self.max_sec})"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class WaveConfig:
    total_users: int = 15
    wave_size: int = 3
    cooldown_sec: float = 20.0

    def __post_init__(self) -> None:
        if self.total_users < 0:
            msg = f"total_users must not be negative, got {self.total_users}"
            raise ValueError(msg)
        if self.wave_size < 1:
            msg = f"wave_size must be at least 1, got {self.wave_size}"
            raise ValueError(msg)
        if self.cooldown_sec < 0:
            msg = f"cooldown_sec must not be negative, got {self.cooldown_sec}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class RunConfig:
    target: TargetConfig
    login: LoginConfig
    waves: WaveConfig = field(default_factory=WaveConfig)
    think_time: ThinkTimeConfig = field(default_factory=ThinkTimeConfig)
    min_steps: int = 3
    seed: int | None = None
    playbook_name: str = "default"
    user_prefix: str = "virtual_user_"
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def __post_init__(self) -> None:
        if self.min_steps < 1:
            msg = f"min_steps must be at least 1, got {self.min_steps}"
            raise ValueError(msg)

    def user_name(self, index: int) -> str:
        return f"{self.user_prefix}{index}"

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "min_steps": self.min_steps,
            "seed": self.seed,
            "playbook_name": self.playbook_name,
            "user_prefix": self.user_prefix,
            "notes": self.notes,
            "target": {
                "urls": list(self.target.urls),
                "timeout_sec": self.target.timeout_sec,
                "headers": dict(self.target.headers),
                "max_redirects": self.target.max_redirects,
            },
            "login": {
                "url": self.login.url,
                "username_field": self.login.username_field,
                "password_field": self.login.password_field,
            },
            "waves": {
                "total_users": self.waves.total_users,
                "wave_size": self.waves.wave_size,
                "cooldown_sec": self.waves.cooldown_sec,
            },
            "think_time": {
                "min_sec": self.think_time.min_sec,
                "max_sec": self.think_time.max_sec,
            },
        }
