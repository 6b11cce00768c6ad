from __future__ import annotations

from vuload.config.models import (
    LoginConfig,
    RunConfig,
    TargetConfig,
    ThinkTimeConfig,
    WaveConfig,
)

__all__ = [
    "LoginConfig",
    "RunConfig",
    "TargetConfig",
    "ThinkTimeConfig",
    "WaveConfig",
]
