from __future__ import annotations

from random import Random
from typing import Sequence


def select_urls(urls: Sequence[str], rng: Random, min_steps: int = 3) -> list[str]:
    """Pick a shuffled subset of ``urls`` for one playbook.

    The length is drawn uniformly from ``1..len(urls)`` and raised to
    ``min_steps`` when the list is long enough to allow it.
    """
    if min_steps < 1:
        msg = f"min_steps must be at least 1, got {min_steps}"
        raise ValueError(msg)
    if not urls:
        return []
    shuffled = list(urls)
    rng.shuffle(shuffled)
    length = rng.randint(1, len(shuffled))
    length = min(max(length, min_steps), len(shuffled))
    return shuffled[:length]
