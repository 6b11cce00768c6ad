from __future__ import annotations

from random import Random

import pytest
from hypothesis import given, strategies as st

from vuload.loadgen.selection import select_urls


@given(
    size=st.integers(min_value=3, max_value=40),
    seed=st.integers(min_value=0, max_value=10_000),
)
def test_selection_length_bounds(size: int, seed: int) -> None:
    urls = [f"https://example.com/{i}" for i in range(size)]
    picked = select_urls(urls, Random(seed))
    assert 3 <= len(picked) <= size
    assert len(set(picked)) == len(picked)
    assert set(picked) <= set(urls)


@given(size=st.integers(min_value=1, max_value=2), seed=st.integers(min_value=0, max_value=100))
def test_short_list_is_used_whole(size: int, seed: int) -> None:
    urls = [f"https://example.com/{i}" for i in range(size)]
    picked = select_urls(urls, Random(seed))
    assert sorted(picked) == sorted(urls)


def test_selection_is_reproducible_with_seed() -> None:
    urls = [f"https://example.com/{i}" for i in range(12)]
    assert select_urls(urls, Random(42)) == select_urls(urls, Random(42))


def test_selection_does_not_mutate_input() -> None:
    urls = [f"https://example.com/{i}" for i in range(6)]
    before = list(urls)
    select_urls(urls, Random(1))
    assert urls == before


def test_configurable_minimum() -> None:
    urls = [f"https://example.com/{i}" for i in range(10)]
    for seed in range(20):
        assert len(select_urls(urls, Random(seed), min_steps=7)) >= 7


def test_empty_and_invalid_minimum() -> None:
    assert select_urls([], Random(0)) == []
    with pytest.raises(ValueError):
        select_urls(["https://example.com/"], Random(0), min_steps=0)
