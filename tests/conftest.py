from __future__ import annotations

import pytest

from fakes import FakeSite


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()
