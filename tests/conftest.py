from __future__ import annotations

from typing import Iterator

import numpy as np
import pytest

from lustre_fastmath import set_strict_ieee, strict_ieee_enabled


@pytest.fixture
def strict_ieee() -> Iterator[None]:
    """Select the strict IEEE kernels for one test and restore the previous mode."""

    previous = strict_ieee_enabled()
    set_strict_ieee(True)
    try:
        yield
    finally:
        set_strict_ieee(previous)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20260419)
