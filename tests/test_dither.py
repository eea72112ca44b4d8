from __future__ import annotations

import numpy as np
import pytest

from lustre_dither import Ditherer
from lustre_errors import ConfigError


@pytest.fixture
def grid() -> tuple[np.ndarray, np.ndarray]:
    y, x = np.indices((256, 256), dtype=np.float64)
    return x, y


def test_noise_is_zero_mean(grid: tuple[np.ndarray, np.ndarray]) -> None:
    ditherer = Ditherer(8)
    x, y = grid
    for frame in (0, 1, 37):
        noise = ditherer.noise(x, y, frame)
        assert abs(noise.mean()) < 0.05 * ditherer.amplitude


def test_noise_is_bounded_by_one_quantization_step(grid: tuple[np.ndarray, np.ndarray]) -> None:
    for bits in (1, 8, 10, 16):
        ditherer = Ditherer(bits)
        noise = ditherer.noise(*grid)
        assert ditherer.amplitude == 2.0 ** -bits
        assert np.all(np.abs(noise) <= ditherer.amplitude)


def test_noise_is_triangular(grid: tuple[np.ndarray, np.ndarray]) -> None:
    ditherer = Ditherer(8)
    scaled = np.abs(ditherer.noise(*grid)) / ditherer.amplitude
    # triangular on [-1, 1]: P(|n| < 1/4) = 7/16, P(|n| > 3/4) = 1/16
    assert np.mean(scaled < 0.25) > 0.3
    assert np.mean(scaled > 0.75) < 0.15


def test_noise_is_deterministic_and_animated(grid: tuple[np.ndarray, np.ndarray]) -> None:
    ditherer = Ditherer(8)
    first = ditherer.noise(*grid, frame=3)
    np.testing.assert_array_equal(first, ditherer.noise(*grid, frame=3))
    assert not np.array_equal(first, ditherer.noise(*grid, frame=4))


def test_scalar_position_returns_float() -> None:
    assert isinstance(Ditherer(8).noise(10.0, 20.0), float)


def test_apply_adds_same_offset_to_every_channel() -> None:
    ditherer = Ditherer(8)
    color = np.full((4, 3), 0.5)
    x = np.arange(4.0)
    y = np.zeros(4)

    out = ditherer.apply(color, x, y, frame=2)
    delta = out - color
    np.testing.assert_allclose(delta, np.repeat(ditherer.noise(x, y, 2)[:, None], 3, axis=1), atol=1e-15)


@pytest.mark.parametrize("bits", [0, 17, -8, 8.0, True])
def test_bit_depth_validation(bits: object) -> None:
    with pytest.raises(ConfigError):
        Ditherer(bits)  # type: ignore[arg-type]
