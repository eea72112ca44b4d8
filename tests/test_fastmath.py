from __future__ import annotations

import math

import numpy as np
import pytest

from lustre_fastmath import (
    apply_srgb_curve,
    apply_srgb_curve_fast,
    fast_atan2,
    handle_shapes,
    lerp,
    remove_srgb_curve,
    remove_srgb_curve_fast,
    saturate,
    wrap_degrees,
)


def test_fast_atan2_within_fifth_of_a_degree_on_full_circle() -> None:
    angles = np.deg2rad(np.arange(-179.5, 180.0, 0.5))
    radii = np.array([1e-3, 0.25, 1.0, 40.0])
    y = np.outer(radii, np.sin(angles))
    x = np.outer(radii, np.cos(angles))

    approx = fast_atan2(y, x)
    assert approx.shape == y.shape
    assert np.max(np.abs(approx - np.arctan2(y, x))) < math.radians(0.2)


@pytest.mark.parametrize(
    ("y", "x"),
    [(0.0, 1.0), (1.0, 0.0), (0.0, -1.0), (-1.0, 0.0), (1.0, 1.0), (-2.0, -1.0), (3.0, -0.5)],
)
def test_fast_atan2_axes_and_quadrants(y: float, x: float) -> None:
    assert fast_atan2(y, x) == pytest.approx(math.atan2(y, x), abs=5e-4)


def test_fast_atan2_scalar_inputs_return_float() -> None:
    assert isinstance(fast_atan2(1.0, 2.0), float)


def test_fast_atan2_origin_is_nan_under_strict_ieee(strict_ieee: None) -> None:
    assert math.isnan(fast_atan2(0.0, 0.0))


def test_fast_atan2_strict_and_fast_kernels_agree(strict_ieee: None) -> None:
    from lustre_fastmath import set_strict_ieee

    y = np.array([0.3, -0.7, 2.0])
    x = np.array([-1.0, 0.2, 2.0])
    strict = fast_atan2(y, x)
    set_strict_ieee(False)
    fast = fast_atan2(y, x)
    np.testing.assert_allclose(fast, strict, atol=1e-9)


def test_fast_srgb_encode_tracks_exact_curve() -> None:
    x = np.linspace(0.0, 1.0, 4001)
    assert np.max(np.abs(apply_srgb_curve_fast(x) - apply_srgb_curve(x))) < 6e-3
    assert apply_srgb_curve_fast(1.0) == pytest.approx(1.0, abs=1e-3)


def test_fast_srgb_decode_tracks_exact_curve() -> None:
    x = np.linspace(0.0, 1.0, 4001)
    assert np.max(np.abs(remove_srgb_curve_fast(x) - remove_srgb_curve(x))) < 6e-3
    assert remove_srgb_curve_fast(1.0) == pytest.approx(1.0, abs=1e-3)


def test_fast_srgb_linear_toe_is_exact() -> None:
    assert apply_srgb_curve_fast(0.002) == pytest.approx(12.92 * 0.002)
    assert remove_srgb_curve_fast(0.03) == pytest.approx(0.03 / 12.92)


def test_exact_srgb_curves_invert_each_other() -> None:
    x = np.linspace(0.0, 1.0, 257)
    np.testing.assert_allclose(remove_srgb_curve(apply_srgb_curve(x)), x, atol=1e-12)


def test_curves_keep_input_shape() -> None:
    img = np.full((2, 4, 3), 0.5)
    assert apply_srgb_curve_fast(img).shape == (2, 4, 3)
    assert remove_srgb_curve(np.zeros((5, 1))).shape == (5, 1)


@pytest.mark.parametrize(
    "curve", [apply_srgb_curve_fast, remove_srgb_curve_fast, apply_srgb_curve, remove_srgb_curve]
)
def test_curves_return_float_for_scalar_input(curve) -> None:
    out = curve(0.5)
    assert isinstance(out, float)
    assert out == pytest.approx(float(curve(np.array([0.5]))[0]))



@pytest.mark.parametrize(
    ("angle", "expected"),
    [(0.0, 0.0), (360.0, 0.0), (370.0, 10.0), (-10.0, 350.0), (-720.0, 0.0), (719.5, 359.5)],
)
def test_wrap_degrees(angle: float, expected: float) -> None:
    assert wrap_degrees(angle) == pytest.approx(expected)


def test_wrap_degrees_tiny_negative_stays_below_360() -> None:
    wrapped = wrap_degrees(-1e-20)
    assert 0.0 <= wrapped < 360.0


def test_scalar_helpers() -> None:
    assert saturate(-0.5) == 0.0
    assert saturate(1.5) == 1.0
    assert lerp(2.0, 4.0, 0.25) == pytest.approx(2.5)


def test_handle_shapes_promotes_and_demotes_single_pixel() -> None:
    @handle_shapes
    def double(arr: np.ndarray) -> np.ndarray:
        assert arr.ndim == 2
        return arr * 2.0

    assert double([0.1, 0.2, 0.3]).shape == (3,)
    assert double(np.ones((5, 3))).shape == (5, 3)
    with pytest.raises(ValueError):
        double(np.ones((5, 4)))
