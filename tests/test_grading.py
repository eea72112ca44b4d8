from __future__ import annotations

import numpy as np
import pytest

from lustre_colorengine import ColorSpaceEngine as CSE
from lustre_config import GradingConfig
from lustre_grading import PerceptualGrader


@pytest.fixture
def colors(rng: np.random.Generator) -> np.ndarray:
    # exact black has no hue; stay clear of it
    return rng.uniform(0.05, 1.0, size=(300, 3))


def test_neutral_config_is_identity(colors: np.ndarray) -> None:
    grader = PerceptualGrader(GradingConfig())
    assert grader.config.is_neutral
    np.testing.assert_allclose(grader.grade(colors), colors, atol=1e-3)


def test_zero_saturation_gives_gray(colors: np.ndarray) -> None:
    out = PerceptualGrader(GradingConfig(saturation=0.0)).grade(colors)
    np.testing.assert_allclose(out[:, 0], out[:, 1], atol=1e-7)
    np.testing.assert_allclose(out[:, 1], out[:, 2], atol=1e-7)


def test_luminance_scales_oklab_lightness(colors: np.ndarray) -> None:
    out = PerceptualGrader(GradingConfig(luminance=50.0)).grade(colors)
    np.testing.assert_allclose(
        CSE.rgb_to_oklab(out)[:, 0], 0.5 * CSE.rgb_to_oklab(colors)[:, 0], atol=1e-6
    )


def test_hue_offset_wraps_at_half_turn(colors: np.ndarray) -> None:
    forward = PerceptualGrader(GradingConfig(hue_offset=180.0)).grade(colors)
    backward = PerceptualGrader(GradingConfig(hue_offset=-180.0)).grade(colors)
    np.testing.assert_allclose(forward, backward, atol=1e-9)


def test_hue_offset_rotates_hue() -> None:
    rgb = np.array([0.8, 0.4, 0.1])
    out = PerceptualGrader(GradingConfig(hue_offset=30.0)).grade(rgb)

    h_in = CSE.oklab_to_lch(CSE.rgb_to_oklab(rgb))[2]
    h_out = CSE.oklab_to_lch(CSE.rgb_to_oklab(out))[2]
    assert (h_out - h_in) % 360.0 == pytest.approx(30.0, abs=0.1)


def test_ab_multipliers_run_before_hue_is_taken() -> None:
    rgb = np.array([0.8, 0.4, 0.1])
    out = PerceptualGrader(GradingConfig(oklab_a=50.0)).grade(rgb)

    lab_in = CSE.rgb_to_oklab(rgb)
    lab_out = CSE.rgb_to_oklab(out)
    np.testing.assert_allclose(lab_out, lab_in * [1.0, 0.5, 1.0], atol=1e-4)
    # unequal a/b scaling moves the hue, not just the chroma
    h_in = CSE.oklab_to_lch(lab_in)[2]
    h_out = CSE.oklab_to_lch(lab_out)[2]
    assert abs(h_out - h_in) > 1.0


def test_stage_order_is_not_commutative() -> None:
    rgb = np.array([0.8, 0.4, 0.1])
    graded = PerceptualGrader(GradingConfig(oklab_a=50.0, hue_offset=90.0)).grade(rgb)

    # rotating first, then scaling a, lands somewhere else
    rotated = PerceptualGrader(GradingConfig(hue_offset=90.0)).grade(rgb)
    swapped = PerceptualGrader(GradingConfig(oklab_a=50.0)).grade(rotated)
    assert not np.allclose(graded, swapped, atol=1e-3)


@pytest.mark.parametrize(
    ("contrast", "expected"),
    [(100.0, [1.0, 0.0, 0.5]), (50.0, [0.75, 0.25, 0.5]), (0.0, [0.5, 0.5, 0.5]), (200.0, [1.5, -0.5, 0.5])],
)
def test_contrast_lerps_toward_pivot(contrast: float, expected: list[float]) -> None:
    grader = PerceptualGrader(GradingConfig(contrast=contrast))
    np.testing.assert_allclose(grader.apply_contrast([1.0, 0.0, 0.5]), expected)


def test_contrast_uses_configured_pivot() -> None:
    grader = PerceptualGrader(GradingConfig(contrast=0.0, contrast_pivot=(0.1, 0.2, 0.3)))
    np.testing.assert_allclose(grader.apply_contrast(np.ones((2, 3))), [[0.1, 0.2, 0.3]] * 2)


def test_grade_keeps_shape() -> None:
    grader = PerceptualGrader(GradingConfig(saturation=120.0))
    assert grader.grade([0.3, 0.4, 0.5]).shape == (3,)
    assert grader.grade(np.full((7, 3), 0.4)).shape == (7, 3)
