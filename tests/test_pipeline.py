from __future__ import annotations

import numpy as np
import pytest

from lustre_colorengine import M_RGB_TO_XYZ_T
from lustre_config import ExposureSettings, GradingConfig, TonemapConfig
from lustre_errors import ConfigError
from lustre_fastmath import apply_srgb_curve_fast, remove_srgb_curve_fast
from lustre_kelvin import kelvin_to_rgb
from lustre_logc import logc4_encode
from lustre_lut import LutImage
from lustre_pipeline import PixelPipeline, unit_exposure


def _positions(n: int) -> tuple[np.ndarray, np.ndarray]:
    return np.arange(n, dtype=np.float64), np.zeros(n)


@pytest.fixture
def hdr_colors(rng: np.random.Generator) -> np.ndarray:
    return rng.uniform(0.0, 20.0, size=(64, 3))


def _plain_tonemap(**overrides: object) -> TonemapConfig:
    settings: dict[str, object] = {"enable_kelvin": False, "enable_dither": False}
    settings.update(overrides)
    return TonemapConfig(**settings)  # type: ignore[arg-type]


def test_tonemap_stage_order_with_identity_lut(hdr_colors: np.ndarray) -> None:
    pipe = PixelPipeline(tonemap=_plain_tonemap(), lut=LutImage.identity(33))
    out = pipe.tonemap(hdr_colors, *_positions(len(hdr_colors)))

    expected = np.clip(remove_srgb_curve_fast(logc4_encode(hdr_colors)), 0.0, 1.0)
    np.testing.assert_allclose(out[:, :3], expected, atol=1e-9)
    np.testing.assert_array_equal(out[:, 3], 1.0)


def test_disabled_lut_matches_identity_lut(hdr_colors: np.ndarray) -> None:
    xs = _positions(len(hdr_colors))
    with_identity = PixelPipeline(tonemap=_plain_tonemap(), lut=LutImage.identity(17))
    without = PixelPipeline(tonemap=_plain_tonemap(enable_lut=False))
    np.testing.assert_allclose(
        without.tonemap(hdr_colors, *xs), with_identity.tonemap(hdr_colors, *xs), atol=1e-9
    )


def test_exposure_and_kelvin_scale_before_encoding(hdr_colors: np.ndarray) -> None:
    seen: list[ExposureSettings] = []

    def exposure(luminance, adaptation, settings):
        seen.append(settings)
        return adaptation / (1.0 + luminance)

    cfg = _plain_tonemap(enable_lut=False, enable_kelvin=True, kelvin=3200.0,
                         exposure={"mode": "manual", "iso": 200})
    pipe = PixelPipeline(tonemap=cfg, exposure_fn=exposure)
    out = pipe.tonemap(hdr_colors, *_positions(len(hdr_colors)), adaptation=0.5)

    luminance = hdr_colors @ M_RGB_TO_XYZ_T[:, 1]
    scaled = hdr_colors * (0.5 / (1.0 + luminance))[:, None] * kelvin_to_rgb(3200.0)
    expected = np.clip(remove_srgb_curve_fast(logc4_encode(scaled)), 0.0, 1.0)
    np.testing.assert_allclose(out[:, :3], expected, atol=1e-9)
    assert seen == [cfg.exposure]


def test_bloom_and_lens_are_weighted_and_added() -> None:
    color = np.full((2, 3), 0.1)
    bloom = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
    lens = np.full((2, 3), 0.4)
    cfg = _plain_tonemap(enable_lut=False, bloom_amount=0.5, lens_amount=0.25)

    out = PixelPipeline(tonemap=cfg).tonemap(color, *_positions(2), bloom=bloom, lens=lens)
    combined = color + 0.5 * bloom + 0.25 * lens
    expected = np.clip(remove_srgb_curve_fast(logc4_encode(combined)), 0.0, 1.0)
    np.testing.assert_allclose(out[:, :3], expected, atol=1e-12)


def test_tonemap_output_is_display_range(rng: np.random.Generator) -> None:
    colors = rng.uniform(-1.0, 5000.0, size=(256, 3))
    out = PixelPipeline(tonemap=TonemapConfig(), lut=LutImage.identity(17)).tonemap(
        colors, *_positions(256), frame=5
    )
    assert out.shape == (256, 4)
    assert np.all((out >= 0.0) & (out <= 1.0))


def test_enabled_lut_without_asset_is_rejected() -> None:
    with pytest.raises(ConfigError) as excinfo:
        PixelPipeline(tonemap=TonemapConfig(enable_lut=True))
    assert excinfo.value.field == "lut"


def test_grade_path_order() -> None:
    colors = np.random.default_rng(3).uniform(0.05, 1.0, size=(40, 3))
    cfg = GradingConfig(enable_grading=False, enable_contrast=True, contrast=80.0, enable_dither=False)
    out = PixelPipeline(grading=cfg, tonemap=_plain_tonemap(enable_lut=False)).grade(
        colors, *_positions(40)
    )

    encoded = apply_srgb_curve_fast(colors)
    contrasted = 0.5 + (encoded - 0.5) * 0.8
    expected = np.clip(remove_srgb_curve_fast(contrasted), 0.0, 1.0)
    np.testing.assert_allclose(out[:, :3], expected, atol=1e-12)


def test_disabled_grading_matches_neutral_grading(rng: np.random.Generator) -> None:
    colors = rng.uniform(0.05, 1.0, size=(100, 3))
    xs = _positions(100)
    tm = _plain_tonemap(enable_lut=False)
    off = PixelPipeline(grading=GradingConfig(enable_grading=False, enable_dither=False), tonemap=tm)
    neutral = PixelPipeline(grading=GradingConfig(enable_dither=False), tonemap=tm)
    np.testing.assert_allclose(off.grade(colors, *xs), neutral.grade(colors, *xs), atol=2e-3)


def test_grade_dither_is_bounded_and_channel_uniform() -> None:
    colors = np.full((32, 3), 0.25)
    xs = _positions(32)
    tm = _plain_tonemap(enable_lut=False)
    plain = PixelPipeline(grading=GradingConfig(enable_grading=False, enable_dither=False), tonemap=tm)
    dithered = PixelPipeline(grading=GradingConfig(enable_grading=False), tonemap=tm)

    delta = dithered.grade(colors, *xs, frame=1)[:, :3] - plain.grade(colors, *xs)[:, :3]
    assert np.all(np.abs(delta) <= 1.0 / 256.0 + 1e-12)
    np.testing.assert_allclose(delta[:, 0], delta[:, 2], atol=1e-15)
    assert np.any(delta != 0.0)


def test_black_stays_black_and_nan_is_contained() -> None:
    pipe = PixelPipeline(
        grading=GradingConfig(enable_dither=False), tonemap=_plain_tonemap(enable_lut=False)
    )
    out = pipe.grade(np.array([[0.0, 0.0, 0.0], [np.nan, 0.5, 0.5]]), *_positions(2))
    np.testing.assert_array_equal(out[0], [0.0, 0.0, 0.0, 1.0])
    assert np.all(np.isfinite(out))
    assert np.all((out >= 0.0) & (out <= 1.0))


def test_zero_oklab_ab_blacks_out_the_frame(strict_ieee: None) -> None:
    tm = _plain_tonemap(enable_lut=False)
    colors = np.array([[0.6, 0.3, 0.2], [0.5, 0.5, 0.5]])

    no_hue = PixelPipeline(grading=GradingConfig(oklab_a=0.0, oklab_b=0.0, enable_dither=False), tonemap=tm)
    np.testing.assert_array_equal(no_hue.grade(colors, *_positions(2)), [[0.0, 0.0, 0.0, 1.0]] * 2)

    # zero saturation is the way to get gray
    gray = PixelPipeline(grading=GradingConfig(saturation=0.0, enable_dither=False), tonemap=tm)
    out = gray.grade(colors[:1], *_positions(1))
    np.testing.assert_allclose(out[:, 0], out[:, 2], atol=1e-6)
    assert np.all(out[:, :3] > 0.1)


def test_process_frame_matches_compute_pixel() -> None:
    image = np.random.default_rng(11).uniform(0.0, 8.0, size=(4, 5, 3))
    pipe = PixelPipeline(tonemap=TonemapConfig(kelvin=5000.0), lut=LutImage.identity(9))

    frame = pipe.process_frame(image, "tonemap", frame=2)
    assert frame.shape == (4, 5, 4)
    # column is x, row is y
    pixel = pipe.compute_pixel(image[3, 1], x=1, y=3, path="tonemap", frame=2)
    np.testing.assert_allclose(frame[3, 1], pixel, atol=1e-12)


def test_process_frame_accepts_image_inputs() -> None:
    image = np.full((2, 3, 3), 0.5)
    bloom = np.ones((2, 3, 3))
    pipe = PixelPipeline(tonemap=_plain_tonemap(enable_lut=False, bloom_amount=1.0))

    out = pipe.process_frame(image, "tonemap", bloom=bloom, luminance=np.ones((2, 3)))
    single = pipe.compute_pixel([1.5, 1.5, 1.5], 0, 0, "tonemap")
    np.testing.assert_allclose(out[1, 2], single, atol=1e-12)


def test_process_frame_grade_path_shape() -> None:
    pipe = PixelPipeline(tonemap=_plain_tonemap(enable_lut=False))
    assert pipe.process_frame(np.full((3, 2, 3), 0.3), "grade").shape == (3, 2, 4)


def test_bad_inputs_raise() -> None:
    pipe = PixelPipeline(tonemap=_plain_tonemap(enable_lut=False))
    with pytest.raises(ValueError):
        pipe.process_frame(np.zeros((4, 4)))
    with pytest.raises(ValueError):
        pipe.compute_pixel([0.1, 0.2, 0.3], 0, 0, path="bloom")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        pipe.tonemap(np.zeros((3, 3)), *_positions(3), bloom=np.zeros((2, 3)))


def test_unit_exposure_is_neutral() -> None:
    assert unit_exposure(12.0, 1.0, ExposureSettings()) == 1.0
