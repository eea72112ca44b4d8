# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Pixel Pipeline
==============
Two fixed stage orders, each a pure function of one pixel's inputs and the
frame's configuration.

HDR tone-map path (``PixelPipeline.tonemap``)::

    color (+ bloom * bloom_amount + lens * lens_amount)
      * exposure_fn(luminance, adaptation, settings)
      * kelvin_to_rgb(kelvin)                     [enable_kelvin]
      -> logc4_encode
      -> 3D LUT (LogC4 -> display sRGB)            [enable_lut]
      -> remove_srgb_curve_fast
      + dither (dither_bits)                       [enable_dither]
      -> clamp [0, 1]

Post-process grading path (``PixelPipeline.grade``)::

    color
      -> apply_srgb_curve_fast
      -> PerceptualGrader.grade                    [enable_grading]
      -> PerceptualGrader.apply_contrast           [enable_contrast]
      -> remove_srgb_curve_fast
      + dither (8 bit)                             [enable_dither]
      -> clamp [0, 1]

Note the grading stage sees *gamma-encoded* values although Oklab is
defined on linear light.  The order is kept exactly as the look was
authored; do not move the grader outside the encode/decode pair.

A disabled stage is an identity pass-through; the surrounding stages still
run.  The final clamp stores NaN as 0 and +inf as 1, the same values a UNORM
render target ends up with.

Every method accepts a batch; ``compute_pixel`` and ``process_frame`` are
thin adapters for per-pixel hosts and whole images.
"""

from __future__ import annotations

import logging
from typing import Callable, Literal, Optional, Union

import numpy as np

from lustre_colorengine import M_RGB_TO_XYZ_T
from lustre_config import ExposureSettings, GradingConfig, TonemapConfig
from lustre_dither import Ditherer
from lustre_errors import ConfigError
from lustre_fastmath import (
    ArrayFloat,
    ArrayLike,
    apply_srgb_curve_fast,
    remove_srgb_curve_fast,
)
from lustre_grading import PerceptualGrader
from lustre_kelvin import kelvin_to_rgb
from lustre_logc import logc4_encode
from lustre_lut import Lut3DSampler, LutImage

__all__ = [
    "ExposureFunction",
    "PixelPipeline",
    "unit_exposure",
]

logger = logging.getLogger(__name__)

PipelinePath = Literal["tonemap", "grade"]
ExposureFunction = Callable[[Union[float, ArrayFloat], float, ExposureSettings],
                            Union[float, ArrayFloat]]

_POST_DITHER_BITS = 8


def unit_exposure(luminance: Union[float, ArrayFloat], adaptation: float,
                  settings: ExposureSettings) -> float:
    """Exposure function that leaves the scene untouched."""
    return 1.0


def _finalize(rgb: ArrayFloat) -> ArrayFloat:
    """Clamp to [0, 1] the way a UNORM target stores it and append alpha."""
    rgb = np.clip(np.nan_to_num(rgb, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)
    alpha = np.ones(rgb.shape[:-1] + (1,), dtype=np.float64)
    return np.concatenate((rgb, alpha), axis=-1)


def _as_batch(name: str, values: Optional[ArrayLike], n: int) -> Optional[ArrayFloat]:
    if values is None:
        return None
    arr = np.asarray(values, dtype=np.float64).reshape(-1, 3)
    if arr.shape[0] not in (1, n):
        raise ValueError(f"{name} has {arr.shape[0]} pixels, expected {n}")
    return arr


class PixelPipeline:
    """
    Orchestrates every stage for both render paths.

    Args:
        grading: Post-process grading configuration.
        tonemap: HDR path configuration.
        lut: LogC4 -> display LUT; required when ``tonemap.enable_lut``.
        exposure_fn: Host exposure callable; defaults to ``unit_exposure``.

    Raises:
        ConfigError: If the LUT stage is enabled without a LUT.
    """

    __slots__ = (
        "grading", "tonemap_config", "exposure_fn",
        "_grader", "_sampler", "_hdr_dither", "_post_dither", "_tint",
    )

    def __init__(
        self,
        grading: Optional[GradingConfig] = None,
        tonemap: Optional[TonemapConfig] = None,
        lut: Optional[LutImage] = None,
        exposure_fn: Optional[ExposureFunction] = None,
    ) -> None:
        self.grading = grading if grading is not None else GradingConfig()
        self.tonemap_config = tonemap if tonemap is not None else TonemapConfig()
        self.exposure_fn: ExposureFunction = exposure_fn or unit_exposure

        if self.tonemap_config.enable_lut and lut is None:
            raise ConfigError("lut", "enable_lut is set but no LUT was provided")

        self._grader = PerceptualGrader(self.grading)
        self._sampler = Lut3DSampler(lut) if lut is not None else None
        self._hdr_dither = Ditherer(self.tonemap_config.dither_bits)
        self._post_dither = Ditherer(_POST_DITHER_BITS)
        self._tint = kelvin_to_rgb(self.tonemap_config.kelvin)
        logger.debug("PixelPipeline ready (lut=%r, tint=%s)", lut, self._tint)

    # =====================================================================
    #  Batch paths  (color (N, 3), positions (N,))
    # =====================================================================

    def tonemap(
        self,
        color: ArrayLike,
        x: ArrayLike,
        y: ArrayLike,
        *,
        luminance: Optional[ArrayLike] = None,
        adaptation: float = 1.0,
        bloom: Optional[ArrayLike] = None,
        lens: Optional[ArrayLike] = None,
        frame: int = 0,
    ) -> ArrayFloat:
        """
        HDR scene color -> display RGBA.

        Args:
            color: Scene-linear HDR colors, (N, 3).
            x, y: Pixel positions, (N,), used only to seed the dither.
            luminance: Scene luminance sample per pixel (or a scalar) for
                       the exposure function; defaults to the Y of ``color``
                       after bloom/lens.
            adaptation: Eye adaptation value for the exposure function.
            bloom, lens: Optional (N, 3) contributions.
            frame: Frame index for the dither.

        Returns:
            (N, 4) RGBA with RGB in [0, 1] and alpha 1.
        """
        cfg = self.tonemap_config
        rgb = np.array(color, dtype=np.float64).reshape(-1, 3)
        n = rgb.shape[0]

        bloom_b = _as_batch("bloom", bloom, n)
        if bloom_b is not None:
            rgb = rgb + bloom_b * cfg.bloom_amount
        lens_b = _as_batch("lens", lens, n)
        if lens_b is not None:
            rgb = rgb + lens_b * cfg.lens_amount

        if luminance is None:
            luminance = rgb @ M_RGB_TO_XYZ_T[:, 1]
        exposure = np.asarray(self.exposure_fn(luminance, adaptation, cfg.exposure), dtype=np.float64)
        rgb = rgb * (exposure.reshape(-1, 1) if exposure.ndim else exposure)

        if cfg.enable_kelvin:
            rgb = rgb * self._tint

        rgb = logc4_encode(rgb)
        if cfg.enable_lut:
            rgb = self._sampler._sample_raw(np.ascontiguousarray(rgb))
        rgb = remove_srgb_curve_fast(rgb)

        if cfg.enable_dither:
            rgb = self._hdr_dither.apply(rgb, x, y, frame)
        return _finalize(rgb)

    def grade(
        self,
        color: ArrayLike,
        x: ArrayLike,
        y: ArrayLike,
        *,
        frame: int = 0,
    ) -> ArrayFloat:
        """
        Display-linear color -> graded display RGBA.

        Args:
            color: Linear colors, (N, 3).
            x, y: Pixel positions, (N,), used only to seed the dither.
            frame: Frame index for the dither.

        Returns:
            (N, 4) RGBA with RGB in [0, 1] and alpha 1.
        """
        cfg = self.grading
        rgb = np.ascontiguousarray(np.asarray(color, dtype=np.float64).reshape(-1, 3))

        rgb = apply_srgb_curve_fast(rgb)
        if cfg.enable_grading:
            rgb = self._grader._grade_raw(rgb)
        if cfg.enable_contrast:
            rgb = self._grader._contrast_raw(rgb)
        rgb = remove_srgb_curve_fast(rgb)

        if cfg.enable_dither:
            rgb = self._post_dither.apply(rgb, x, y, frame)
        return _finalize(rgb)

    # =====================================================================
    #  Host adapters
    # =====================================================================

    def compute_pixel(
        self,
        color: ArrayLike,
        x: float,
        y: float,
        path: PipelinePath = "grade",
        **kwargs,
    ) -> ArrayFloat:
        """
        One pixel through one path; returns RGBA of shape (4,).

        Extra keyword arguments go to ``tonemap`` / ``grade``.
        """
        run = self._path(path)
        return run(np.asarray(color, dtype=np.float64).reshape(1, 3), [x], [y], **kwargs)[0]

    def process_frame(
        self,
        image: ArrayLike,
        path: PipelinePath = "tonemap",
        **kwargs,
    ) -> ArrayFloat:
        """
        Run a whole (H, W, 3) image through one path.

        Pixel positions are the integer column/row indices.  Per-pixel
        keyword inputs (``bloom``, ``lens``, ``luminance``) may be given as
        images of matching height and width.

        Returns:
            (H, W, 4) RGBA.
        """
        img = np.asarray(image, dtype=np.float64)
        if img.ndim != 3 or img.shape[-1] != 3:
            raise ValueError(f"Expected an (H, W, 3) image, got {img.shape}")
        height, width = img.shape[:2]

        rows, cols = np.indices((height, width), dtype=np.float64)
        for key in ("bloom", "lens"):
            if kwargs.get(key) is not None:
                kwargs[key] = np.asarray(kwargs[key], dtype=np.float64).reshape(-1, 3)
        if kwargs.get("luminance") is not None and np.ndim(kwargs["luminance"]) > 0:
            kwargs["luminance"] = np.asarray(kwargs["luminance"], dtype=np.float64).ravel()

        out = self._path(path)(img.reshape(-1, 3), cols.ravel(), rows.ravel(), **kwargs)
        return out.reshape(height, width, 4)

    def _path(self, path: PipelinePath) -> Callable[..., ArrayFloat]:
        if path == "tonemap":
            return self.tonemap
        if path == "grade":
            return self.grade
        raise ValueError(f"Unknown pipeline path: {path!r}")
