# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Perceptual Grader
=================
Lightness / chroma / hue remapping in Oklab and its polar form, plus a
linear "lerp toward pivot" contrast.

The stage order is part of the look and is not commutative:

    RGB -> Oklab
        -> scale (L, a, b) by (luminance, oklab_a, oklab_b)
        -> polar (L, C, h)            # hue from the *scaled* a/b
        -> h = wrap(h + hue_offset)
        -> C *= saturation
        -> Lab -> RGB

Because the a/b multipliers run before the polar split, unequal a/b scales
rotate hue as well as changing chroma.  Contrast is a separate stage:
``pivot + (color - pivot) * contrast``.

A pixel with a == b == 0 after scaling (exact black, or a/b scaled to zero)
has no hue; the NaN from ``fast_atan2`` flows through unchanged.  With
``oklab_a == oklab_b == 0`` that is every pixel, so the frame comes out of
the pipeline black rather than gray.
"""

import numpy as np

from lustre_colorengine import ColorSpaceEngine
from lustre_config import GradingConfig
from lustre_fastmath import (
    ArrayFloat,
    ArrayLike,
    compile_kernel_pair,
    handle_shapes,
    lerp,
    select_kernel,
    wrap_degrees,
)

__all__ = [
    "PerceptualGrader",
]


def _remap_lch(lch: ArrayFloat, chroma_scale: float, hue_offset: float) -> ArrayFloat:
    n = lch.shape[0]
    out = np.empty_like(lch)
    for i in range(n):
        out[i, 0] = lch[i, 0]
        out[i, 1] = lch[i, 1] * chroma_scale
        out[i, 2] = wrap_degrees(lch[i, 2] + hue_offset)
    return out


def _contrast_flat(rgb: ArrayFloat, pivot: ArrayFloat, amount: float) -> ArrayFloat:
    n = rgb.shape[0]
    out = np.empty_like(rgb)
    for i in range(n):
        for c in range(3):
            out[i, c] = lerp(pivot[c], rgb[i, c], amount)
    return out


_remap_fast, _remap_strict = compile_kernel_pair(_remap_lch)
_contrast_fast, _contrast_strict = compile_kernel_pair(_contrast_flat)


class PerceptualGrader:
    """
    Applies a ``GradingConfig`` to colors.

    The grader holds no per-pixel state; one instance can serve every pixel
    of a frame from any number of threads.
    """

    __slots__ = ("config", "_oklab_scale", "_pivot")

    def __init__(self, config: GradingConfig) -> None:
        self.config = config
        self._oklab_scale = np.array(
            [config.luminance_scale, config.oklab_a_scale, config.oklab_b_scale],
            dtype=np.float64,
        )
        self._pivot = np.array(config.contrast_pivot, dtype=np.float64)

    def __repr__(self) -> str:
        return f"PerceptualGrader({self.config!r})"

    # -- raw paths (validated (N, 3) float64) --------------------------------
    def _grade_raw(self, rgb: ArrayFloat) -> ArrayFloat:
        oklab = ColorSpaceEngine._rgb_to_oklab_raw(rgb)
        oklab *= self._oklab_scale

        lch = ColorSpaceEngine._lab_to_lch_raw(oklab)
        lch = select_kernel(_remap_fast, _remap_strict)(
            lch, self.config.saturation_scale, self.config.hue_offset
        )
        lab = ColorSpaceEngine._lch_to_lab_raw(lch)
        return ColorSpaceEngine._oklab_to_rgb_raw(lab)

    def _contrast_raw(self, rgb: ArrayFloat) -> ArrayFloat:
        return select_kernel(_contrast_fast, _contrast_strict)(
            rgb, self._pivot, self.config.contrast_scale
        )

    # -- public API ----------------------------------------------------------
    def grade(self, rgb_array: ArrayLike) -> ArrayFloat:
        """
        Run the Oklab / LCh remap.

        Args:
            rgb_array: Colors, shape (3,) or (N, 3).  The pipeline feeds
                       sRGB-encoded values here; the math does not care.

        Returns:
            Graded colors, same shape, unclamped.
        """
        return _grade(rgb_array, self)

    def apply_contrast(self, rgb_array: ArrayLike) -> ArrayFloat:
        """Blend toward the pivot: ``lerp(pivot, color, contrast)``."""
        return _contrast(rgb_array, self)


@handle_shapes
def _grade(rgb_array: ArrayFloat, grader: PerceptualGrader) -> ArrayFloat:
    return grader._grade_raw(rgb_array)


@handle_shapes
def _contrast(rgb_array: ArrayFloat, grader: PerceptualGrader) -> ArrayFloat:
    return grader._contrast_raw(rgb_array)
