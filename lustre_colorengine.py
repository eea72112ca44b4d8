# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Color Space Engine
==================
Bidirectional conversions between the spaces the grading pipeline visits:

    linear RGB <-> CIE XYZ <-> CIE L*a*b* <-> L*C*h
    linear RGB <-> LMS <-> Oklab <-> LCh (Oklab polar form)

Unlike a colorimetry reference library, every constant here is the one the
realtime pipeline was tuned with, *not* the exact rational CIE definition:

- The Lab break point is the truncated ``0.008856`` / ``903.3`` pair, so the
  transfer function has a ~1e-6 step at the knee.  Round trips are still
  exact because the inverse uses the same pair.
- ``lab_to_xyz`` tests the Y channel against ``L > 903.3 * 0.008856`` rather
  than against the cubed reconstruction used for X and Z.
- Hue uses ``fast_atan2``; hue and chroma round trips therefore carry the
  approximation's ~2e-4 rad error.
- The Oklab forward transform takes the cube root of ``|LMS|`` and drops
  the sign.  Negative LMS (far out of gamut) does not survive a round trip.
- Nothing is clamped.  Out-of-gamut results are legal intermediate states.

Architecture Note:
    Every transform has a ``_raw`` fast path that assumes validated (N, 3)
    float64 input, and a ``@handle_shapes`` public wrapper that accepts (3,)
    or (N, 3).  Composite conversions chain the ``_raw`` variants so the
    shape check runs once per call.
"""

from typing import Final

import numpy as np

from lustre_fastmath import (
    ArrayFloat,
    DEG2RAD,
    RAD2DEG,
    atan2_approx,
    handle_shapes,
    select_kernel,
    wrap_degrees,
    compile_kernel_pair,
)

__all__ = [
    # --- Constants ---
    "REF_WHITE_D65",
    "LAB_EPSILON",
    "LAB_KAPPA",

    # --- Matrices ---
    "M_RGB_TO_XYZ_T",
    "M_XYZ_TO_RGB_T",
    "M_RGB_TO_LMS_T",
    "M_LMS_TO_OKLAB_T",
    "M_OKLAB_TO_LMS_T",
    "M_LMS_TO_RGB_T",

    # --- Classes ---
    "ColorSpaceEngine",
]

# --- Constants & Pre-Transposed Matrices ---
# Row-vector convention: colors are (N, 3) rows, so each matrix is stored
# transposed and applied as ``np.dot(colors, M_T)``.

# D65 reference white (Y = 1.0)
REF_WHITE_D65: Final[ArrayFloat] = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)
REF_WHITE_D65.setflags(write=False)

# CIE Lab break point and slope (truncated constants)
LAB_EPSILON: Final[float] = 0.008856
LAB_KAPPA: Final[float] = 903.3
_LAB_L_THRESHOLD: Final[float] = LAB_KAPPA * LAB_EPSILON


def _frozen_t(rows: list[list[float]]) -> ArrayFloat:
    mat = np.array(rows, dtype=np.float64).T.copy()
    mat.setflags(write=False)
    return mat


# sRGB primaries, D65 white
M_RGB_TO_XYZ_T: Final[ArrayFloat] = _frozen_t([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])

M_XYZ_TO_RGB_T: Final[ArrayFloat] = _frozen_t([
    [ 3.2404542, -1.5371385, -0.4985314],
    [-0.9692660,  1.8760108,  0.0415560],
    [ 0.0556434, -0.2040259,  1.0572252],
])

# Oklab (linear sRGB oriented).  Forward and inverse pairs are the published
# ones rather than numerically inverted copies, so the shader and this module
# agree digit for digit.
M_RGB_TO_LMS_T: Final[ArrayFloat] = _frozen_t([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])

M_LMS_TO_OKLAB_T: Final[ArrayFloat] = _frozen_t([
    [0.2104542553,  0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050,  0.4505937099],
    [0.0259040371,  0.7827717662, -0.8086757660],
])

M_OKLAB_TO_LMS_T: Final[ArrayFloat] = _frozen_t([
    [1.0,  0.3963377774,  0.2158037573],
    [1.0, -0.1055613458, -0.0638541728],
    [1.0, -0.0894841775, -1.2914855480],
])

M_LMS_TO_RGB_T: Final[ArrayFloat] = _frozen_t([
    [ 4.0767416621, -3.3077115913,  0.2309699292],
    [-1.2684380046,  2.6097574011, -0.3413193965],
    [-0.0041960863, -0.7034186147,  1.7076147010],
])


# =============================================================================
# 1. LOW-LEVEL KERNELS (Numba)
# =============================================================================

def _lab_f_flat(t: ArrayFloat) -> ArrayFloat:
    """
    Lab companding f(t) on white-normalized ratios.

    Negative ratios are clamped to zero first; above the knee the cube root,
    below it the linear ``(903.3*t + 16) / 116`` segment.
    """
    out = np.empty_like(t)
    for i in range(t.size):
        v = t[i]
        if v < 0.0:
            v = 0.0
        if v > LAB_EPSILON:
            out[i] = v ** (1.0 / 3.0)
        else:
            out[i] = (LAB_KAPPA * v + 16.0) / 116.0
    return out


def _lab_to_xyz_norm(lab: ArrayFloat) -> ArrayFloat:
    """
    Lab -> white-normalized XYZ.

    X and Z pick their branch from the cubed reconstruction; Y picks its
    branch from L directly.
    """
    n = lab.shape[0]
    out = np.empty_like(lab)
    for i in range(n):
        L, a, b = lab[i, 0], lab[i, 1], lab[i, 2]
        fy = (L + 16.0) / 116.0
        fx = a / 500.0 + fy
        fz = fy - b / 200.0

        fx3 = fx * fx * fx
        if fx3 > LAB_EPSILON:
            out[i, 0] = fx3
        else:
            out[i, 0] = (116.0 * fx - 16.0) / LAB_KAPPA

        if L > _LAB_L_THRESHOLD:
            out[i, 1] = fy * fy * fy
        else:
            out[i, 1] = L / LAB_KAPPA

        fz3 = fz * fz * fz
        if fz3 > LAB_EPSILON:
            out[i, 2] = fz3
        else:
            out[i, 2] = (116.0 * fz - 16.0) / LAB_KAPPA
    return out


def _lab_to_lch(lab: ArrayFloat) -> ArrayFloat:
    """Lab -> LCh with hue in degrees on [0, 360)."""
    n = lab.shape[0]
    lch = np.empty_like(lab)
    for i in range(n):
        L, a, b = lab[i, 0], lab[i, 1], lab[i, 2]
        lch[i, 0] = L
        lch[i, 1] = np.sqrt(a * a + b * b)
        lch[i, 2] = wrap_degrees(atan2_approx(b, a) * RAD2DEG)
    return lch


def _lch_to_lab(lch: ArrayFloat) -> ArrayFloat:
    n = lch.shape[0]
    lab = np.empty_like(lch)
    for i in range(n):
        L, C, h_rad = lch[i, 0], lch[i, 1], lch[i, 2] * DEG2RAD
        lab[i, 0] = L
        lab[i, 1] = C * np.cos(h_rad)
        lab[i, 2] = C * np.sin(h_rad)
    return lab


_lab_f_fast, _lab_f_strict = compile_kernel_pair(_lab_f_flat)
_lab_inv_fast, _lab_inv_strict = compile_kernel_pair(_lab_to_xyz_norm)
_lab_to_lch_fast, _lab_to_lch_strict = compile_kernel_pair(_lab_to_lch)
_lch_to_lab_fast, _lch_to_lab_strict = compile_kernel_pair(_lch_to_lab)


# =============================================================================
# 2. COLOR SPACE ENGINE
# =============================================================================

class ColorSpaceEngine:
    """Static utility class for the pipeline's color space transformations.

    All methods are pure.  Public methods accept a single color ``(3,)`` or a
    batch ``(N, 3)`` and return the same rank; ``_raw`` methods expect a
    contiguous (N, 3) float64 array.
    """

    # =====================================================================
    #  Internal _raw fast-path methods  (assume validated (N, 3) float64)
    # =====================================================================

    @staticmethod
    def _rgb_to_xyz_raw(rgb: ArrayFloat) -> ArrayFloat:
        return np.dot(rgb, M_RGB_TO_XYZ_T)

    @staticmethod
    def _xyz_to_rgb_raw(xyz: ArrayFloat) -> ArrayFloat:
        return np.dot(xyz, M_XYZ_TO_RGB_T)

    @staticmethod
    def _xyz_to_lab_raw(xyz: ArrayFloat) -> ArrayFloat:
        ratios = np.ascontiguousarray(xyz / REF_WHITE_D65)
        f = select_kernel(_lab_f_fast, _lab_f_strict)(ratios.ravel()).reshape(ratios.shape)

        out = np.empty_like(xyz)
        out[:, 0] = 116.0 * f[:, 1] - 16.0
        out[:, 1] = 500.0 * (f[:, 0] - f[:, 1])
        out[:, 2] = 200.0 * (f[:, 1] - f[:, 2])
        return out

    @staticmethod
    def _lab_to_xyz_raw(lab: ArrayFloat) -> ArrayFloat:
        xyz = select_kernel(_lab_inv_fast, _lab_inv_strict)(lab)
        xyz *= REF_WHITE_D65
        return xyz

    @staticmethod
    def _lab_to_lch_raw(lab: ArrayFloat) -> ArrayFloat:
        return select_kernel(_lab_to_lch_fast, _lab_to_lch_strict)(lab)

    @staticmethod
    def _lch_to_lab_raw(lch: ArrayFloat) -> ArrayFloat:
        return select_kernel(_lch_to_lab_fast, _lch_to_lab_strict)(lch)

    @staticmethod
    def _rgb_to_oklab_raw(rgb: ArrayFloat) -> ArrayFloat:
        lms = np.dot(rgb, M_RGB_TO_LMS_T)
        # Sign is discarded here: cbrt(|lms|), not sign(lms) * cbrt(|lms|).
        lms_ = np.cbrt(np.abs(lms))
        return np.dot(lms_, M_LMS_TO_OKLAB_T)

    @staticmethod
    def _oklab_to_rgb_raw(oklab: ArrayFloat) -> ArrayFloat:
        lms_ = np.dot(oklab, M_OKLAB_TO_LMS_T)
        lms = lms_ * lms_ * lms_
        return np.dot(lms, M_LMS_TO_RGB_T)

    # =====================================================================
    #  Public API  (shape-safe wrappers)
    # =====================================================================

    @staticmethod
    @handle_shapes
    def rgb_to_xyz(rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Converts linear RGB (sRGB primaries) to CIE XYZ (D65).

        Args:
            rgb_array: Linear-light RGB, shape (N, 3) or (3,).  HDR values
                       above 1 and negatives pass through unclipped.

        Returns:
            XYZ tristimulus values.
        """
        return ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)

    @staticmethod
    @handle_shapes
    def xyz_to_rgb(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts CIE XYZ (D65) to linear RGB.  No clipping."""
        return ColorSpaceEngine._xyz_to_rgb_raw(xyz_array)

    @staticmethod
    @handle_shapes
    def xyz_to_lab(xyz_array: ArrayFloat) -> ArrayFloat:
        """
        Converts XYZ to CIELAB against the D65 white.

        Ratios ``XYZ / white`` below zero are clamped to zero before the
        companding function.

        Args:
            xyz_array: XYZ data, shape (N, 3) or (3,).

        Returns:
            Lab coordinates, L nominally in [0, 100].
        """
        return ColorSpaceEngine._xyz_to_lab_raw(xyz_array)

    @staticmethod
    @handle_shapes
    def lab_to_xyz(lab_array: ArrayFloat) -> ArrayFloat:
        """
        Converts CIELAB to XYZ (D65).

        Args:
            lab_array: Lab data, shape (N, 3) or (3,).

        Returns:
            XYZ coordinates.
        """
        return ColorSpaceEngine._lab_to_xyz_raw(lab_array)

    @staticmethod
    @handle_shapes
    def lab_to_lch(lab_array: ArrayFloat) -> ArrayFloat:
        """
        Converts a Lab-shaped triple (CIELAB or Oklab) to its polar form.

        Chroma is the Euclidean norm of (a, b).  Hue comes from
        ``fast_atan2(b, a)`` in degrees, wrapped into [0, 360).  A pixel with
        a == b == 0 has an undefined hue (NaN, see ``lustre_fastmath``).

        Returns:
            LCh coordinates (Lightness, Chroma, hue degrees).
        """
        return ColorSpaceEngine._lab_to_lch_raw(lab_array)

    @staticmethod
    @handle_shapes
    def lch_to_lab(lch_array: ArrayFloat) -> ArrayFloat:
        """Converts LCh (hue in degrees) back to a Lab-shaped triple."""
        return ColorSpaceEngine._lch_to_lab_raw(lch_array)

    @staticmethod
    @handle_shapes
    def rgb_to_oklab(rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Converts linear RGB to Oklab via LMS.

        The cube root is taken of ``|LMS|``, so the sign of a negative cone
        response is lost.  This is accurate for the in-gamut and mildly HDR
        colors the pipeline feeds it, not gamut-correct in general.
        """
        return ColorSpaceEngine._rgb_to_oklab_raw(rgb_array)

    @staticmethod
    @handle_shapes
    def oklab_to_rgb(oklab_array: ArrayFloat) -> ArrayFloat:
        """
        Converts Oklab to linear RGB.

        The cone responses are cubed as ``v * v * v`` which keeps the sign.
        Results may be negative or exceed 1; callers clamp at final output.
        """
        return ColorSpaceEngine._oklab_to_rgb_raw(oklab_array)

    # --- Convenience compositions ---

    @staticmethod
    @handle_shapes
    def rgb_to_lab(rgb_array: ArrayFloat) -> ArrayFloat:
        """Linear RGB -> XYZ -> CIELAB."""
        xyz = ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)
        return ColorSpaceEngine._xyz_to_lab_raw(xyz)

    @staticmethod
    @handle_shapes
    def lab_to_rgb(lab_array: ArrayFloat) -> ArrayFloat:
        """CIELAB -> XYZ -> linear RGB."""
        xyz = ColorSpaceEngine._lab_to_xyz_raw(lab_array)
        return ColorSpaceEngine._xyz_to_rgb_raw(xyz)

    @staticmethod
    @handle_shapes
    def rgb_to_lch(rgb_array: ArrayFloat) -> ArrayFloat:
        """Linear RGB -> CIELAB -> LCh."""
        xyz = ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)
        lab = ColorSpaceEngine._xyz_to_lab_raw(xyz)
        return ColorSpaceEngine._lab_to_lch_raw(lab)

    @staticmethod
    @handle_shapes
    def lch_to_rgb(lch_array: ArrayFloat) -> ArrayFloat:
        """LCh -> CIELAB -> linear RGB."""
        lab = ColorSpaceEngine._lch_to_lab_raw(lch_array)
        xyz = ColorSpaceEngine._lab_to_xyz_raw(lab)
        return ColorSpaceEngine._xyz_to_rgb_raw(xyz)

    @staticmethod
    @handle_shapes
    def oklab_to_lch(oklab_array: ArrayFloat) -> ArrayFloat:
        """Oklab -> polar (L, C, h)."""
        return ColorSpaceEngine._lab_to_lch_raw(oklab_array)

    @staticmethod
    @handle_shapes
    def lch_to_oklab(lch_array: ArrayFloat) -> ArrayFloat:
        """Polar (L, C, h) -> Oklab."""
        return ColorSpaceEngine._lch_to_lab_raw(lch_array)
