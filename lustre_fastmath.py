# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Approximate Math Kernels
========================
Fast, JIT-compiled approximations shared by every stage of the pipeline:

- ``fast_atan2``: polynomial two-argument arctangent (max error ~2e-4 rad,
  well under 0.2 deg), used for hue extraction.
- ``apply_srgb_curve_fast`` / ``remove_srgb_curve_fast``: curve-fit
  approximations of the sRGB OETF / EOTF (square-root branch above the
  linear toe).  The fit constants are load-bearing; changing any digit
  changes the graded image.
- ``apply_srgb_curve`` / ``remove_srgb_curve``: exact IEC 61966-2-1 curves,
  the reference the fast fits are measured against.

It also hosts the infrastructure the other modules build on: the
``handle_shapes`` decorator, the strict-IEEE kernel switch and a few scalar
helpers (``saturate``, ``lerp``, ``wrap_degrees``) that are inlined into
other kernels.

Numerical Boundary:
    ``fast_atan2(0, 0)`` divides zero by zero.  This is not special-cased:
    the NaN propagates into the hue and every value derived from it.  All
    kernels compile with ``error_model="numpy"`` so the division yields NaN
    instead of raising, which keeps one degenerate pixel from aborting a
    batch.  Under the default ``fastmath`` kernels LLVM may assume NaN never
    occurs; call ``set_strict_ieee(True)`` to guarantee propagation.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - Microsoft MiniEngine, ColorSpaceUtility.hlsli (fast sRGB fits)
"""

import functools
from typing import Any, Callable, Final, Sequence, TypeAlias, Union

import numpy as np
from numba import njit
from numpy.typing import NDArray

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",
    "ArrayLike",

    # --- Constants ---
    "DEG2RAD",
    "RAD2DEG",

    # --- Configuration ---
    "set_strict_ieee",
    "strict_ieee_enabled",
    "select_kernel",
    "compile_kernel_pair",

    # --- Decorators ---
    "handle_shapes",

    # --- Scalar kernels ---
    "saturate",
    "lerp",
    "wrap_degrees",
    "atan2_approx",

    # --- Public API ---
    "fast_atan2",
    "apply_srgb_curve_fast",
    "remove_srgb_curve_fast",
    "apply_srgb_curve",
    "remove_srgb_curve",
]

# --- Type Aliases ---
ArrayFloat: TypeAlias = NDArray[np.floating]
ArrayLike: TypeAlias = Union[ArrayFloat, float, Sequence[float]]

# --- Constants ---
DEG2RAD: Final[float] = np.pi / 180.0
RAD2DEG: Final[float] = 180.0 / np.pi
_PI: Final[float] = np.pi
_HALF_PI: Final[float] = 0.5 * np.pi

# Odd minimax polynomial for atan(z), |z| <= 1.
_ATAN_C3: Final[float] = -0.327622764
_ATAN_C5: Final[float] = 0.15931422
_ATAN_C7: Final[float] = -0.0464964749

# sRGB fits
_SRGB_ENCODE_KNEE: Final[float] = 0.0031308
_SRGB_DECODE_KNEE: Final[float] = 0.04045


# --- Runtime Configuration ---
# When True, the dispatchers below hand out fastmath=False kernels that keep
# strict IEEE 754 semantics (inf / NaN propagation, no reassociation).
_STRICT_IEEE: bool = False


def set_strict_ieee(enabled: bool = True) -> None:
    """
    Toggle between fast (default) and strict IEEE 754 Numba kernels.

    Strict mode is what the degenerate-hue contract relies on: with
    ``enabled=True`` a zero-chroma pixel is guaranteed to produce NaN hue
    rather than whatever the relaxed kernel happens to compute.

    Args:
        enabled: If True, use strict IEEE mode.
    """
    global _STRICT_IEEE
    _STRICT_IEEE = bool(enabled)


def strict_ieee_enabled() -> bool:
    """Returns True when strict IEEE kernels are selected."""
    return _STRICT_IEEE


def select_kernel(fast: Callable[..., Any], strict: Callable[..., Any]) -> Callable[..., Any]:
    """Pick the fast or strict variant of a kernel pair."""
    if _STRICT_IEEE:
        return strict
    return fast


def compile_kernel_pair(func: Callable[..., Any]) -> tuple[Callable[..., Any], Callable[..., Any]]:
    """
    Compile one Python kernel twice: a cached fastmath build and a strict
    build.  The strict build is not cached because both dispatchers share the
    same qualified name and would collide in the on-disk index.
    """
    fast = njit(cache=True, fastmath=True, error_model="numpy")(func)
    strict = njit(fastmath=False, error_model="numpy")(func)
    return fast, strict


# =============================================================================
# 1. DECORATORS
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Decorator to normalize color inputs to (N, 3) float64.

    A single pixel ``(3,)`` is promoted to a batch of one and demoted again
    on the way out, so kernels only ever see contiguous (N, 3) data.

    Raises:
        ValueError: If the trailing dimension is not 3.
    """
    @functools.wraps(func)
    def wrapper(arr: ArrayLike, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr_in = np.ascontiguousarray(np.atleast_2d(arr), dtype=np.float64)

        if arr_in.ndim != 2 or arr_in.shape[-1] != 3:
            raise ValueError(f"Expected shape (3,) or (N, 3), got {np.shape(arr)}")

        res = func(arr_in, *args, **kwargs)

        if np.ndim(arr) == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 2. SCALAR KERNELS (inlined into callers)
# =============================================================================

@njit(cache=True, inline="always")
def saturate(x: float) -> float:
    """Clamp to [0, 1]."""
    return min(max(x, 0.0), 1.0)


@njit(cache=True, inline="always")
def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation, ``a`` at t=0 and ``b`` at t=1."""
    return a + t * (b - a)


@njit(cache=True, inline="always")
def wrap_degrees(h: float) -> float:
    """
    Wrap an angle into the half-open range [0, 360).

    The second guard catches tiny negative inputs whose ``+ 360`` rounds up
    to exactly 360.0.
    """
    h = h - 360.0 * np.floor(h / 360.0)
    if h >= 360.0:
        h -= 360.0
    return h


@njit(cache=True, inline="always", error_model="numpy")
def _atan_poly(z: float) -> float:
    s = z * z
    return ((_ATAN_C7 * s + _ATAN_C5) * s + _ATAN_C3) * s * z + z


@njit(cache=True, error_model="numpy")
def atan2_approx(y: float, x: float) -> float:
    """
    Scalar fast two-argument arctangent in radians, range [-pi, pi].

    The ratio always divides by the larger-magnitude axis so the polynomial
    only sees |z| <= 1.  When x is the larger axis, atan(y/x) is corrected
    by +-pi for the left half-plane; otherwise the result is reflected about
    +-pi/2.  (0, 0) evaluates 0/0 and returns NaN.
    """
    if abs(x) >= abs(y):
        r = _atan_poly(y / x)
        if x < 0.0:
            if y >= 0.0:
                r += _PI
            else:
                r -= _PI
    else:
        r = -_atan_poly(x / y)
        if y > 0.0:
            r += _HALF_PI
        else:
            r -= _HALF_PI
    return r


# =============================================================================
# 3. ARRAY KERNELS
# =============================================================================

def _atan2_flat(y: ArrayFloat, x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(y)
    for i in range(y.size):
        out[i] = atan2_approx(y[i], x[i])
    return out


def _srgb_encode_fast_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v < _SRGB_ENCODE_KNEE:
            out[i] = 12.92 * v
        else:
            out[i] = 1.13005 * np.sqrt(v - 0.00228) - 0.13448 * v + 0.005719
    return out


def _srgb_decode_fast_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v < _SRGB_DECODE_KNEE:
            out[i] = v / 12.92
        else:
            out[i] = -7.43605 * v - 31.24297 * np.sqrt(-0.53792 * v + 1.279924) + 35.34864
    return out


def _srgb_encode_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v <= _SRGB_ENCODE_KNEE:
            out[i] = 12.92 * v
        else:
            out[i] = 1.055 * (v ** (1.0 / 2.4)) - 0.055
    return out


def _srgb_decode_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v <= _SRGB_DECODE_KNEE:
            out[i] = v / 12.92
        else:
            out[i] = ((v + 0.055) / 1.055) ** 2.4
    return out


_atan2_fast, _atan2_strict = compile_kernel_pair(_atan2_flat)
_encode_fast_fast, _encode_fast_strict = compile_kernel_pair(_srgb_encode_fast_flat)
_decode_fast_fast, _decode_fast_strict = compile_kernel_pair(_srgb_decode_fast_flat)
_encode_exact_fast, _encode_exact_strict = compile_kernel_pair(_srgb_encode_flat)
_decode_exact_fast, _decode_exact_strict = compile_kernel_pair(_srgb_decode_flat)


def _map_elementwise(fast: Callable[..., ArrayFloat], strict: Callable[..., ArrayFloat],
                     values: ArrayLike) -> Union[ArrayFloat, float]:
    """Run a flat elementwise kernel over an array of any shape."""
    arr = np.asarray(values, dtype=np.float64)
    out = select_kernel(fast, strict)(np.ascontiguousarray(arr.ravel())).reshape(arr.shape)
    if arr.ndim == 0:
        return float(out)
    return out


# =============================================================================
# 4. PUBLIC API
# =============================================================================

def fast_atan2(y: ArrayLike, x: ArrayLike) -> Union[ArrayFloat, float]:
    """
    Approximate ``arctan2(y, x)`` in radians.

    Args:
        y: Ordinate, scalar or array.
        x: Abscissa, scalar or array (broadcast against ``y``).

    Returns:
        Angle in [-pi, pi]; a float when both inputs are scalars.
    """
    y_b, x_b = np.broadcast_arrays(np.asarray(y, dtype=np.float64),
                                   np.asarray(x, dtype=np.float64))
    y_c = np.ascontiguousarray(y_b).ravel()
    x_c = np.ascontiguousarray(x_b).ravel()
    out = select_kernel(_atan2_fast, _atan2_strict)(y_c, x_c).reshape(y_b.shape)
    if out.ndim == 0:
        return float(out)
    return out


def apply_srgb_curve_fast(x: ArrayLike) -> Union[ArrayFloat, float]:
    """
    Fast sRGB encode (linear -> gamma).

    Linear toe below 0.0031308, ``1.13005*sqrt(x - 0.00228) - 0.13448*x +
    0.005719`` above it.
    """
    return _map_elementwise(_encode_fast_fast, _encode_fast_strict, x)


def remove_srgb_curve_fast(x: ArrayLike) -> Union[ArrayFloat, float]:
    """
    Fast sRGB decode (gamma -> linear).

    Linear toe below 0.04045, ``-7.43605*x - 31.24297*sqrt(-0.53792*x +
    1.279924) + 35.34864`` above it.  The square root goes negative past
    x ~ 2.38, so the input is expected to be display-referred.
    """
    return _map_elementwise(_decode_fast_fast, _decode_fast_strict, x)


def apply_srgb_curve(x: ArrayLike) -> Union[ArrayFloat, float]:
    """Exact sRGB OETF (IEC 61966-2-1)."""
    return _map_elementwise(_encode_exact_fast, _encode_exact_strict, x)


def remove_srgb_curve(x: ArrayLike) -> Union[ArrayFloat, float]:
    """Exact sRGB EOTF (IEC 61966-2-1)."""
    return _map_elementwise(_decode_exact_fast, _decode_exact_strict, x)
