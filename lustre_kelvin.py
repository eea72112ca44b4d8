# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lustre_kelvin.py — black-body tint from a color temperature.

A curve fit of the Planckian locus in sRGB (Tanner Helland's fit), working on
``t = K / 100``.  It is a tint, not a colorimetric white point: 6500 K lands
near but not exactly on (1, 1, 1).  The fitted constants are kept verbatim.
"""

from typing import Final

import numpy as np
from numba import njit

from lustre_fastmath import ArrayFloat, ArrayLike, saturate

__all__ = [
    "KELVIN_MIN",
    "KELVIN_MAX",
    "kelvin_to_rgb",
]

KELVIN_MIN: Final[float] = 1000.0
KELVIN_MAX: Final[float] = 40000.0

# Branch points in hundreds of Kelvin
_KNEE: Final[float] = 66.0
_BLUE_CUTOFF: Final[float] = 19.0


@njit(cache=True, fastmath=True)
def _kelvin_kernel(kelvin: ArrayFloat) -> ArrayFloat:
    n = kelvin.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in range(n):
        t = min(max(kelvin[i], KELVIN_MIN), KELVIN_MAX) / 100.0

        if t <= _KNEE:
            r = 1.0
            g = (99.4708025861 * np.log(t) - 161.1195681661) / 255.0
        else:
            r = 329.698727446 * (t - 60.0) ** -0.1332047592 / 255.0
            g = 288.1221695283 * (t - 60.0) ** -0.0755148492 / 255.0

        if t >= _KNEE:
            b = 1.0
        elif t <= _BLUE_CUTOFF:
            b = 0.0
        else:
            b = (138.5177312231 * np.log(t - 10.0) - 305.0447927307) / 255.0

        out[i, 0] = saturate(r)
        out[i, 1] = saturate(g)
        out[i, 2] = saturate(b)
    return out


def kelvin_to_rgb(kelvin: ArrayLike) -> ArrayFloat:
    """
    Approximate RGB tint of a black body at ``kelvin``.

    Temperatures are clamped to [1000, 40000] K and every channel to [0, 1].

    Args:
        kelvin: Scalar temperature or array of temperatures.

    Returns:
        ``(3,)`` for a scalar input, otherwise ``kelvin.shape + (3,)``.
    """
    k = np.asarray(kelvin, dtype=np.float64)
    flat = np.ascontiguousarray(k.ravel())
    return _kelvin_kernel(flat).reshape(k.shape + (3,))
