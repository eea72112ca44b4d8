# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lustre_dither.py — triangular dither before quantization.

Contract (what callers may rely on):
  * deterministic in (x, y, frame, bit depth);
  * zero mean over many pixels / frames, so brightness is not biased;
  * triangular distribution bounded by ``1 / 2**bit_depth``.

Each pixel hashes its integer position and the frame index into two
independent uniform values with a 32-bit avalanche hash; their sum minus one
is triangular on (-1, 1).  Nothing downstream depends on the particular hash.
"""

from typing import Final, Union

import numpy as np
from numba import njit

from lustre_errors import ConfigError
from lustre_fastmath import ArrayFloat, ArrayLike

__all__ = [
    "Ditherer",
]

_MASK32: Final[int] = 0xFFFFFFFF
# Spatial hash primes
_PRIME_X: Final[int] = 73856093
_PRIME_Y: Final[int] = 19349663
_PRIME_F: Final[int] = 83492791
# Seed offset of the second tap
_TAP_SALT: Final[int] = 0x9E3779B9
_UNIT_BITS: Final[int] = 0xFFFF
_UNIT_SCALE: Final[float] = 1.0 / 65536.0


@njit(cache=True, inline="always")
def _avalanche(v: int) -> int:
    v = ((v ^ (v >> 17)) * 0xED5AD4BB) & _MASK32
    v = ((v ^ (v >> 11)) * 0xAC4C1B51) & _MASK32
    v = ((v ^ (v >> 15)) * 0x31848BAB) & _MASK32
    return v ^ (v >> 14)


@njit(cache=True, inline="always")
def _unit(seed: int) -> float:
    # bucket centres, so the mean is exactly 1/2
    return ((_avalanche(seed & _MASK32) & _UNIT_BITS) + 0.5) * _UNIT_SCALE


@njit(cache=True)
def _triangular_kernel(x: ArrayFloat, y: ArrayFloat, frame: int, amplitude: float) -> ArrayFloat:
    out = np.empty_like(x)
    f = (frame * _PRIME_F) & _MASK32
    for i in range(x.size):
        xi = np.int64(np.floor(x[i]))
        yi = np.int64(np.floor(y[i]))
        seed = ((xi * _PRIME_X) ^ (yi * _PRIME_Y) ^ f) & _MASK32
        u1 = _unit(seed)
        u2 = _unit(seed ^ _TAP_SALT)
        out[i] = (u1 + u2 - 1.0) * amplitude
    return out


class Ditherer:
    """
    Position-seeded triangular dither for a target bit depth.

    Args:
        bit_depth: Bits per channel of the quantized output (1..16).
    """

    __slots__ = ("bit_depth", "amplitude")

    def __init__(self, bit_depth: int = 8) -> None:
        if isinstance(bit_depth, bool) or not isinstance(bit_depth, (int, np.integer)):
            raise ConfigError("bit_depth", f"must be an integer, got {type(bit_depth).__name__}")
        if not 1 <= bit_depth <= 16:
            raise ConfigError("bit_depth", f"must be in [1, 16], got {bit_depth}")
        self.bit_depth: int = int(bit_depth)
        self.amplitude: float = 1.0 / float(2 ** self.bit_depth)

    def __repr__(self) -> str:
        return f"Ditherer(bit_depth={self.bit_depth})"

    def noise(self, x: ArrayLike, y: ArrayLike, frame: int = 0) -> Union[ArrayFloat, float]:
        """
        Dither offsets for pixel positions.

        Args:
            x, y: Pixel coordinates (broadcast against each other); only the
                  integer part selects the pattern cell.
            frame: Frame index; animates the pattern.

        Returns:
            Offsets in (-amplitude, amplitude), shaped like the broadcast input.
        """
        x_b, y_b = np.broadcast_arrays(np.asarray(x, dtype=np.float64),
                                       np.asarray(y, dtype=np.float64))
        out = _triangular_kernel(np.ascontiguousarray(x_b).ravel(),
                                 np.ascontiguousarray(y_b).ravel(),
                                 int(frame), self.amplitude).reshape(x_b.shape)
        if out.ndim == 0:
            return float(out)
        return out

    def apply(self, color: ArrayLike, x: ArrayLike, y: ArrayLike, frame: int = 0) -> ArrayFloat:
        """
        Add the same per-pixel offset to every channel.

        Args:
            color: (..., 3) colors.
            x, y: Pixel coordinates matching ``color.shape[:-1]``.
        """
        rgb = np.asarray(color, dtype=np.float64)
        return rgb + np.asarray(self.noise(x, y, frame))[..., None]
