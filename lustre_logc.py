# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lustre_logc.py — ARRI LogC4 encoding.

Scene-linear -> LogC4 maps roughly 0..470 (scene relative) into [0, 1].  The
curve is piecewise: a linear toe below ``t`` (which is negative, so small
negative sensor noise is encoded rather than clipped) and a log2 segment
above it.  Derived constants::

    a = (2**18 - 16) / 117.45         = 2231.826309067688
    b = (1023 - 95) / 1023            = 0.9071358748778104
    c = 95 / 1023                     = 0.0928641251221896
    s = 7 ln2 2**(7 - 14c/b) / (a b)  ~ 0.113597
    t = (2**(14(-c/b) + 6) - 64) / a  ~ -0.0180570

Note that ``logc4_encode(0.0)`` is exactly ``c``: the log term is
``log2(64) - 6 == 0``.

References:
    - ARRI, "ARRI LogC4 Specification", 2022.
"""

from typing import Final, Union

import numpy as np

from lustre_fastmath import ArrayFloat, ArrayLike, compile_kernel_pair, select_kernel

__all__ = [
    "LOGC4_A",
    "LOGC4_B",
    "LOGC4_C",
    "LOGC4_S",
    "LOGC4_T",
    "logc4_encode",
    "logc4_decode",
]

LOGC4_A: Final[float] = 2231.826309067688
LOGC4_B: Final[float] = 0.9071358748778104
LOGC4_C: Final[float] = 0.0928641251221896
LOGC4_S: Final[float] = 0.113597
LOGC4_T: Final[float] = -0.0180570


def _encode_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v <= LOGC4_T:
            out[i] = (v - LOGC4_T) / LOGC4_S
        else:
            out[i] = (np.log2(LOGC4_A * v + 64.0) - 6.0) / 14.0 * LOGC4_B + LOGC4_C
    return out


def _decode_flat(x: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(x)
    for i in range(x.size):
        v = x[i]
        if v < 0.0:
            out[i] = v * LOGC4_S + LOGC4_T
        else:
            out[i] = (2.0 ** (14.0 * (v - LOGC4_C) / LOGC4_B + 6.0) - 64.0) / LOGC4_A
    return out


_encode_fast, _encode_strict = compile_kernel_pair(_encode_flat)
_decode_fast, _decode_strict = compile_kernel_pair(_decode_flat)


def logc4_encode(linear: ArrayLike) -> Union[ArrayFloat, float]:
    """
    Scene-linear -> LogC4, independently per channel.

    No clamping is applied on either side of the curve.

    Args:
        linear: Scalar or array of any shape.

    Returns:
        Encoded values with the input's shape.
    """
    arr = np.asarray(linear, dtype=np.float64)
    out = select_kernel(_encode_fast, _encode_strict)(np.ascontiguousarray(arr.ravel())).reshape(arr.shape)
    if arr.ndim == 0:
        return float(out)
    return out


def logc4_decode(encoded: ArrayLike) -> Union[ArrayFloat, float]:
    """LogC4 -> scene-linear; inverse of ``logc4_encode``."""
    arr = np.asarray(encoded, dtype=np.float64)
    out = select_kernel(_decode_fast, _decode_strict)(np.ascontiguousarray(arr.ravel())).reshape(arr.shape)
    if arr.ndim == 0:
        return float(out)
    return out
