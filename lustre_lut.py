# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

3D LUT Atlas and Trilinear Sampler
==================================
A 3D lookup table of lattice size N is stored as a 2D "strip" image of
``N`` rows by ``N * N`` columns: N square slices laid side by side, one per
blue lattice index.  Inside slice ``b`` the column is the red index and the
row is the green index::

    texel(x = b * N + r, y = g) = LUT(r, g, b)

Sampling keeps the GPU formulation so results match the shader that reads
the same asset:

1. Scale the input by ``N - 1`` to lattice coordinates.
2. Split blue into ``floor`` / ``ceil`` slice indices.
3. For each slice, texel ``(b * N + red, green)`` -> normalized
   ``(texel + 0.5) / (W, H)`` -> bilinear fetch with clamp-to-edge.
4. Blend the two fetches by ``frac(blue)``.

Bilinear taps are done with ``scipy.ndimage.map_coordinates`` (order 1,
``mode="nearest"``), which is exactly clamp-addressed bilinear filtering in
texel space.

Assets are validated when loaded: a width that is not an exact multiple of
the height, or a strip that is not N wide slices of N x N, raises
``LutLayoutError`` instead of being sampled.
"""

from __future__ import annotations

import logging
import re
import warnings
from pathlib import Path
from typing import Optional, Union

import numpy as np
from scipy.ndimage import map_coordinates

from lustre_errors import LutLayoutError
from lustre_fastmath import ArrayFloat, handle_shapes

__all__ = [
    "LutImage",
    "Lut3DSampler",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_CUBE_SIZE_RE = re.compile(r"LUT_3D_SIZE\s+(\d+)")
_CUBE_DOMAIN_RE = re.compile(r"DOMAIN_(MIN|MAX)\s+(\S+)\s+(\S+)\s+(\S+)")
_PNG_16BIT_MODES = frozenset({"I;16", "I;16B", "I;16L", "I"})


class LutImage:
    """
    Immutable tiled-atlas LUT.

    Attributes:
        texels : np.ndarray
            Read-only float64 array of shape (N, N * N, 3), channels in [0, 1].
        size : int
            Lattice size N (``width // height``).
        width, height : int
            Atlas dimensions in texels.
    """

    __slots__ = ("texels", "size", "width", "height", "name")

    def __init__(self, texels: ArrayFloat, name: Optional[str] = None) -> None:
        arr = np.array(texels, dtype=np.float64)

        if arr.ndim != 3 or arr.shape[-1] != 3:
            raise LutLayoutError("texels", f"expected shape (H, W, 3), got {arr.shape}")

        height, width = arr.shape[0], arr.shape[1]
        if height < 2:
            raise LutLayoutError("height", f"a cube needs at least 2 lattice points, got {height}")
        if width % height != 0:
            raise LutLayoutError(
                "width", f"{width} is not an exact multiple of height {height}"
            )
        size = width // height
        if size != height:
            raise LutLayoutError(
                "width", f"{width}x{height} is {size} slices of {height} rows; "
                         f"a {height}^3 cube needs width {height * height}"
            )
        if not np.all(np.isfinite(arr)):
            raise LutLayoutError("texels", "contains NaN or infinite values")

        if arr.min() < 0.0 or arr.max() > 1.0:
            warnings.warn(
                f"LUT '{name or '<array>'}' has texels outside [0, 1] "
                f"(min={arr.min():.4g}, max={arr.max():.4g}); values are used as-is.",
                stacklevel=2,
            )

        arr.setflags(write=False)
        self.texels: ArrayFloat = arr
        self.size: int = size
        self.width: int = width
        self.height: int = height
        self.name: Optional[str] = name

    def __repr__(self) -> str:
        label = f" '{self.name}'" if self.name else ""
        return f"<LutImage{label} {self.size}^3 ({self.width}x{self.height})>"

    # -- constructors ------------------------------------------------------
    @classmethod
    def identity(cls, size: int) -> LutImage:
        """Build the LUT whose every lattice point maps to its own coordinate."""
        if size < 2:
            raise LutLayoutError("size", f"must be >= 2, got {size}")
        ramp = np.arange(size, dtype=np.float64) / (size - 1)
        texels = np.empty((size, size * size, 3), dtype=np.float64)
        texels[..., 0] = np.tile(ramp, size)[None, :]
        texels[..., 1] = ramp[:, None]
        texels[..., 2] = np.repeat(ramp, size)[None, :]
        return cls(texels, name=f"identity{size}")

    @classmethod
    def from_cube_array(cls, cube: ArrayFloat, name: Optional[str] = None) -> LutImage:
        """
        Tile a cube indexed ``cube[b, g, r]`` into the strip layout.

        Args:
            cube: Array of shape (N, N, N, 3), blue-major, red fastest.
        """
        arr = np.asarray(cube, dtype=np.float64)
        if arr.ndim != 4 or arr.shape[-1] != 3 or not (arr.shape[0] == arr.shape[1] == arr.shape[2]):
            raise LutLayoutError("cube", f"expected shape (N, N, N, 3), got {arr.shape}")
        n = arr.shape[0]
        # [b, g, r] -> [g, b, r] -> row g, column b * N + r
        texels = arr.transpose(1, 0, 2, 3).reshape(n, n * n, 3)
        return cls(texels, name=name)

    @classmethod
    def from_png(cls, path: PathLike) -> LutImage:
        """
        Load a strip LUT image (e.g. the usual 256x16 or 1024x32 PNG).

        8-bit images of any mode are converted to RGB and scaled by 1/255.
        16-bit grayscale images (Pillow modes ``I;16*`` and ``I``) keep their
        full precision: they are scaled by 1/65535 and copied to all three
        channels.  Pillow reads 48-bit RGB PNGs as 8-bit RGB, so a color LUT
        that needs more than 8 bits should be stored as ``.cube``.
        """
        from PIL import Image

        path = Path(path)
        with Image.open(path) as img:
            if img.mode in _PNG_16BIT_MODES:
                gray = np.asarray(img, dtype=np.float64) / 65535.0
                rgb = np.repeat(gray[..., None], 3, axis=-1)
            else:
                rgb = np.asarray(img.convert("RGB"), dtype=np.float64) / 255.0
            logger.debug("%s: mode %s", path.name, img.mode)
        lut = cls(rgb, name=path.stem)
        logger.debug("Loaded %r from %s", lut, path)
        return lut

    @classmethod
    def from_cube(cls, path: PathLike) -> LutImage:
        """
        Parse a Resolve/Adobe ``.cube`` 3D LUT and tile it into an atlas.

        Only the unit input domain is supported; a ``DOMAIN_MIN``/``DOMAIN_MAX``
        other than 0/1 or a 1D LUT is rejected.
        """
        path = Path(path)
        size: Optional[int] = None
        rows: list[tuple[float, float, float]] = []

        for raw in path.read_text(encoding="utf-8", errors="replace").splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or line.startswith("TITLE"):
                continue
            if line.startswith("LUT_1D_SIZE"):
                raise LutLayoutError("cube", f"{path.name} is a 1D LUT")
            match = _CUBE_SIZE_RE.match(line)
            if match:
                size = int(match.group(1))
                continue
            match = _CUBE_DOMAIN_RE.match(line)
            if match:
                expected = 0.0 if match.group(1) == "MIN" else 1.0
                if any(float(v) != expected for v in match.group(2, 3, 4)):
                    raise LutLayoutError(
                        "cube", f"{path.name}: unsupported DOMAIN_{match.group(1)} {match.group(2, 3, 4)}"
                    )
                continue
            parts = line.split()
            if parts[0][0].isalpha():
                # other header keywords (LUT_3D_INPUT_RANGE, ...)
                continue
            if len(parts) == 3:
                try:
                    rows.append((float(parts[0]), float(parts[1]), float(parts[2])))
                except ValueError:
                    raise LutLayoutError("cube", f"{path.name}: unparsable line {raw!r}") from None

        if size is None:
            raise LutLayoutError("cube", f"{path.name}: missing LUT_3D_SIZE")
        if len(rows) != size ** 3:
            raise LutLayoutError(
                "cube", f"{path.name}: expected {size ** 3} entries for size {size}, got {len(rows)}"
            )

        cube = np.array(rows, dtype=np.float64).reshape(size, size, size, 3)
        lut = cls.from_cube_array(cube, name=path.stem)
        logger.debug("Loaded %r from %s", lut, path)
        return lut

    def save_png(self, path: PathLike) -> None:
        """Write the atlas as an 8-bit RGB PNG (values rounded, clipped to [0, 1])."""
        from PIL import Image

        data = np.clip(np.rint(self.texels * 255.0), 0, 255).astype(np.uint8)
        Image.fromarray(data).save(Path(path))

    # -- sampling ----------------------------------------------------------
    def bilinear(self, u: ArrayFloat, v: ArrayFloat) -> ArrayFloat:
        """
        Bilinear fetch at normalized image coordinates, clamp-to-edge.

        Args:
            u, v: Arrays of shape (M,) in normalized [0, 1] image space
                  (texel centres at ``(i + 0.5) / size``).

        Returns:
            (M, 3) filtered texel values.
        """
        coords = np.stack((v * self.height - 0.5, u * self.width - 0.5))
        out = np.empty((coords.shape[1], 3), dtype=np.float64)
        for ch in range(3):
            out[:, ch] = map_coordinates(
                self.texels[..., ch], coords, order=1, mode="nearest", prefilter=False
            )
        return out


class Lut3DSampler:
    """
    Trilinear sampler over a ``LutImage``.

    Inputs are clamped to [0, 1] first, matching clamp addressing on the GPU.
    """

    __slots__ = ("lut",)

    def __init__(self, lut: LutImage) -> None:
        self.lut = lut

    def _slice(self, blue_index: ArrayFloat, lattice: ArrayFloat) -> ArrayFloat:
        n = self.lut.size
        texel_x = blue_index * n + lattice[:, 0]
        texel_y = lattice[:, 1]
        u = (texel_x + 0.5) * (1.0 / self.lut.width)
        v = (texel_y + 0.5) * (1.0 / self.lut.height)
        return self.lut.bilinear(u, v)

    def _sample_raw(self, rgb: ArrayFloat) -> ArrayFloat:
        lattice = np.clip(rgb, 0.0, 1.0) * (self.lut.size - 1)
        blue_lo = np.floor(lattice[:, 2])
        blue_hi = np.ceil(lattice[:, 2])
        frac = (lattice[:, 2] - blue_lo)[:, None]

        lo = self._slice(blue_lo, lattice)
        hi = self._slice(blue_hi, lattice)
        return lo + (hi - lo) * frac

    def sample(self, rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Trilinearly sample the LUT.

        Args:
            rgb_array: Normalized input color, shape (3,) or (N, 3).

        Returns:
            LUT output with the input's shape.
        """
        return _sample(rgb_array, self)

    __call__ = sample


@handle_shapes
def _sample(rgb_array: ArrayFloat, sampler: Lut3DSampler) -> ArrayFloat:
    return sampler._sample_raw(rgb_array)
