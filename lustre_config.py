# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Per-frame configuration.

Every tunable the pipeline reads lives in one of three frozen dataclasses,
built once per frame by the host and read concurrently by every pixel:

  * ``GradingConfig``     post-process grading (Oklab/LCh remap, contrast)
  * ``TonemapConfig``     HDR tone-map path (bloom/lens, Kelvin, LUT, dither)
  * ``ExposureSettings``  forwarded untouched to the host's exposure function

Values are validated in ``__post_init__``; a bad value raises
``ConfigError(field, problem)``.  Percentages are stored as the user sees
them (100 == neutral) and exposed as fractions through ``*_scale``
properties.

Time-of-day variants (day / night / interior) are merged with
``blend_day_night_interior`` or ``GradingConfig.blend`` before the frame
starts; nothing here consults a global.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal, Mapping, Tuple, TypeVar, Union

import numpy as np

from lustre_errors import ConfigError
from lustre_fastmath import ArrayFloat

__all__ = [
    "ExposureSettings",
    "GradingConfig",
    "TonemapConfig",
    "blend_day_night_interior",
]

ExposureMode = Literal["auto", "manual"]
Triple = Tuple[float, float, float]
_T = TypeVar("_T")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def _check_finite(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise ConfigError(name, f"must be numeric, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigError(name, f"must be finite, got {value}")
    return value


def _check_range(name: str, value: Any, lo: float = -math.inf, hi: float = math.inf) -> float:
    value = _check_finite(name, value)
    if not lo <= value <= hi:
        raise ConfigError(name, f"must be in [{lo:g}, {hi:g}], got {value:g}")
    return value


def _check_positive(name: str, value: Any) -> float:
    value = _check_finite(name, value)
    if value <= 0.0:
        raise ConfigError(name, f"must be > 0, got {value:g}")
    return value


def _check_bool(name: str, value: Any) -> bool:
    if not isinstance(value, (bool, np.bool_)):
        raise ConfigError(name, f"must be a bool, got {type(value).__name__}")
    return bool(value)


def _check_triple(name: str, value: Any) -> Triple:
    try:
        items = tuple(value)
    except TypeError:
        raise ConfigError(name, f"must be a 3-tuple, got {type(value).__name__}") from None
    if len(items) != 3:
        raise ConfigError(name, f"must have 3 components, got {len(items)}")
    return tuple(_check_finite(f"{name}[{i}]", v) for i, v in enumerate(items))  # type: ignore[return-value]


def _from_mapping(cls: type[_T], data: Mapping[str, Any]) -> _T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(unknown[0], f"unknown {cls.__name__} field")
    return cls(**dict(data))


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


# ---------------------------------------------------------------------------
# Day / night / interior blending
# ---------------------------------------------------------------------------
def blend_day_night_interior(
    day: Union[float, ArrayFloat],
    night: Union[float, ArrayFloat],
    interior: Union[float, ArrayFloat],
    night_factor: float,
    interior_factor: float,
) -> Union[float, ArrayFloat]:
    """
    Blend a tunable across time of day and location.

    ``day`` is blended toward ``night`` by ``night_factor``; the result is
    then blended toward ``interior`` by ``interior_factor``.  Both factors
    must lie in [0, 1].
    """
    nf = _check_range("night_factor", night_factor, 0.0, 1.0)
    inf_ = _check_range("interior_factor", interior_factor, 0.0, 1.0)
    outdoor = day + (night - day) * nf
    return outdoor + (interior - outdoor) * inf_


# ---------------------------------------------------------------------------
# Exposure
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ExposureSettings:
    """
    Camera-style exposure parameters.

    The core never interprets these; they are validated and handed to the
    host's exposure function as-is.
    """
    mode:      ExposureMode = "auto"
    aperture:  float = 16.0        # f-number
    iso:       float = 100.0
    shutter:   float = 1.0 / 100.0  # seconds
    ev_offset: float = 0.0

    def __post_init__(self) -> None:
        if self.mode not in ("auto", "manual"):
            raise ConfigError("mode", f"must be 'auto' or 'manual', got {self.mode!r}")
        _set(self, "aperture", _check_positive("aperture", self.aperture))
        _set(self, "iso", _check_positive("iso", self.iso))
        _set(self, "shutter", _check_positive("shutter", self.shutter))
        _set(self, "ev_offset", _check_finite("ev_offset", self.ev_offset))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ExposureSettings:
        return _from_mapping(cls, data)


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------
_BLENDED_GRADING_FIELDS = (
    "luminance", "saturation", "hue_offset", "oklab_a", "oklab_b", "contrast",
)


@dataclass(frozen=True, slots=True)
class GradingConfig:
    """
    Post-process grading parameters for one frame.

    Attributes:
        luminance:      Oklab L multiplier, percent (100 = unchanged).
        saturation:     LCh chroma multiplier, percent.
        hue_offset:     Degrees added to hue, in [-180, 180].
        oklab_a:        Oklab a multiplier, percent.
        oklab_b:        Oklab b multiplier, percent.
        contrast:       Linear contrast, percent; 100 = unchanged, 0 = pivot.
        contrast_pivot: Color the contrast blend pivots around.
        enable_grading: Run the Oklab/LCh stage.
        enable_contrast: Run the linear contrast stage.
        enable_dither:  Dither before quantization (8-bit target).

    Setting both ``oklab_a`` and ``oklab_b`` to 0 does not give a grayscale
    image: every pixel is left without a hue, the grader returns NaN, and the
    pipeline's final clamp stores the whole frame as black.  Use
    ``saturation=0`` for grayscale.
    """
    luminance:       float = 100.0
    saturation:      float = 100.0
    hue_offset:      float = 0.0
    oklab_a:         float = 100.0
    oklab_b:         float = 100.0
    contrast:        float = 100.0
    contrast_pivot:  Triple = (0.5, 0.5, 0.5)
    enable_grading:  bool = True
    enable_contrast: bool = False
    enable_dither:   bool = True

    def __post_init__(self) -> None:
        for name in ("luminance", "saturation", "oklab_a", "oklab_b", "contrast"):
            _set(self, name, _check_range(name, getattr(self, name), 0.0))
        _set(self, "hue_offset", _check_range("hue_offset", self.hue_offset, -180.0, 180.0))
        _set(self, "contrast_pivot", _check_triple("contrast_pivot", self.contrast_pivot))
        for name in ("enable_grading", "enable_contrast", "enable_dither"):
            _set(self, name, _check_bool(name, getattr(self, name)))

    # -- fractions ---------------------------------------------------------
    @property
    def luminance_scale(self) -> float:
        return self.luminance / 100.0

    @property
    def saturation_scale(self) -> float:
        return self.saturation / 100.0

    @property
    def oklab_a_scale(self) -> float:
        return self.oklab_a / 100.0

    @property
    def oklab_b_scale(self) -> float:
        return self.oklab_b / 100.0

    @property
    def contrast_scale(self) -> float:
        return self.contrast / 100.0

    @property
    def is_neutral(self) -> bool:
        """True when the grading stage cannot change a color."""
        return (self.luminance == self.saturation == self.oklab_a
                == self.oklab_b == 100.0 and self.hue_offset == 0.0)

    # -- constructors ------------------------------------------------------
    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GradingConfig:
        """Build from a plain mapping (e.g. parsed preset); unknown keys raise."""
        return _from_mapping(cls, data)

    @classmethod
    def blend(
        cls,
        day: GradingConfig,
        night: GradingConfig,
        interior: GradingConfig,
        night_factor: float,
        interior_factor: float,
    ) -> GradingConfig:
        """
        Blend three presets with ``blend_day_night_interior``.

        Numeric fields and the pivot are blended; enable flags come from
        ``day``.  Hue offsets blend linearly, without wrapping.
        """
        values: dict[str, Any] = {
            name: blend_day_night_interior(
                getattr(day, name), getattr(night, name), getattr(interior, name),
                night_factor, interior_factor,
            )
            for name in _BLENDED_GRADING_FIELDS
        }
        pivot = blend_day_night_interior(
            np.asarray(day.contrast_pivot), np.asarray(night.contrast_pivot),
            np.asarray(interior.contrast_pivot), night_factor, interior_factor,
        )
        values["contrast_pivot"] = tuple(float(v) for v in pivot)
        return replace(day, **values)


# ---------------------------------------------------------------------------
# Tone mapping
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TonemapConfig:
    """
    HDR tone-map path parameters for one frame.

    Attributes:
        bloom_amount:  Weight of the bloom texture added to the scene.
        lens_amount:   Weight of the lens texture added to the scene.
        kelvin:        Tint temperature in Kelvin, [1000, 40000].
        enable_kelvin: Multiply by the black-body tint.
        enable_lut:    Run the LogC4 -> display LUT.
        enable_dither: Dither before quantization.
        dither_bits:   Target bit depth of the dither.
        exposure:      Handed to the exposure function.
    """
    bloom_amount:  float = 0.0
    lens_amount:   float = 0.0
    kelvin:        float = 6500.0
    enable_kelvin: bool = True
    enable_lut:    bool = True
    enable_dither: bool = True
    dither_bits:   int = 8
    exposure:      ExposureSettings = field(default_factory=ExposureSettings)

    def __post_init__(self) -> None:
        _set(self, "bloom_amount", _check_range("bloom_amount", self.bloom_amount, 0.0))
        _set(self, "lens_amount", _check_range("lens_amount", self.lens_amount, 0.0))
        _set(self, "kelvin", _check_range("kelvin", self.kelvin, 1000.0, 40000.0))
        for name in ("enable_kelvin", "enable_lut", "enable_dither"):
            _set(self, name, _check_bool(name, getattr(self, name)))
        if isinstance(self.dither_bits, bool) or not isinstance(self.dither_bits, (int, np.integer)):
            raise ConfigError("dither_bits", f"must be an integer, got {type(self.dither_bits).__name__}")
        if not 1 <= self.dither_bits <= 16:
            raise ConfigError("dither_bits", f"must be in [1, 16], got {self.dither_bits}")
        if isinstance(self.exposure, Mapping):
            _set(self, "exposure", ExposureSettings.from_mapping(self.exposure))
        elif not isinstance(self.exposure, ExposureSettings):
            raise ConfigError("exposure", f"must be ExposureSettings, got {type(self.exposure).__name__}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TonemapConfig:
        """Build from a plain mapping; a nested ``exposure`` mapping is accepted."""
        return _from_mapping(cls, data)
