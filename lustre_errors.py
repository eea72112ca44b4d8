# -*- coding: utf-8 -*-
"""
Lustre: Numeric core for HDR grading and tone mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Exception hierarchy.

The per-pixel math never raises: numeric degeneracies propagate as NaN/inf.
Exceptions are reserved for things a caller hands in once per frame or once
per session (configuration values, LUT assets) and can fix.
"""

from dataclasses import dataclass

__all__ = [
    "LustreError",
    "ConfigError",
    "LutLayoutError",
]


class LustreError(Exception):
    """Base class for all Lustre failures."""


@dataclass(slots=True)
class ConfigError(LustreError, ValueError):
    """Raised when a configuration value fails validation."""

    field: str
    problem: str

    def __str__(self) -> str:
        return f"{self.field}: {self.problem}"


@dataclass(slots=True)
class LutLayoutError(ConfigError):
    """Raised when a LUT asset does not describe a tiled N x N x N cube."""
