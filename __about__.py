# -*- coding: utf-8 -*-
# Lustre: Numeric core for HDR grading and tone mapping
#
# Copyright (c) 2026 opticsWolf
#
# SPDX-License-Identifier: LGPL-3.0-or-later

"""
Project metadata for Lustre.
"""

from typing import Final

# Metadata Definitions
__title__: Final[str] = "Lustre"
__description__: Final[str] = (
    "Per-pixel HDR tone mapping and perceptual color grading: Oklab/LCh "
    "grading, LogC4 encoding, tiled 3D LUT sampling and triangular dither."
)
__version__: Final[str] = "0.1.0"
__author__: Final[str] = "opticsWolf"
__license__: Final[str] = "LGPL-3.0-or-later"
__copyright__: Final[str] = "Copyright (c) 2026 opticsWolf"


def metadata_summary() -> dict[str, str]:
    """Returns a dictionary of project metadata for introspection."""
    return {
        "title": __title__,
        "version": __version__,
        "author": __author__,
        "license": __license__,
        "description": __description__,
        "copyright": __copyright__,
    }
