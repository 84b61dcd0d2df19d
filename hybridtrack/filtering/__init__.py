"""
Filtering module - Adaptive smoothing of coordinate streams.

This module provides:
- OneEuroFilter: Speed-adaptive low-pass filter for one channel
- OneEuroFilter2D / OneEuroFilter3D: Per-axis wrappers
- LandmarkSmoother: One filter per point and channel of a PointSet

Example:
    >>> from hybridtrack.filtering import OneEuroFilter2D
    >>> f = OneEuroFilter2D(frequency=30.0)
    >>> x, y = f.filter(0.41, 0.37)
"""

from hybridtrack.core.config import FILTER_PRESETS, get_filter_preset
from hybridtrack.filtering.one_euro import (
    LowPassFilter,
    OneEuroFilter,
    OneEuroFilter2D,
    OneEuroFilter3D,
    OneEuroFilterND,
    smoothing_factor,
)
from hybridtrack.filtering.smoother import LandmarkSmoother

__all__ = [
    "FILTER_PRESETS",
    "get_filter_preset",
    "LowPassFilter",
    "OneEuroFilter",
    "OneEuroFilter2D",
    "OneEuroFilter3D",
    "OneEuroFilterND",
    "smoothing_factor",
    "LandmarkSmoother",
]
