"""
Flow module - Sparse optical flow engines.

This module provides:
- FlowEngine: Interface shared by all optical flow substrates
- LucasKanadeFlow: Pyramidal iterative Lucas-Kanade in numpy/scipy
- OpenCVFlow: The same estimation through cv2.calcOpticalFlowPyrLK
- create_flow_engine: Pick an engine from a FlowConfig

Example:
    >>> from hybridtrack.flow import create_flow_engine
    >>> engine = create_flow_engine()
    >>> engine.set_keyframe(frame0)
    >>> result = engine.track(frame1, points)
"""

from hybridtrack.flow.base import (
    FlowBackend,
    FlowEngine,
    FlowResult,
    as_point_array,
    create_flow_engine,
)
from hybridtrack.flow.lucas_kanade import LucasKanadeFlow
from hybridtrack.flow.opencv import OpenCVFlow

__all__ = [
    "FlowBackend",
    "FlowEngine",
    "FlowResult",
    "as_point_array",
    "create_flow_engine",
    "LucasKanadeFlow",
    "OpenCVFlow",
]
