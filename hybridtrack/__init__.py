"""
hybridtrack - Hybrid landmark tracking for live video
=====================================================

Tracks a fixed set of 2D landmark points (e.g. hand joints) across a
video stream by combining an expensive, precise external detector with
cheap pyramidal Lucas-Kanade optical flow, then smooths the coordinate
stream with One Euro filters.

Main modules:
- hybridtrack.tracking: Keyframe scheduling, detector adapters, landmark I/O
- hybridtrack.flow: Optical flow engines (numpy and OpenCV substrates)
- hybridtrack.filtering: Adaptive smoothing filters
- hybridtrack.core: Frames, pyramids, configuration, video input

Quick start:
    >>> from hybridtrack import HybridScheduler, LandmarkSmoother
    >>> scheduler = HybridScheduler()
    >>> smoother = LandmarkSmoother()
    >>> for frame in video:
    ...     result = smoother.apply(scheduler.process_frame(frame, detector))
"""

__version__ = "0.1.0"

# Convenience imports
from hybridtrack.core.config import (
    FILTER_PRESETS,
    FilterConfig,
    FlowConfig,
    SchedulerConfig,
    TrackerConfig,
    load_config,
)
from hybridtrack.core.frame import Frame, build_pyramid
from hybridtrack.filtering import LandmarkSmoother, OneEuroFilter, OneEuroFilter2D, OneEuroFilter3D
from hybridtrack.flow import FlowBackend, FlowResult, LucasKanadeFlow, OpenCVFlow, create_flow_engine
from hybridtrack.tracking import FrameResult, HybridScheduler, SchedulerState, TrackingMethod

__all__ = [
    "__version__",
    "FILTER_PRESETS",
    "FilterConfig",
    "FlowConfig",
    "SchedulerConfig",
    "TrackerConfig",
    "load_config",
    "Frame",
    "build_pyramid",
    "LandmarkSmoother",
    "OneEuroFilter",
    "OneEuroFilter2D",
    "OneEuroFilter3D",
    "FlowBackend",
    "FlowResult",
    "LucasKanadeFlow",
    "OpenCVFlow",
    "create_flow_engine",
    "FrameResult",
    "HybridScheduler",
    "SchedulerState",
    "TrackingMethod",
]
