"""
Tracking module - Hybrid detector/optical-flow landmark tracking.

This module provides:
- HybridScheduler: Chooses detector keyframes or optical flow per frame
- FrameResult: The per-frame output consumed downstream
- Detector adapters for plain functions and recorded detections
- Landmark CSV I/O utilities

Example:
    >>> from hybridtrack.tracking import HybridScheduler
    >>> scheduler = HybridScheduler()
    >>> for frame in video:
    ...     result = scheduler.process_frame(frame, detector)
"""

from hybridtrack.tracking.scheduler import (
    DriftEvent,
    FrameResult,
    HybridScheduler,
    KeyframeRequest,
    SchedulerMetrics,
    SchedulerState,
    TrackingMethod,
    TrackingState,
)
from hybridtrack.tracking.detector import CallableDetector, ReplayDetector
from hybridtrack.tracking.landmark_io import (
    LandmarkCSVWriter,
    iter_landmark_csv,
    parse_landmark_row,
    read_landmark_csv,
    write_landmark_csv,
)

__all__ = [
    "DriftEvent",
    "FrameResult",
    "HybridScheduler",
    "KeyframeRequest",
    "SchedulerMetrics",
    "SchedulerState",
    "TrackingMethod",
    "TrackingState",
    "CallableDetector",
    "ReplayDetector",
    "LandmarkCSVWriter",
    "iter_landmark_csv",
    "parse_landmark_row",
    "read_landmark_csv",
    "write_landmark_csv",
]
