"""
Core module - Frames, pyramids, configuration and collaborator protocols.
"""

from hybridtrack.core.base import Detector, ResultConsumer
from hybridtrack.core.config import (
    FILTER_PRESETS,
    FilterConfig,
    FlowConfig,
    SchedulerConfig,
    TrackerConfig,
    apply_env_overrides,
    get_filter_preset,
    load_config,
    save_config,
)
from hybridtrack.core.frame import Frame, Pyramid, build_pyramid, to_grayscale
from hybridtrack.core.video import VideoProperties, VideoReader

__all__ = [
    "Detector",
    "ResultConsumer",
    "FILTER_PRESETS",
    "FilterConfig",
    "FlowConfig",
    "SchedulerConfig",
    "TrackerConfig",
    "apply_env_overrides",
    "get_filter_preset",
    "load_config",
    "save_config",
    "Frame",
    "Pyramid",
    "build_pyramid",
    "to_grayscale",
    "VideoProperties",
    "VideoReader",
]
