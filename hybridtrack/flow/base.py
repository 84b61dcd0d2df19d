"""
Optical flow engine interface.

A FlowEngine tracks a PointSet from a previous pyramid into a current
one. Implementations differ only in their execution substrate; the
scheduler talks to this interface and never to a concrete solver.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import numpy as np

from hybridtrack.core.config import FlowConfig
from hybridtrack.core.frame import Frame, Pyramid, build_pyramid


class FlowBackend(Enum):
    """Available optical flow substrates."""
    NUMPY = "numpy"
    OPENCV = "opencv"


@dataclass
class FlowResult:
    """Result of tracking a PointSet between two frames."""
    points: np.ndarray   # (N, 2) or (N, 3), normalized
    errors: np.ndarray   # (N,), inf for untrackable points
    avg_error: float

    @classmethod
    def unchanged(cls, points: np.ndarray) -> "FlowResult":
        """Result that returns the input points with zero error."""
        return cls(points.copy(), np.zeros(len(points)), 0.0)

    @property
    def valid(self) -> np.ndarray:
        """Boolean mask of points with a finite error."""
        return np.isfinite(self.errors)


def as_point_array(points) -> np.ndarray:
    """
    Convert a PointSet to a float64 (N, 2) or (N, 3) array.

    Raises:
        ValueError: If the input doesn't have two or three columns
    """
    arr = np.array(points, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] not in (2, 3):
        raise ValueError(f"Expected points of shape (N, 2) or (N, 3), got {arr.shape}")
    return arr


class FlowEngine(ABC):
    """
    Abstract base class for optical flow engines.

    Subclasses implement _track_pixels(); this class handles coordinate
    normalization, output clamping and the cached reference pyramid.

    Example:
        >>> engine = create_flow_engine(FlowConfig())
        >>> engine.set_keyframe(first_frame)
        >>> result = engine.track(next_frame, landmarks)
        >>> result.avg_error
    """

    def __init__(self, config: FlowConfig | None = None):
        self.config = config or FlowConfig()
        self.config.validate()
        self.prev_pyramid: Pyramid | None = None

    @property
    def has_reference(self) -> bool:
        return self.prev_pyramid is not None

    def build_pyramid(self, image) -> Pyramid:
        """Build a pyramid from an image or Frame using the engine settings."""
        return build_pyramid(
            Frame.from_image(image),
            self.config.pyramid_levels,
            self.config.min_level_size,
        )

    @abstractmethod
    def _track_pixels(
        self,
        prev: Pyramid,
        curr: Pyramid,
        points_px: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Track (N, 2) level-0 pixel positions.

        Returns:
            Tuple of (tracked pixel positions, per-point errors)
        """

    def track_pyramids(self, prev: Pyramid, curr: Pyramid, points) -> FlowResult:
        """
        Track normalized points from one pyramid into another.

        Extra columns (z) are carried over unchanged.
        """
        points = as_point_array(points)
        if prev.base.shape != curr.base.shape:
            raise ValueError(
                f"Frame size changed from {prev.base.shape} to {curr.base.shape}"
            )
        if len(points) == 0:
            return FlowResult(points.copy(), np.zeros(0), 0.0)

        width, height = prev.base.width, prev.base.height
        scale = np.array([width, height], dtype=np.float64)
        tracked_px, errors = self._track_pixels(prev, curr, points[:, :2] * scale)

        tracked = points.copy()
        tracked[:, :2] = np.clip(tracked_px / scale, 0.0, 1.0)
        return FlowResult(tracked, errors, float(np.mean(errors)))

    def track(self, image, points) -> FlowResult:
        """
        Track points from the cached reference frame into a new frame.

        The first call after construction or reset() only caches the frame
        and returns the input points with zero error. Afterwards the new
        frame becomes the reference for the next call.
        """
        points = as_point_array(points)
        pyramid = self.build_pyramid(image)
        if self.prev_pyramid is None:
            self.prev_pyramid = pyramid
            return FlowResult.unchanged(points)

        result = self.track_pyramids(self.prev_pyramid, pyramid, points)
        self.prev_pyramid = pyramid
        return result

    def set_keyframe(self, image) -> None:
        """Make the given frame the tracking reference."""
        self.prev_pyramid = self.build_pyramid(image)

    def reset(self) -> None:
        """Drop the cached reference frame."""
        self.prev_pyramid = None


def create_flow_engine(config: FlowConfig | None = None) -> FlowEngine:
    """
    Create the flow engine selected by config.backend.

    Raises:
        ValueError: If the backend name is unknown
    """
    from hybridtrack.flow.lucas_kanade import LucasKanadeFlow
    from hybridtrack.flow.opencv import OpenCVFlow

    config = config or FlowConfig()
    try:
        backend = FlowBackend(config.backend.lower())
    except ValueError:
        valid = ", ".join(b.value for b in FlowBackend)
        raise ValueError(f"Unknown flow backend '{config.backend}'. Valid backends: {valid}") from None

    if backend is FlowBackend.OPENCV:
        return OpenCVFlow(config)
    return LucasKanadeFlow(config)
