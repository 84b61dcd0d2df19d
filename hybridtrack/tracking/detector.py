"""
Adapters that turn external landmark sources into Detectors.

The precise detector itself (for example a hand-pose network) lives
outside this package. These adapters wrap a plain function, or replay
detections recorded earlier so a video can be processed offline.
"""

import logging
from pathlib import Path
from typing import Callable

import numpy as np

from hybridtrack.tracking.landmark_io import read_landmark_csv


logger = logging.getLogger(__name__)


class CallableDetector:
    """
    Wrap a function `fn(image) -> points | None` as a Detector.

    Attributes:
        min_confidence: Advisory confidence threshold, passed to fn as a
            keyword argument when pass_confidence is set
    """

    def __init__(
        self,
        fn: Callable[..., np.ndarray | None],
        min_confidence: float = 0.7,
        pass_confidence: bool = False,
    ):
        self.fn = fn
        self.min_confidence = min_confidence
        self.pass_confidence = pass_confidence
        self.calls = 0

    def detect(self, image: np.ndarray) -> np.ndarray | None:
        self.calls += 1
        if self.pass_confidence:
            return self.fn(image, min_confidence=self.min_confidence)
        return self.fn(image)


class ReplayDetector:
    """
    Replay recorded detections keyed by frame number.

    The caller moves the cursor with set_frame() before each frame; frames
    without a recording answer "not found".

    Example:
        >>> detector = ReplayDetector.from_csv("detections.csv")
        >>> for frame_num, frame in reader:
        ...     detector.set_frame(frame_num)
        ...     result = scheduler.process_frame(frame, detector)
    """

    def __init__(self, detections: dict[int, np.ndarray]):
        self.detections = {
            int(frame): np.asarray(points, dtype=np.float64)
            for frame, points in detections.items()
        }
        self.current_frame: int | None = None
        self.calls = 0

    @classmethod
    def from_csv(cls, path: str | Path) -> "ReplayDetector":
        """Load detections from a landmark CSV file."""
        detections = read_landmark_csv(path)
        logger.debug("Loaded detections for %d frames from %s", len(detections), path)
        return cls(detections)

    def set_frame(self, frame_num: int) -> None:
        self.current_frame = frame_num

    @property
    def frame_range(self) -> tuple[int, int] | None:
        if not self.detections:
            return None
        frames = sorted(self.detections)
        return frames[0], frames[-1]

    def detect(self, image: np.ndarray) -> np.ndarray | None:
        self.calls += 1
        points = self.detections.get(self.current_frame)
        return None if points is None else points.copy()
