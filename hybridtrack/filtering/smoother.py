"""
Smoothing of whole landmark PointSets.
"""

import dataclasses

import numpy as np

from hybridtrack.core.config import FilterConfig
from hybridtrack.filtering.one_euro import OneEuroFilter


class LandmarkSmoother:
    """
    Terminal smoothing stage for the scheduler's output.

    Holds one OneEuroFilter per point per coordinate channel; channels
    never share state. Filters are created from the first PointSet and
    rebuilt if the cardinality changes. A missing PointSet (subject lost)
    resets every filter so the next detection starts fresh.

    Example:
        >>> smoother = LandmarkSmoother(config=FILTER_PRESETS["stable"])
        >>> for frame in video:
        ...     result = smoother.apply(scheduler.process_frame(frame, detector))
    """

    def __init__(self, config: FilterConfig | None = None):
        self.config = config or FilterConfig()
        self.config.validate()
        self._filters: list[list[OneEuroFilter]] = []

    @property
    def shape(self) -> tuple[int, int] | None:
        if not self._filters:
            return None
        return len(self._filters), len(self._filters[0])

    def _build(self, num_points: int, channels: int) -> None:
        self._filters = [
            [OneEuroFilter.from_config(self.config) for _ in range(channels)]
            for _ in range(num_points)
        ]

    def smooth(self, points, timestamp: float | None = None) -> np.ndarray | None:
        """
        Smooth one PointSet.

        Args:
            points: (N, 2) or (N, 3) array, or None when the subject is lost
            timestamp: Sample time in seconds (optional)

        Returns:
            Smoothed copy of the points, or None
        """
        if points is None:
            self.reset()
            return None

        points = np.asarray(points, dtype=np.float64)
        if self.shape != points.shape:
            self._build(*points.shape)

        smoothed = np.empty_like(points)
        for i, row in enumerate(points):
            for c, value in enumerate(row):
                smoothed[i, c] = self._filters[i][c].filter(float(value), timestamp)
        return smoothed

    def apply(self, result):
        """Return a copy of a FrameResult with smoothed points."""
        return dataclasses.replace(result, points=self.smooth(result.points, result.timestamp))

    def reset(self) -> None:
        for channels in self._filters:
            for f in channels:
                f.reset()
