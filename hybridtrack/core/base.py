"""
Collaborator protocols for hybridtrack.

The landmark detector and the result consumer live outside this package;
these protocols describe what the scheduler expects from them.
"""

from typing import Any, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Detector(Protocol):
    """
    Protocol for precise landmark detectors.

    detect() receives the raw image of one frame and returns a PointSet of
    normalized (N, 2) or (N, 3) coordinates, or None when no subject is
    found. Latency is up to the detector.
    """

    def detect(self, image: np.ndarray) -> np.ndarray | None:
        """Detect landmarks in one image."""
        ...


@runtime_checkable
class ResultConsumer(Protocol):
    """Protocol for objects that receive per-frame tracking results."""

    def __call__(self, result: Any) -> None:
        """Handle one frame's result."""
        ...
