"""
OpenCV-backed optical flow.

Runs the same pyramidal Lucas-Kanade estimation through
cv2.calcOpticalFlowPyrLK, which uses OpenCV's native, vectorized
implementation instead of the numpy solver.
"""

import cv2
import numpy as np

from hybridtrack.core.config import FlowConfig
from hybridtrack.core.frame import Pyramid
from hybridtrack.flow.base import FlowEngine


class OpenCVFlow(FlowEngine):
    """
    Lucas-Kanade flow on OpenCV's native solver.

    OpenCV builds its own pyramid from the full-resolution 8-bit frame;
    the number of levels follows the pyramid built by this engine so both
    backends see the same depth. Errors are mean absolute window
    differences rescaled to the [0, 1] intensity range.
    """

    def __init__(self, config: FlowConfig | None = None):
        super().__init__(config)
        self.lk_params = {
            "winSize": (self.config.window_size, self.config.window_size),
            "criteria": (
                cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT,
                self.config.max_iterations,
                self.config.epsilon,
            ),
        }

    def _track_pixels(
        self,
        prev: Pyramid,
        curr: Pyramid,
        points_px: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        prev_gray = prev.base.to_uint8()
        curr_gray = curr.base.to_uint8()
        seeds = points_px.astype(np.float32).reshape(-1, 1, 2)

        tracked, status, error = cv2.calcOpticalFlowPyrLK(
            prev_gray,
            curr_gray,
            seeds,
            None,
            maxLevel=min(len(prev), len(curr)) - 1,
            **self.lk_params,
        )

        tracked = tracked.reshape(-1, 2).astype(np.float64)
        errors = error.ravel().astype(np.float64) / 255.0
        lost = status.ravel() == 0

        # Lost points stay where they were seeded
        tracked[lost] = points_px[lost]
        errors[lost] = np.inf
        return tracked, errors
