"""
Pyramidal iterative Lucas-Kanade sparse optical flow.

This module provides LucasKanadeFlow, a pure numpy/scipy solver that
refines every point coarse-to-fine through the image pyramid. All points
of one call are solved together, one window per point.
"""

import numpy as np
from scipy.ndimage import map_coordinates

from hybridtrack.core.config import FlowConfig
from hybridtrack.core.frame import Pyramid
from hybridtrack.flow.base import FlowEngine


# Structure matrices with a smaller determinant are treated as singular.
# The limit is 1e-6 on 8-bit luminance; det(G) scales with intensity^4.
SINGULAR_DET = 1e-6 / 255.0 ** 4


def sample_bilinear(image: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Sample an image at sub-pixel positions with bilinear interpolation."""
    coords = np.stack([ys.ravel(), xs.ravel()])
    values = map_coordinates(image, coords, order=1, mode="nearest", output=np.float64)
    return values.reshape(xs.shape)


def inside(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    """Mask of positions that can be bilinearly sampled without clamping."""
    return (xs >= 0) & (xs <= width - 1) & (ys >= 0) & (ys <= height - 1)


class LucasKanadeFlow(FlowEngine):
    """
    Coarse-to-fine Lucas-Kanade tracker.

    For each level, from coarsest to finest, the window around every point
    in the previous frame is matched against the current frame at the
    running displacement estimate. Each iteration solves the 2x2 system
    G d = b built from the previous frame's Sobel gradients and the
    temporal difference It = I_curr - I_prev, skipping window pixels that
    fall outside either image. The refined displacement is doubled and
    handed to the next finer level.

    A point whose structure matrix is singular at full resolution (a
    textureless or fully occluded window) keeps its seed position and
    gets an infinite error; the other points are unaffected.

    Attributes:
        window_size: Side of the square matching window (odd)
        max_iterations: Iteration cap per level
        epsilon: Convergence threshold on the per-iteration update (pixels)
    """

    def __init__(self, config: FlowConfig | None = None):
        super().__init__(config)
        self.window_size = self.config.window_size
        self.half_window = self.window_size // 2
        self.max_iterations = self.config.max_iterations
        self.epsilon = self.config.epsilon

        r = np.arange(-self.half_window, self.half_window + 1, dtype=np.float64)
        oy, ox = np.meshgrid(r, r, indexing="ij")
        self._offset_x = ox.ravel()
        self._offset_y = oy.ravel()

    def _refine_level(
        self,
        prev: Pyramid,
        curr: Pyramid,
        level: int,
        points: np.ndarray,
        guess: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Run the iterative solver on one pyramid level.

        Args:
            points: (N, 2) point positions at this level
            guess: (N, 2) displacement carried over from the coarser level

        Returns:
            Tuple of (refinement, singular mask, window samples, window mask)
            where the window arrays are the previous-frame intensities and
            their validity, reused for the error computation.
        """
        prev_img = prev[level].data
        curr_img = curr[level].data
        ix_img, iy_img = prev.gradients(level)
        height, width = prev_img.shape

        x0 = points[:, 0, None] + self._offset_x
        y0 = points[:, 1, None] + self._offset_y
        valid0 = inside(x0, y0, width, height)

        i0 = sample_bilinear(prev_img, x0, y0)
        ix = sample_bilinear(ix_img, x0, y0)
        iy = sample_bilinear(iy_img, x0, y0)

        n = len(points)
        delta = np.zeros((n, 2))
        active = np.ones(n, dtype=bool)
        singular = np.zeros(n, dtype=bool)

        for _ in range(self.max_iterations):
            if not active.any():
                break

            shift = guess + delta
            x1 = x0 + shift[:, 0, None]
            y1 = y0 + shift[:, 1, None]
            valid = valid0 & inside(x1, y1, curr_img.shape[1], curr_img.shape[0])

            it = np.where(valid, sample_bilinear(curr_img, x1, y1) - i0, 0.0)
            gx = np.where(valid, ix, 0.0)
            gy = np.where(valid, iy, 0.0)

            gxx = np.sum(gx * gx, axis=1)
            gxy = np.sum(gx * gy, axis=1)
            gyy = np.sum(gy * gy, axis=1)
            bx = -np.sum(gx * it, axis=1)
            by = -np.sum(gy * it, axis=1)

            det = gxx * gyy - gxy * gxy
            newly_singular = active & (np.abs(det) < SINGULAR_DET)
            singular |= newly_singular
            active &= ~newly_singular

            safe_det = np.where(active, det, 1.0)
            ddx = (gyy * bx - gxy * by) / safe_det
            ddy = (gxx * by - gxy * bx) / safe_det

            delta[active, 0] += ddx[active]
            delta[active, 1] += ddy[active]

            converged = active & (np.abs(ddx) < self.epsilon) & (np.abs(ddy) < self.epsilon)
            active &= ~converged

        # Singular windows give no usable refinement on this level
        delta[singular] = 0.0
        return delta, singular, i0, valid0

    def _window_error(
        self,
        curr_img: np.ndarray,
        points: np.ndarray,
        displacement: np.ndarray,
        i0: np.ndarray,
        valid0: np.ndarray,
    ) -> np.ndarray:
        """RMS intensity difference over each point's valid window pixels."""
        x1 = points[:, 0, None] + self._offset_x + displacement[:, 0, None]
        y1 = points[:, 1, None] + self._offset_y + displacement[:, 1, None]
        valid = valid0 & inside(x1, y1, curr_img.shape[1], curr_img.shape[0])

        diff = np.where(valid, sample_bilinear(curr_img, x1, y1) - i0, 0.0)
        count = valid.sum(axis=1)
        sq = np.sum(diff * diff, axis=1)

        errors = np.full(len(points), np.inf)
        has_pixels = count > 0
        errors[has_pixels] = np.sqrt(sq[has_pixels] / count[has_pixels])
        return errors

    def _track_pixels(
        self,
        prev: Pyramid,
        curr: Pyramid,
        points_px: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        levels = min(len(prev), len(curr))
        guess = np.zeros_like(points_px)

        for level in range(levels - 1, -1, -1):
            scale = 2.0 ** level
            level_points = points_px / scale
            delta, singular, i0, valid0 = self._refine_level(
                prev, curr, level, level_points, guess
            )
            if level > 0:
                guess = 2.0 * (guess + delta)

        displacement = guess + delta
        errors = self._window_error(curr[0].data, points_px, displacement, i0, valid0)

        # Untrackable points stay where they were seeded
        displacement[singular] = 0.0
        errors[singular] = np.inf
        return points_px + displacement, errors
