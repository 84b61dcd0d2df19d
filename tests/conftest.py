"""
Shared fixtures for hybridtrack tests.
"""

import cv2
import numpy as np
import pytest


def make_texture(size: int, seed: int = 42, sigma: float = 1.5) -> np.ndarray:
    """Smooth random texture stretched to the full [0, 1] range."""
    rng = np.random.default_rng(seed)
    noise = rng.random((size, size)).astype(np.float32)
    blurred = cv2.GaussianBlur(noise, (0, 0), sigma)
    return ((blurred - blurred.min()) / (blurred.max() - blurred.min())).astype(np.float32)


@pytest.fixture
def canvas():
    """140x140 texture to crop shifted frames from."""
    return make_texture(140)


@pytest.fixture
def low_contrast_canvas():
    """140x140 8-bit texture spanning only grey levels 110-130, like skin."""
    return np.round(110.0 + 20.0 * make_texture(140, seed=3)).astype(np.uint8)


@pytest.fixture
def half_flat_pair(canvas):
    """Frames shifted by (+3, +2) whose right half is a constant grey."""
    prev = canvas[10:110, 10:110].copy()
    curr = canvas[8:108, 7:107].copy()
    prev[:, 50:] = 0.5
    curr[:, 50:] = 0.5
    return prev, curr


@pytest.fixture
def textured_frame():
    """64x64 float32 texture."""
    return make_texture(64, seed=7)


@pytest.fixture
def landmarks():
    """Five landmarks away from the image border."""
    return np.array([
        [0.30, 0.30],
        [0.50, 0.40],
        [0.65, 0.35],
        [0.40, 0.60],
        [0.60, 0.65],
    ])
