"""
Grayscale frames and multi-resolution pyramids.

A Frame is derived once per input image and never modified afterwards.
Pyramids are built from a single Frame and cache their per-level Sobel
gradients, so the flow engines can reuse them across calls.
"""

from dataclasses import dataclass

import cv2
import numpy as np


# Pyramid construction stops before a level drops below this size
MIN_LEVEL_SIZE = 10


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to a float32 luminance field in [0, 1].

    Args:
        image: BGR/BGRA color image or a 2-D grayscale image. Float
            images are assumed to already be in [0, 1].

    Returns:
        2-D float32 array
    """
    image = np.asarray(image)
    if image.dtype not in (np.uint8, np.uint16, np.float32):
        image = image.astype(np.float32)
    if image.ndim == 3:
        if image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 1:
            image = image[:, :, 0]
        else:
            raise ValueError(f"Unsupported channel count: {image.shape[2]}")
    elif image.ndim != 2:
        raise ValueError(f"Expected a 2-D or 3-D image, got shape {image.shape}")

    if image.dtype == np.uint8:
        return image.astype(np.float32) / 255.0
    if image.dtype == np.uint16:
        return image.astype(np.float32) / 65535.0
    return image.astype(np.float32)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    Immutable grayscale intensity field.

    Intensities are normalized to [0, 1] so that tracking errors are
    independent of the source bit depth.
    """
    data: np.ndarray

    @classmethod
    def from_image(cls, image: "np.ndarray | Frame") -> "Frame":
        """Build a Frame from a color or grayscale image (Frames pass through)."""
        if isinstance(image, Frame):
            return image
        gray = np.ascontiguousarray(to_grayscale(image))
        return cls(gray)

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape

    def to_uint8(self) -> np.ndarray:
        """Return the frame as an 8-bit image."""
        return np.clip(self.data * 255.0 + 0.5, 0, 255).astype(np.uint8)


def downsample(frame: Frame) -> Frame:
    """Halve a frame's resolution with 2x2 block averaging."""
    h = frame.height // 2
    w = frame.width // 2
    src = frame.data[:h * 2, :w * 2]
    blocks = (
        src[0::2, 0::2] + src[0::2, 1::2] +
        src[1::2, 0::2] + src[1::2, 1::2]
    )
    half = np.ascontiguousarray(blocks * 0.25, dtype=np.float32)
    return Frame(half)


def sobel_gradients(frame: Frame) -> tuple[np.ndarray, np.ndarray]:
    """
    Compute horizontal and vertical 3x3 Sobel gradients, normalized by 8.

    Returns:
        Tuple of (Ix, Iy) float32 arrays
    """
    ix = cv2.Sobel(frame.data, cv2.CV_32F, 1, 0, ksize=3, scale=0.125)
    iy = cv2.Sobel(frame.data, cv2.CV_32F, 0, 1, ksize=3, scale=0.125)
    return ix, iy


class Pyramid:
    """
    Ordered sequence of Frames at halving resolutions.

    Level 0 is the source frame, the coarsest level has the last index.

    Example:
        >>> pyramid = build_pyramid(Frame.from_image(image), levels=3)
        >>> len(pyramid)
        3
        >>> ix, iy = pyramid.gradients(0)
    """

    def __init__(self, levels: list[Frame] | tuple[Frame, ...]):
        if not levels:
            raise ValueError("A pyramid needs at least one level")
        self._levels: tuple[Frame, ...] = tuple(levels)
        self._gradients: dict[int, tuple[np.ndarray, np.ndarray]] = {}

    def __len__(self) -> int:
        return len(self._levels)

    def __getitem__(self, level: int) -> Frame:
        return self._levels[level]

    def __iter__(self):
        return iter(self._levels)

    @property
    def base(self) -> Frame:
        """Full-resolution frame."""
        return self._levels[0]

    @property
    def levels(self) -> tuple[Frame, ...]:
        return self._levels

    def gradients(self, level: int) -> tuple[np.ndarray, np.ndarray]:
        """Sobel gradients of one level, computed on first use."""
        if level not in self._gradients:
            self._gradients[level] = sobel_gradients(self._levels[level])
        return self._gradients[level]


def build_pyramid(
    frame: Frame,
    levels: int = 3,
    min_size: int = MIN_LEVEL_SIZE,
) -> Pyramid:
    """
    Build an image pyramid by repeated 2x downsampling.

    Stops early when the next level would be narrower or shorter than
    min_size pixels, so this never fails on small inputs; the result
    just has fewer levels.

    Args:
        frame: Source frame (level 0)
        levels: Maximum number of levels including the source
        min_size: Minimum width/height of any generated level

    Returns:
        Pyramid with between 1 and `levels` levels
    """
    pyramid = [frame]
    current = frame
    for _ in range(1, max(1, levels)):
        if current.width // 2 < min_size or current.height // 2 < min_size:
            break
        current = downsample(current)
        pyramid.append(current)
    return Pyramid(pyramid)
