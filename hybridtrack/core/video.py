"""
Video frame source for hybridtrack.

The tracking core never acquires images itself; the CLI feeds it frames
from a file through VideoReader.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import cv2
import numpy as np


@dataclass
class VideoProperties:
    """Size, rate and length of a video file."""
    width: int
    height: int
    fps: float
    frame_count: int

    @classmethod
    def from_capture(cls, cap: cv2.VideoCapture) -> "VideoProperties":
        return cls(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=cap.get(cv2.CAP_PROP_FPS),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )

    @property
    def frame_interval(self) -> float:
        """Seconds between frames (0 if the fps is unknown)."""
        return 1.0 / self.fps if self.fps > 0 else 0.0


class VideoReader:
    """
    Iterate over the frames of a video file, optionally limited to a range.

    Frame numbers are 1-indexed.

    Example:
        with VideoReader("hand.mp4", first_frame=100, last_frame=500) as reader:
            for frame_num, frame in reader:
                result = scheduler.process_frame(frame, detector,
                                                 timestamp=reader.timestamp(frame_num))
    """

    def __init__(
        self,
        path: str | Path,
        first_frame: int = 1,
        last_frame: int | None = None,
    ):
        self.path = Path(path)
        self.first_frame = max(1, first_frame)
        self.last_frame = last_frame

        self._cap: cv2.VideoCapture | None = None
        self._props: VideoProperties | None = None

    def open(self) -> "VideoReader":
        """
        Open the file and seek to the first frame.

        Raises:
            FileNotFoundError: If the file doesn't exist
            RuntimeError: If OpenCV cannot decode it
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Video file not found: {self.path}")

        self._cap = cv2.VideoCapture(str(self.path))
        if not self._cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.path}")

        self._props = VideoProperties.from_capture(self._cap)
        if self.first_frame > 1:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, self.first_frame - 1)
        return self

    def close(self) -> None:
        if self._cap:
            self._cap.release()
            self._cap = None

    @property
    def properties(self) -> VideoProperties:
        if self._props is None:
            raise RuntimeError("Video not opened. Call open() first.")
        return self._props

    def timestamp(self, frame_num: int) -> float | None:
        """Presentation time of a frame in seconds, from the nominal fps."""
        interval = self.properties.frame_interval
        return (frame_num - 1) * interval if interval > 0 else None

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        """Yield (frame_num, BGR frame) pairs until the range or the file ends."""
        if self._cap is None:
            self.open()

        frame_num = self.first_frame
        while self.last_frame is None or frame_num <= self.last_frame:
            ok, frame = self._cap.read()
            if not ok:
                break
            yield frame_num, frame
            frame_num += 1

    def __enter__(self) -> "VideoReader":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
