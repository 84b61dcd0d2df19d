"""
Hybrid keyframe/optical-flow scheduling.

This module provides the HybridScheduler class which decides, frame by
frame, whether to run the expensive landmark detector or the cheap
optical flow engine, adapts its keyframe cadence to observed motion and
forces a new keyframe when tracking drifts.
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import numpy as np

from hybridtrack.core.base import Detector
from hybridtrack.core.config import FlowConfig, SchedulerConfig, TrackerConfig
from hybridtrack.core.frame import Frame
from hybridtrack.flow.base import FlowEngine, FlowResult, as_point_array, create_flow_engine


logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Tracking states of one subject."""
    UNINITIALIZED = "uninitialized"  # No reference points yet
    TRACKING = "tracking"            # Reference points, interval-based keyframes
    LOST = "lost"                    # Detector failed or drift detected


class TrackingMethod(str, Enum):
    """Which path produced a frame's result."""
    DETECTOR = "detector"
    OPTICAL_FLOW = "optical-flow"
    NONE = "none"


@dataclass
class FrameResult:
    """Result emitted for every processed frame."""
    points: np.ndarray | None
    is_keyframe: bool
    error: float
    processing_time: float  # milliseconds
    method: TrackingMethod
    frame_index: int = -1
    drift: bool = False
    timestamp: float | None = None

    def as_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "points": None if self.points is None else self.points.tolist(),
            "is_keyframe": self.is_keyframe,
            "error": self.error,
            "processing_time": self.processing_time,
            "method": self.method.value,
            "frame_index": self.frame_index,
            "drift": self.drift,
            "timestamp": self.timestamp,
        }


@dataclass
class DriftEvent:
    """Reported through on_error when a tracking frame exceeds the drift limit."""
    error: float
    frame_index: int
    type: str = "drift"


@dataclass
class SchedulerMetrics:
    """Counters describing how frames were handled. Observability only."""
    keyframe_count: int = 0
    tracking_frame_count: int = 0
    forced_keyframes: int = 0
    failed_keyframes: int = 0
    avg_tracking_error: float = 0.0
    last_processing_time: float = 0.0
    _error_samples: int = field(default=0, repr=False)

    def record_tracking_error(self, error: float) -> None:
        """Fold one frame's error into the running mean (non-finite errors skipped)."""
        if not math.isfinite(error):
            return
        self._error_samples += 1
        self.avg_tracking_error += (error - self.avg_tracking_error) / self._error_samples

    @property
    def total_frames(self) -> int:
        return self.keyframe_count + self.tracking_frame_count

    @property
    def keyframe_ratio(self) -> float:
        total = self.total_frames
        return self.keyframe_count / total if total > 0 else 0.0

    @property
    def tracking_ratio(self) -> float:
        total = self.total_frames
        return self.tracking_frame_count / total if total > 0 else 0.0


@dataclass
class TrackingState:
    """Cross-frame state for one tracked subject."""
    points: np.ndarray | None = None
    lost: bool = False
    frame_count: int = 0
    current_interval: int = 5
    movement_history: deque = field(default_factory=lambda: deque(maxlen=10))
    last_movement: float | None = None
    generation: int = 0
    consecutive_failures: int = 0
    frames_since_attempt: int = 0
    num_points: int | None = None
    backoff_warned: bool = False


@dataclass(frozen=True, eq=False)
class KeyframeRequest:
    """A detector call in flight, tagged with the state generation it belongs to."""
    frame: Frame
    frame_index: int
    generation: int
    started_at: float
    timestamp: float | None = None


class HybridScheduler:
    """
    Scheduler combining a precise detector with optical flow tracking.

    Keyframes run the detector and replace the reference PointSet; the
    frames in between track the reference with the flow engine. The
    keyframe interval shrinks during fast motion and grows when the
    subject is still. A tracking frame whose average error exceeds
    max_drift_error forces the next frame to be a keyframe.

    Detector calls may complete asynchronously: request_keyframe() hands
    out a single pending request and complete_keyframe() applies its
    result, discarding results that belong to a previous generation
    (anything requested before reset()).

    Example:
        >>> scheduler = HybridScheduler()
        >>> for frame in video:
        ...     result = scheduler.process_frame(frame, detector)
        ...     if result.points is not None:
        ...         draw(result.points)
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        flow_engine: FlowEngine | None = None,
        on_keyframe: Callable[[np.ndarray], None] | None = None,
        on_tracking: Callable[[FlowResult], None] | None = None,
        on_error: Callable[[DriftEvent], None] | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            config: Scheduling settings (defaults if None)
            flow_engine: Optical flow engine (numpy Lucas-Kanade if None)
            on_keyframe: Called with the detected points after each keyframe
            on_tracking: Called with the FlowResult of each tracking frame
            on_error: Called with a DriftEvent when drift forces a keyframe
        """
        self.config = config or SchedulerConfig()
        self.config.validate()
        self.flow_engine = flow_engine or create_flow_engine(FlowConfig())

        self.on_keyframe = on_keyframe
        self.on_tracking = on_tracking
        self.on_error = on_error

        self.metrics = SchedulerMetrics()
        self._state = self._new_state(generation=0)
        self._pending: KeyframeRequest | None = None

    @classmethod
    def from_config(cls, config: TrackerConfig, **callbacks) -> "HybridScheduler":
        """Create a scheduler and its flow engine from a TrackerConfig."""
        return cls(config.scheduler, create_flow_engine(config.flow), **callbacks)

    def _new_state(self, generation: int) -> TrackingState:
        return TrackingState(
            current_interval=self.config.keyframe_interval,
            movement_history=deque(maxlen=self.config.history_size),
            generation=generation,
        )

    @property
    def tracking_state(self) -> TrackingState:
        return self._state

    @property
    def state(self) -> SchedulerState:
        if self._state.lost:
            return SchedulerState.LOST
        if self._state.points is None:
            return SchedulerState.UNINITIALIZED
        return SchedulerState.TRACKING

    @property
    def points(self) -> np.ndarray | None:
        """Last known PointSet (copy)."""
        return None if self._state.points is None else self._state.points.copy()

    @property
    def frame_count(self) -> int:
        return self._state.frame_count

    @property
    def current_interval(self) -> int:
        return self._state.current_interval

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def pending_request(self) -> KeyframeRequest | None:
        return self._pending

    def _backoff_allows_attempt(self) -> bool:
        """Whether a LOST scheduler may retry the detector on this frame."""
        after = self.config.failure_backoff_after
        failures = self._state.consecutive_failures
        if after == 0 or failures < after:
            return True

        wait = min(2 ** (failures - after + 1), self.config.max_backoff_frames)
        if not self._state.backoff_warned:
            logger.warning(
                "Detector failed %d times in a row, retrying every %d frames",
                failures, wait,
            )
            self._state.backoff_warned = True
        return self._state.frames_since_attempt >= wait - 1

    def should_run_keyframe(self) -> bool:
        """
        Decide whether the next frame goes to the detector.

        True while there is no reference PointSet, after drift or a failed
        detection, and on every current_interval-th frame. False while a
        keyframe request is still in flight.
        """
        if self._pending is not None:
            return False

        s = self._state
        if s.points is None:
            return self._backoff_allows_attempt() if s.lost else True
        if s.lost:
            return True
        return s.frame_count % s.current_interval == 0

    def process_frame(
        self,
        image,
        detector: Detector,
        timestamp: float | None = None,
    ) -> FrameResult:
        """
        Process one frame synchronously.

        Args:
            image: Raw frame (BGR or grayscale array, or a Frame)
            detector: Landmark detector used on keyframes
            timestamp: Optional capture time, copied into the result

        Returns:
            The frame's FrameResult
        """
        if not self.should_run_keyframe():
            return self.track_frame(image, timestamp)

        request = self.request_keyframe(image, timestamp)
        try:
            points = detector.detect(image)
        except Exception:
            self.cancel_keyframe()
            raise
        return self.complete_keyframe(request, points)

    def request_keyframe(self, image, timestamp: float | None = None) -> KeyframeRequest | None:
        """
        Start a keyframe and reserve the single pending-request slot.

        Returns:
            The request to pass to complete_keyframe(), or None if another
            request is still in flight
        """
        if self._pending is not None:
            logger.debug("Keyframe request already in flight, not starting another")
            return None

        s = self._state
        request = KeyframeRequest(
            frame=Frame.from_image(image),
            frame_index=s.frame_count,
            generation=s.generation,
            started_at=time.perf_counter(),
            timestamp=timestamp,
        )
        s.frame_count += 1
        s.frames_since_attempt = 0
        self._pending = request
        return request

    def cancel_keyframe(self) -> None:
        """Release the pending-request slot without applying a result."""
        self._pending = None

    def _accept_detection(self, points) -> np.ndarray | None:
        """Validate detector output, returning None for 'not found'."""
        if points is None:
            return None
        points = as_point_array(points)
        if len(points) == 0:
            return None

        expected = self._state.num_points
        if expected is not None and len(points) != expected:
            logger.warning(
                "Detector returned %d points, expected %d; treating as not found",
                len(points), expected,
            )
            return None
        return points

    def complete_keyframe(self, request: KeyframeRequest, points) -> FrameResult | None:
        """
        Apply the detector's answer to a keyframe request.

        Args:
            request: The request returned by request_keyframe()
            points: Detected normalized PointSet, or None if not found

        Returns:
            The frame's FrameResult, or None if the request is stale and
            its result was discarded
        """
        s = self._state
        if request is None or request is not self._pending or request.generation != s.generation:
            logger.debug("Discarding stale detector result for frame %s",
                         getattr(request, "frame_index", None))
            return None
        self._pending = None

        detected = self._accept_detection(points)
        if detected is None:
            return self._keyframe_failed(request)

        s.points = detected.copy()
        s.lost = False
        s.consecutive_failures = 0
        s.backoff_warned = False
        s.num_points = len(detected)

        self.flow_engine.set_keyframe(request.frame)
        self._update_movement(detected)
        self._adjust_interval()

        self.metrics.keyframe_count += 1
        elapsed = (time.perf_counter() - request.started_at) * 1000.0
        self.metrics.last_processing_time = elapsed
        logger.debug("Keyframe %d: %d points, interval %d",
                     request.frame_index, len(detected), s.current_interval)

        result = FrameResult(
            points=detected.copy(),
            is_keyframe=True,
            error=0.0,
            processing_time=elapsed,
            method=TrackingMethod.DETECTOR,
            frame_index=request.frame_index,
            timestamp=request.timestamp,
        )
        if self.on_keyframe:
            self.on_keyframe(detected.copy())
        return result

    def _keyframe_failed(self, request: KeyframeRequest) -> FrameResult:
        s = self._state
        s.lost = True
        s.points = None
        s.consecutive_failures += 1
        self.flow_engine.reset()

        self.metrics.failed_keyframes += 1
        elapsed = (time.perf_counter() - request.started_at) * 1000.0
        self.metrics.last_processing_time = elapsed
        logger.debug("Keyframe %d: no subject detected (%d consecutive)",
                     request.frame_index, s.consecutive_failures)

        return FrameResult(
            points=None,
            is_keyframe=True,
            error=1.0,
            processing_time=elapsed,
            method=TrackingMethod.DETECTOR,
            frame_index=request.frame_index,
            timestamp=request.timestamp,
        )

    def track_frame(self, image, timestamp: float | None = None) -> FrameResult:
        """
        Track the reference PointSet into a new frame with optical flow.

        The tracked positions become the new reference, so consecutive
        tracking frames chain off each other.
        """
        start = time.perf_counter()
        s = self._state
        frame_index = s.frame_count
        s.frame_count += 1
        s.frames_since_attempt += 1

        if s.points is None:
            return FrameResult(
                points=None,
                is_keyframe=False,
                error=1.0,
                processing_time=0.0,
                method=TrackingMethod.NONE,
                frame_index=frame_index,
                timestamp=timestamp,
            )

        flow = self.flow_engine.track(image, s.points)
        s.points = flow.points.copy()

        drift = flow.avg_error > self.config.max_drift_error
        if drift:
            s.lost = True
            self.metrics.forced_keyframes += 1
            logger.info("Tracking drift on frame %d (error %.4f), forcing keyframe",
                        frame_index, flow.avg_error)

        self.metrics.tracking_frame_count += 1
        self.metrics.record_tracking_error(flow.avg_error)
        elapsed = (time.perf_counter() - start) * 1000.0
        self.metrics.last_processing_time = elapsed

        result = FrameResult(
            points=flow.points.copy(),
            is_keyframe=False,
            error=flow.avg_error,
            processing_time=elapsed,
            method=TrackingMethod.OPTICAL_FLOW,
            frame_index=frame_index,
            drift=drift,
            timestamp=timestamp,
        )
        if drift and self.on_error:
            self.on_error(DriftEvent(error=flow.avg_error, frame_index=frame_index))
        if self.on_tracking:
            self.on_tracking(flow)
        return result

    def _update_movement(self, points: np.ndarray) -> None:
        """Record a keyframe detection and measure motion since the last one."""
        history = self._state.movement_history
        if history:
            last = history[-1]
            n = min(len(points), len(last))
            displacement = np.linalg.norm(points[:n, :2] - last[:n, :2], axis=1)
            self._state.last_movement = float(displacement.sum() / len(points))
        history.append(points[:, :2].copy())

    def _adjust_interval(self) -> None:
        """Pick the keyframe interval from the latest movement score."""
        if not self.config.adaptive_interval:
            return

        cfg = self.config
        movement = self._state.last_movement
        if movement is not None and movement > cfg.movement_threshold * 2:
            interval = max(cfg.min_interval, cfg.keyframe_interval - 2)
        elif movement is not None and movement < cfg.movement_threshold * 0.5:
            interval = min(cfg.max_interval, cfg.keyframe_interval + 2)
        else:
            interval = cfg.keyframe_interval
        self._state.current_interval = interval

    def force_keyframe(self) -> None:
        """Make the next frame a keyframe."""
        self._state.lost = True

    def reset(self) -> None:
        """
        Discard all tracking state.

        Configuration and metrics are kept. Any detector result requested
        before the reset will be discarded by complete_keyframe().
        """
        self._state = self._new_state(generation=self._state.generation + 1)
        self._pending = None
        self.flow_engine.reset()

    def reset_metrics(self) -> None:
        self.metrics = SchedulerMetrics()

    def dispose(self) -> None:
        """Reset and detach all callbacks."""
        self.reset()
        self.on_keyframe = None
        self.on_tracking = None
        self.on_error = None

    close = dispose

    def get_metrics(self) -> dict[str, Any]:
        """Get performance metrics including derived ratios."""
        m = self.metrics
        return {
            "keyframe_count": m.keyframe_count,
            "tracking_frame_count": m.tracking_frame_count,
            "forced_keyframes": m.forced_keyframes,
            "failed_keyframes": m.failed_keyframes,
            "avg_tracking_error": m.avg_tracking_error,
            "last_processing_time": m.last_processing_time,
            "total_frames": m.total_frames,
            "keyframe_ratio": m.keyframe_ratio,
            "tracking_ratio": m.tracking_ratio,
            "current_interval": self._state.current_interval,
        }

    def efficiency_stats(self) -> dict[str, Any]:
        """Get a display-friendly summary of detector savings."""
        m = self.metrics
        return {
            "cpu_savings": f"{round(m.tracking_ratio * 100)}%",
            "keyframes": m.keyframe_count,
            "tracking_frames": m.tracking_frame_count,
            "avg_error": f"{m.avg_tracking_error:.4f}",
            "forced_keyframes": m.forced_keyframes,
        }

    def __enter__(self) -> "HybridScheduler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.dispose()
        return False
