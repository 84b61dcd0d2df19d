"""
One Euro adaptive low-pass filter.

Removes jitter from a scalar coordinate stream while keeping lag low
during fast motion: the cutoff frequency of the value filter rises with
the (smoothed) speed of the signal.

Reference: Casiez, Roussel and Vogel, "1 Euro Filter: A Simple
Speed-based Low-pass Filter for Noisy Input in Interactive Systems", CHI 2012.
"""

import math

from hybridtrack.core.config import FilterConfig


def smoothing_factor(cutoff: float, frequency: float) -> float:
    """
    Exponential smoothing coefficient for a cutoff at a sampling rate.

    alpha = 1 / (1 + tau / Te) with tau = 1 / (2 pi cutoff), Te = 1 / frequency
    """
    tau = 1.0 / (2.0 * math.pi * cutoff)
    te = 1.0 / frequency
    return 1.0 / (1.0 + tau / te)


class LowPassFilter:
    """Single exponential low-pass stage."""

    def __init__(self, alpha: float = 1.0):
        self.alpha = alpha
        self.initialized = False
        self.last_value = 0.0

    def filter(self, x: float, alpha: float | None = None) -> float:
        """Filter one sample; the first sample passes through unchanged."""
        if alpha is not None:
            self.alpha = alpha
        if not self.initialized:
            self.initialized = True
            self.last_value = x
            return x
        # alpha * x + (1 - alpha) * last, exact for a constant signal
        value = self.last_value + self.alpha * (x - self.last_value)
        self.last_value = value
        return value

    def reset(self) -> None:
        self.initialized = False


class OneEuroFilter:
    """
    Speed-adaptive filter for one scalar channel.

    Attributes:
        nominal_frequency: Configured sampling rate (Hz)
        frequency: Current sampling rate estimate (Hz), always > 0
        min_cutoff: Cutoff when stationary; lower is smoother but lags more
        beta: Speed sensitivity; higher reacts faster but jitters more
        d_cutoff: Cutoff of the derivative estimate

    Example:
        >>> f = OneEuroFilter(frequency=30.0)
        >>> smoothed = [f.filter(x, t) for t, x in samples]
    """

    def __init__(
        self,
        frequency: float,
        min_cutoff: float = 1.0,
        beta: float = 0.007,
        d_cutoff: float = 1.0,
    ):
        """
        Args:
            frequency: Nominal sampling rate in Hz (e.g. 30 for a 30 fps camera)
            min_cutoff: Minimum cutoff frequency in Hz
            beta: Cutoff slope per unit of speed
            d_cutoff: Cutoff frequency for the derivative in Hz

        Raises:
            ValueError: If a frequency or cutoff is not positive or beta is negative
        """
        FilterConfig(frequency, min_cutoff, beta, d_cutoff).validate()
        self.nominal_frequency = float(frequency)
        self.frequency = float(frequency)
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff

        self._x_filter = LowPassFilter()
        self._dx_filter = LowPassFilter()
        self._prev_raw = 0.0
        self._last_time: float | None = None

    @classmethod
    def from_config(cls, config: FilterConfig) -> "OneEuroFilter":
        return cls(config.frequency, config.min_cutoff, config.beta, config.d_cutoff)

    @property
    def initialized(self) -> bool:
        return self._x_filter.initialized

    def filter(self, x: float, timestamp: float | None = None) -> float:
        """
        Filter one sample.

        Args:
            x: Raw value
            timestamp: Sample time in seconds. When this and the previous
                sample both carry a timestamp and time moved forward, the
                sampling rate is re-estimated from their difference;
                otherwise the current estimate is kept.

        Returns:
            Filtered value
        """
        if timestamp is not None and self._last_time is not None:
            dt = timestamp - self._last_time
            if dt > 0:
                self.frequency = 1.0 / dt
        self._last_time = timestamp

        if self._x_filter.initialized:
            dx = (x - self._prev_raw) * self.frequency
        else:
            dx = 0.0
        self._prev_raw = x

        edx = self._dx_filter.filter(dx, smoothing_factor(self.d_cutoff, self.frequency))
        cutoff = self.min_cutoff + self.beta * abs(edx)
        return self._x_filter.filter(x, smoothing_factor(cutoff, self.frequency))

    def reset(self) -> None:
        """Forget the signal history; configuration is kept."""
        self._x_filter.reset()
        self._dx_filter.reset()
        self._last_time = None
        self.frequency = self.nominal_frequency


class OneEuroFilterND:
    """Independent One Euro filters for each axis of a coordinate."""

    dims = 2

    def __init__(
        self,
        frequency: float,
        min_cutoff: float = 1.0,
        beta: float = 0.007,
        d_cutoff: float = 1.0,
    ):
        self.filters = [
            OneEuroFilter(frequency, min_cutoff, beta, d_cutoff)
            for _ in range(self.dims)
        ]

    def filter(self, *values: float, timestamp: float | None = None) -> tuple[float, ...]:
        if len(values) != self.dims:
            raise ValueError(f"Expected {self.dims} values, got {len(values)}")
        return tuple(f.filter(v, timestamp) for f, v in zip(self.filters, values))

    def reset(self) -> None:
        for f in self.filters:
            f.reset()


class OneEuroFilter2D(OneEuroFilterND):
    """One Euro filter for (x, y) coordinates."""
    dims = 2


class OneEuroFilter3D(OneEuroFilterND):
    """One Euro filter for (x, y, z) coordinates."""
    dims = 3
