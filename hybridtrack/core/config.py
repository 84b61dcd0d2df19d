"""
Configuration management for hybridtrack.

Provides dataclass configuration for the scheduler, the optical flow
engine and the smoothing filters, with JSON files and environment
variable overrides.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

ENV_PREFIX = "HYBRIDTRACK_"


def _known_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys that are not fields of the dataclass."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class SchedulerConfig:
    """Keyframe scheduling settings."""
    keyframe_interval: int = 5
    max_drift_error: float = 0.05
    min_confidence: float = 0.7  # advisory, interpreted by the detector
    adaptive_interval: bool = True
    movement_threshold: float = 0.02
    history_size: int = 10
    min_interval: int = 3
    max_interval: int = 8
    failure_backoff_after: int = 3  # 0 disables backoff
    max_backoff_frames: int = 8

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchedulerConfig":
        return cls(**_known_fields(cls, data))

    def validate(self) -> None:
        """Raise ValueError for settings the scheduler cannot run with."""
        if self.keyframe_interval < 1:
            raise ValueError(f"keyframe_interval must be >= 1, got {self.keyframe_interval}")
        if self.min_interval < 1 or self.max_interval < self.min_interval:
            raise ValueError(
                f"Invalid interval bounds: min={self.min_interval}, max={self.max_interval}"
            )
        if self.max_drift_error < 0:
            raise ValueError(f"max_drift_error must be >= 0, got {self.max_drift_error}")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if self.history_size < 2:
            raise ValueError(f"history_size must be >= 2, got {self.history_size}")
        if self.failure_backoff_after < 0 or self.max_backoff_frames < 1:
            raise ValueError("Invalid failure backoff settings")


@dataclass
class FlowConfig:
    """Optical flow engine settings."""
    backend: str = "numpy"  # "numpy" or "opencv"
    window_size: int = 15
    pyramid_levels: int = 3
    max_iterations: int = 10
    epsilon: float = 0.01
    min_level_size: int = 10

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FlowConfig":
        return cls(**_known_fields(cls, data))

    def validate(self) -> None:
        """Raise ValueError for settings the flow engine cannot run with."""
        if self.window_size < 3 or self.window_size % 2 == 0:
            raise ValueError(f"window_size must be odd and >= 3, got {self.window_size}")
        if self.pyramid_levels < 1:
            raise ValueError(f"pyramid_levels must be >= 1, got {self.pyramid_levels}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")
        if self.min_level_size < 1:
            raise ValueError(f"min_level_size must be >= 1, got {self.min_level_size}")


@dataclass
class FilterConfig:
    """One Euro filter settings."""
    frequency: float = 30.0
    min_cutoff: float = 1.0
    beta: float = 0.007
    d_cutoff: float = 1.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilterConfig":
        return cls(**_known_fields(cls, data))

    def validate(self) -> None:
        """Raise ValueError for settings that would produce non-finite output."""
        if self.frequency <= 0:
            raise ValueError(f"frequency must be > 0, got {self.frequency}")
        if self.min_cutoff <= 0:
            raise ValueError(f"min_cutoff must be > 0, got {self.min_cutoff}")
        if self.d_cutoff <= 0:
            raise ValueError(f"d_cutoff must be > 0, got {self.d_cutoff}")
        if self.beta < 0:
            raise ValueError(f"beta must be >= 0, got {self.beta}")


# Tuned filter settings for common kinds of interaction
FILTER_PRESETS: dict[str, FilterConfig] = {
    "default": FilterConfig(frequency=30.0, min_cutoff=1.0, beta=0.007, d_cutoff=1.0),
    # Steady hold for precise grabbing
    "stable": FilterConfig(frequency=30.0, min_cutoff=0.5, beta=0.01, d_cutoff=1.0),
    # Low lag for steering-style input
    "responsive": FilterConfig(frequency=30.0, min_cutoff=1.0, beta=0.02, d_cutoff=1.0),
}


def get_filter_preset(name: str) -> FilterConfig:
    """Return a copy of a named filter preset."""
    try:
        preset = FILTER_PRESETS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown filter preset '{name}'. Valid presets: {', '.join(FILTER_PRESETS)}"
        ) from None
    return FilterConfig(**asdict(preset))


@dataclass
class TrackerConfig:
    """
    Main configuration container.

    Example:
        config = TrackerConfig.load("tracker.json")
        scheduler = HybridScheduler(config.scheduler,
                                    flow_engine=create_flow_engine(config.flow))
    """
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    flow: FlowConfig = field(default_factory=FlowConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    smoothing_enabled: bool = True

    @classmethod
    def load(cls, path: str | Path) -> "TrackerConfig":
        """Load configuration from a JSON file."""
        return load_config(path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackerConfig":
        return cls(
            scheduler=SchedulerConfig.from_dict(data.get("scheduler", {})),
            flow=FlowConfig.from_dict(data.get("flow", {})),
            filter=FilterConfig.from_dict(data.get("filter", {})),
            smoothing_enabled=bool(data.get("smoothing_enabled", True)),
        )

    def save(self, path: str | Path) -> None:
        """Save configuration to a JSON file."""
        save_config(self, path)

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return {
            "scheduler": asdict(self.scheduler),
            "flow": asdict(self.flow),
            "filter": asdict(self.filter),
            "smoothing_enabled": self.smoothing_enabled,
        }

    def validate(self) -> None:
        self.scheduler.validate()
        self.flow.validate()
        self.filter.validate()


def load_config(path: str | Path) -> TrackerConfig:
    """
    Load configuration from a JSON file.

    Missing sections and keys fall back to their defaults.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Parsed and validated TrackerConfig

    Raises:
        FileNotFoundError: If the config file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
        ValueError: If a setting is out of range
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    config = TrackerConfig.from_dict(data)
    config.validate()
    return config


def save_config(config: TrackerConfig, path: str | Path) -> None:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration object to save
        path: Output path for the JSON file
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def create_example_config(path: str | Path = "hybridtrack.json") -> TrackerConfig:
    """
    Write a configuration file holding every default.

    Args:
        path: Output path for the example config

    Returns:
        The created TrackerConfig object
    """
    config = TrackerConfig()
    config.save(path)
    return config


def get_env_config(prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """
    Get configuration from environment variables.

    All environment variables starting with the prefix will be included.
    Variable names are converted to lowercase with the prefix removed.

    Example:
        HYBRIDTRACK_FLOW__BACKEND=opencv -> {"flow__backend": "opencv"}
    """
    config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            config[config_key] = value
    return config


def _coerce(value: str, current: Any) -> Any:
    """Convert an environment string to the type of the current value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "yes", "1", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def apply_env_overrides(
    config: TrackerConfig,
    env: dict[str, Any] | None = None,
) -> TrackerConfig:
    """
    Apply `section__field` overrides to a configuration in place.

    Args:
        config: Configuration to update
        env: Overrides as returned by get_env_config() (default: read the
            environment)

    Returns:
        The updated configuration

    Raises:
        ValueError: If a key does not name a known setting or a value
            cannot be converted
    """
    if env is None:
        env = get_env_config()

    for key, value in env.items():
        if "__" in key:
            section_name, field_name = key.split("__", 1)
            target = getattr(config, section_name, None)
            if target is None or not hasattr(target, "__dataclass_fields__"):
                raise ValueError(f"Unknown configuration section: {section_name}")
        else:
            target, field_name = config, key

        if field_name not in target.__dataclass_fields__:
            raise ValueError(f"Unknown configuration key: {key}")

        current = getattr(target, field_name)
        new_value = _coerce(value, current) if isinstance(value, str) else value
        setattr(target, field_name, new_value)
        logger.debug("Config override %s = %r", key, new_value)

    config.validate()
    return config
