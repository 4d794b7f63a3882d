"""Configuration constants for the swerve navigation core."""

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleOffset:
    """Fixed translation of a swerve module from the chassis center."""

    x: float  # Forward (meters)
    y: float  # Left (meters)


@dataclass
class Config:
    """Configuration for the swerve navigation core."""

    # Chassis Geometry
    track_width_m: float = 0.5969  # Left-right distance between modules
    wheel_base_m: float = 0.5969  # Front-back distance between modules

    # Limits
    max_speed_mps: float = 4.5
    max_angular_rate_rps: float = 6.0

    # Module Policy
    optimize_enabled: bool = True
    state_deadband_enabled: bool = True
    deadband_speed_mps: float = 0.001

    # Vision Trust (std devs: x meters, y meters, heading radians)
    base_trust: Tuple[float, float, float] = (0.3, 0.3, 0.6)
    trust_slope: float = 0.25  # Added std dev per meter to nearest landmark
    obstacle_base_trust: Tuple[float, float, float] = (0.05, 0.05, 0.1)
    obstacle_trust_multiplier: float = 0.5
    untrusted_std_dev: float = 1.0e6

    # Fusion
    prior_covariance: Tuple[float, float, float] = (0.1, 0.1, 0.1)
    staleness_window_s: float = 1.5
    history_capacity: int = 256

    # Heading PID
    heading_kp: float = 4.5
    heading_ki: float = 0.0
    heading_kd: float = 0.15
    heading_tolerance_rad: float = 0.02

    # Translation PID (drive-to-pose)
    translation_kp: float = 1.2
    translation_ki: float = 0.0
    translation_kd: float = 0.0

    # Startup
    starting_heading_deg: float = 0.0
    loop_period_s: float = 0.02
    vision_enabled: bool = True
    landmark_map_path: Optional[str] = None

    def __post_init__(self):
        if self.max_speed_mps <= 0:
            raise ValueError(f"max_speed_mps must be positive, got {self.max_speed_mps}")
        if self.staleness_window_s <= 0:
            raise ValueError(
                f"staleness_window_s must be positive, got {self.staleness_window_s}"
            )
        if self.history_capacity < 2:
            raise ValueError(
                f"history_capacity must be at least 2, got {self.history_capacity}"
            )
        for name in ("base_trust", "obstacle_base_trust", "prior_covariance"):
            value = tuple(float(v) for v in getattr(self, name))
            if len(value) != 3:
                raise ValueError(f"{name} needs 3 values (x, y, heading), got {value}")
            if any(v < 0 for v in value):
                raise ValueError(f"{name} values must be non-negative, got {value}")
            setattr(self, name, value)

    def module_offsets(self) -> List[ModuleOffset]:
        """
        Get module offsets in module order.

        Order is front left, front right, back left, back right.
        """
        half_x = self.wheel_base_m / 2
        half_y = self.track_width_m / 2
        return [
            ModuleOffset(half_x, half_y),
            ModuleOffset(half_x, -half_y),
            ModuleOffset(-half_x, half_y),
            ModuleOffset(-half_x, -half_y),
        ]

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """
        Build a config from plain values.

        Args:
            values: Option name to value. Unset options keep their defaults.

        Returns:
            New Config.

        Raises:
            ValueError: If an option is not recognized or has a bad value.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unrecognized config options: {', '.join(unknown)}")

        kwargs = {}
        for key, value in values.items():
            if isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)


def load_config(path: Union[str, Path]) -> Config:
    """
    Load a config from a JSON file.

    Args:
        path: Path to a JSON object of option values.

    Returns:
        Loaded Config.
    """
    path = Path(path)
    with path.open("r") as f:
        values = json.load(f)

    if not isinstance(values, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")

    config = Config.from_dict(values)
    logger.info(f"Loaded config from {path} ({len(values)} options)")
    return config


# Default configuration instance
default_config = Config()
