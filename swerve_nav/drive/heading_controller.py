"""Closed-loop heading control with wraparound-aware error."""

import math
from typing import Optional

from .geometry import heading_error, normalize_angle
from .pid_controller import PIDController, PIDGains


class HeadingController:
    """
    Converts current and target heading into a rotation rate.

    The error is always the shortest signed angle to the target, so a
    robot at 170 degrees asked for -170 degrees turns 20 degrees
    counter-clockwise instead of 340 degrees the other way.
    """

    def __init__(
        self,
        gains: PIDGains,
        max_angular_rate: float,
        tolerance: float = 0.02,
    ):
        """
        Initialize the heading controller.

        Args:
            gains: PID gains (output rad/s per rad of error).
            max_angular_rate: Output bound (rad/s).
            tolerance: Error magnitude considered at setpoint (rad).
        """
        self.max_angular_rate = max_angular_rate
        self.tolerance = tolerance
        self.pid = PIDController(
            kp=gains.kp,
            ki=gains.ki,
            kd=gains.kd,
            output_limits=(-max_angular_rate, max_angular_rate),
            tolerance=tolerance,
        )
        self.pid.enable_continuous_input(-math.pi, math.pi)
        self._last_error: Optional[float] = None
        self._target: Optional[float] = None

    @property
    def target(self) -> Optional[float]:
        return self._target

    @property
    def last_error(self) -> Optional[float]:
        return self._last_error

    def calculate(self, current: float, target: float, dt: Optional[float] = None) -> float:
        """
        Compute the rotation rate command.

        Args:
            current: Current heading (rad).
            target: Target heading (rad).
            dt: Time step in seconds.

        Returns:
            Rotation rate in rad/s, bounded by max_angular_rate.
        """
        target = normalize_angle(target)
        self._target = target

        error = heading_error(current, target)
        self._last_error = error
        return self.pid.compute(error, dt)

    def at_setpoint(self) -> bool:
        """Whether the last error is within tolerance."""
        return self._last_error is not None and abs(self._last_error) < self.tolerance

    def reset(self) -> None:
        self.pid.reset()
        self._last_error = None
        self._target = None
