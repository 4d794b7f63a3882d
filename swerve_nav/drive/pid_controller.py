"""PID controller for single-axis closed-loop control."""

import math
import time
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class PIDGains:
    """PID controller gains."""

    kp: float  # Proportional gain
    ki: float  # Integral gain
    kd: float  # Derivative gain


class PIDController:
    """
    PID controller for single-axis control.

    Implements a discrete PID controller with anti-windup and
    derivative filtering. With continuous input enabled, the error is
    wrapped into the input range so it always takes the short way
    around.
    """

    def __init__(
        self,
        kp: float = 1.0,
        ki: float = 0.0,
        kd: float = 0.0,
        output_limits: tuple = (-float("inf"), float("inf")),
        integral_limits: tuple = (-float("inf"), float("inf")),
        derivative_filter: float = 1.0,
        tolerance: float = 0.0,
    ):
        """
        Initialize PID controller.

        Args:
            kp: Proportional gain.
            ki: Integral gain.
            kd: Derivative gain.
            output_limits: (min, max) output limits.
            integral_limits: (min, max) integral term limits (anti-windup).
            derivative_filter: Low-pass filter coefficient for derivative (0-1).
            tolerance: Error magnitude considered at setpoint.
        """
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.output_limits = output_limits
        self.integral_limits = integral_limits
        self.derivative_filter = derivative_filter
        self.tolerance = tolerance

        self._continuous_range: Optional[Tuple[float, float]] = None

        # State
        self._integral = 0.0
        self._last_error = None
        self._last_time = None
        self._filtered_derivative = 0.0

    def enable_continuous_input(self, min_input: float, max_input: float) -> None:
        """Treat the input range as a circle, e.g. (-pi, pi) for angles."""
        self._continuous_range = (min_input, max_input)

    def disable_continuous_input(self) -> None:
        self._continuous_range = None

    def is_continuous_input_enabled(self) -> bool:
        return self._continuous_range is not None

    def wrap_error(self, error: float) -> float:
        """Wrap an error into the continuous range, if enabled."""
        if self._continuous_range is None:
            return error
        low, high = self._continuous_range
        half_span = (high - low) / 2.0
        span = high - low
        wrapped = math.remainder(error, span)
        if wrapped <= -half_span:
            wrapped += span
        return wrapped

    def compute(self, error: float, dt: Optional[float] = None) -> float:
        """
        Compute PID output.

        Args:
            error: Current error (setpoint - measurement).
            dt: Time step in seconds. If None, uses actual elapsed time.

        Returns:
            PID output value.
        """
        current_time = time.time()
        error = self.wrap_error(error)

        # Compute dt
        if dt is None:
            if self._last_time is None:
                dt = 0.02  # Default for first call
            else:
                dt = current_time - self._last_time
        self._last_time = current_time

        # Avoid division by zero
        if dt <= 0:
            dt = 0.001

        # Proportional term
        p_term = self.kp * error

        # Integral term with anti-windup
        self._integral += error * dt
        self._integral = max(
            self.integral_limits[0],
            min(self.integral_limits[1], self._integral),
        )
        i_term = self.ki * self._integral

        # Derivative term with filtering
        if self._last_error is not None:
            raw_derivative = self.wrap_error(error - self._last_error) / dt
            # Low-pass filter
            self._filtered_derivative = (
                self.derivative_filter * raw_derivative
                + (1 - self.derivative_filter) * self._filtered_derivative
            )
        else:
            self._filtered_derivative = 0.0
        d_term = self.kd * self._filtered_derivative

        self._last_error = error

        # Compute output
        output = p_term + i_term + d_term

        # Apply output limits
        output = max(self.output_limits[0], min(self.output_limits[1], output))

        return output

    def calculate(self, measurement: float, setpoint: float, dt: Optional[float] = None) -> float:
        """Compute output from a measurement and setpoint."""
        return self.compute(setpoint - measurement, dt)

    def at_setpoint(self) -> bool:
        """Whether the last error is within tolerance."""
        return self._last_error is not None and abs(self._last_error) < self.tolerance

    def reset(self) -> None:
        """Reset controller state."""
        self._integral = 0.0
        self._last_error = None
        self._last_time = None
        self._filtered_derivative = 0.0

    def get_state(self) -> dict:
        """Get current controller state for debugging."""
        return {
            "integral": self._integral,
            "last_error": self._last_error,
            "filtered_derivative": self._filtered_derivative,
        }
