"""Hardware capability interfaces, the heading sensor and simulated devices."""

import logging
import math
from typing import Optional, Protocol, Tuple

from .geometry import normalize_angle

logger = logging.getLogger(__name__)


class SensorReadError(RuntimeError):
    """A device could not produce a reading this cycle."""


class HardwareInitError(RuntimeError):
    """Required hardware could not be constructed at startup."""


class GyroDevice(Protocol):
    """Absolute heading sensor."""

    def get_yaw_degrees(self) -> float:
        ...

    def get_raw_gyro_dps(self) -> Tuple[float, float, float]:
        ...

    def set_yaw_degrees(self, degrees: float) -> None:
        ...


class DriveActuator(Protocol):
    """Wheel drive motor with an integrated encoder."""

    def get_distance(self) -> float:
        ...

    def get_velocity(self) -> float:
        ...

    def set_velocity(self, velocity: float) -> None:
        ...

    def stop(self) -> None:
        ...


class SteerActuator(Protocol):
    """Steering motor with an absolute angle sensor."""

    def get_angle(self) -> float:
        ...

    def set_angle(self, angle: float) -> None:
        ...

    def stop(self) -> None:
        ...


class HeadingSensor:
    """
    Heading sensor wrapper.

    Converts the device's degree readings to normalized radians and
    holds the last good value when a read fails.
    """

    def __init__(self, device: GyroDevice, starting_heading_deg: float = 0.0):
        """
        Initialize the heading sensor.

        Args:
            device: Gyro to read from.
            starting_heading_deg: Heading applied by initialize_heading().
        """
        if device is None:
            raise HardwareInitError("A gyro device is required for the heading sensor")

        self.device = device
        self.starting_heading_deg = starting_heading_deg
        self.fault = False
        self._has_reset_heading = False
        self._last_heading = 0.0
        self._last_rates = (0.0, 0.0, 0.0)

    def get_heading(self) -> float:
        """Get the heading in radians, in (-pi, pi]."""
        try:
            degrees = float(self.device.get_yaw_degrees())
        except SensorReadError as e:
            self._set_fault(f"heading read failed: {e}")
            return self._last_heading

        if not math.isfinite(degrees):
            self._set_fault(f"heading read returned {degrees}")
            return self._last_heading

        self.fault = False
        self._last_heading = normalize_angle(math.radians(degrees))
        return self._last_heading

    def get_angular_rate(self, axis: int) -> float:
        """
        Get the raw angular rate about one axis.

        Args:
            axis: 0 for x, 1 for y, 2 for z.

        Returns:
            Rate in rad/s.
        """
        if axis not in (0, 1, 2):
            raise ValueError(f"Gyro axis must be 0, 1 or 2, got {axis}")

        try:
            rates = tuple(float(r) for r in self.device.get_raw_gyro_dps())
        except SensorReadError as e:
            self._set_fault(f"gyro rate read failed: {e}")
            rates = self._last_rates
        else:
            if len(rates) != 3 or not all(math.isfinite(r) for r in rates):
                self._set_fault(f"gyro rate read returned {rates}")
                rates = self._last_rates
            else:
                self._last_rates = rates

        return math.radians(rates[axis])

    def set_heading_degrees(self, degrees: float) -> None:
        """Reset the device yaw."""
        self.device.set_yaw_degrees(degrees)
        self._last_heading = normalize_angle(math.radians(degrees))
        logger.info(f"Heading reset to {degrees:.1f} deg")

    def initialize_heading(self, force: bool = False) -> bool:
        """
        Reset the heading to the starting heading once.

        Args:
            force: Reset even if it has already been done.

        Returns:
            True if the heading was reset.
        """
        if self._has_reset_heading and not force:
            return False
        self._has_reset_heading = True
        self.set_heading_degrees(self.starting_heading_deg)
        return True

    def _set_fault(self, message: str) -> None:
        if not self.fault:
            logger.warning(f"Heading sensor fault, holding last value: {message}")
        self.fault = True


class SimulatedGyro:
    """Gyro integrating a commanded yaw rate."""

    def __init__(self, yaw_degrees: float = 0.0):
        self.yaw_degrees = yaw_degrees
        self.rates_dps = (0.0, 0.0, 0.0)
        self.failing = False

    def get_yaw_degrees(self) -> float:
        if self.failing:
            raise SensorReadError("simulated gyro failure")
        return self.yaw_degrees

    def get_raw_gyro_dps(self) -> Tuple[float, float, float]:
        if self.failing:
            raise SensorReadError("simulated gyro failure")
        return self.rates_dps

    def set_yaw_degrees(self, degrees: float) -> None:
        self.yaw_degrees = degrees

    def step(self, yaw_rate_rps: float, dt: float) -> None:
        rate_dps = math.degrees(yaw_rate_rps)
        self.rates_dps = (0.0, 0.0, rate_dps)
        self.yaw_degrees += rate_dps * dt


class SimulatedDriveActuator:
    """Drive motor that reaches its commanded velocity immediately."""

    def __init__(self, max_velocity: Optional[float] = None):
        self.max_velocity = max_velocity
        self.distance = 0.0
        self.velocity = 0.0
        self.commanded_velocity = 0.0
        self.failing = False

    def get_distance(self) -> float:
        if self.failing:
            raise SensorReadError("simulated encoder failure")
        return self.distance

    def get_velocity(self) -> float:
        if self.failing:
            raise SensorReadError("simulated encoder failure")
        return self.velocity

    def set_velocity(self, velocity: float) -> None:
        if self.max_velocity is not None:
            velocity = max(-self.max_velocity, min(self.max_velocity, velocity))
        self.commanded_velocity = velocity

    def stop(self) -> None:
        self.commanded_velocity = 0.0

    def step(self, dt: float) -> None:
        self.velocity = self.commanded_velocity
        self.distance += self.velocity * dt


class SimulatedSteerActuator:
    """Steering motor that reaches its commanded angle immediately."""

    def __init__(self, angle: float = 0.0):
        self.angle = normalize_angle(angle)
        self.commanded_angle = self.angle
        self.failing = False

    def get_angle(self) -> float:
        if self.failing:
            raise SensorReadError("simulated steer encoder failure")
        return self.angle

    def set_angle(self, angle: float) -> None:
        self.commanded_angle = normalize_angle(angle)

    def stop(self) -> None:
        self.commanded_angle = self.angle

    def step(self, dt: float) -> None:
        self.angle = self.commanded_angle
