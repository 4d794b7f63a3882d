"""A single swerve module: one drive actuator and one steer actuator."""

import logging
import math
from typing import Optional

from .geometry import normalize_angle
from .hardware import DriveActuator, SensorReadError, SteerActuator
from .kinematics import ModuleDesiredState, ModuleMeasuredPosition, ModuleMeasuredState

logger = logging.getLogger(__name__)


class SwerveModule:
    """
    Swerve module converting desired states into actuator commands.

    Applies speed clamping, the quarter-turn optimization and the
    low-speed state deadband before writing setpoints. A failed or
    non-finite read never reaches the actuators: the module holds its
    previous command and raises `fault`.
    """

    def __init__(
        self,
        module_id: int,
        drive: DriveActuator,
        steer: SteerActuator,
        max_speed: float,
        optimize: bool = True,
        state_deadband: bool = True,
        deadband_speed: float = 0.001,
        name: Optional[str] = None,
    ):
        """
        Initialize the module.

        Args:
            module_id: Index of the module (0-3).
            drive: Drive actuator.
            steer: Steer actuator.
            max_speed: Physical wheel speed limit (m/s).
            optimize: Enable the quarter-turn optimization.
            state_deadband: Hold angle and stop driving below deadband_speed.
            deadband_speed: Speed threshold for the state deadband (m/s).
            name: Human-readable name for logs.
        """
        self.module_id = module_id
        self.name = name or f"module {module_id}"
        self.drive = drive
        self.steer = steer
        self.max_speed = max_speed
        self.optimize_enabled = optimize
        self.state_deadband_enabled = state_deadband
        self.deadband_speed = deadband_speed

        self._read_fault = False
        self._command_fault = False
        self._desired = ModuleDesiredState(0.0, 0.0)
        self._last_position = ModuleMeasuredPosition(0.0, 0.0)
        self._last_state = ModuleMeasuredState(0.0, 0.0)

    @property
    def fault(self) -> bool:
        """Whether the latest sensor read or command was rejected."""
        return self._read_fault or self._command_fault

    @property
    def desired_state(self) -> ModuleDesiredState:
        """Last state written to the actuators."""
        return self._desired

    def set_optimize(self, enabled: bool) -> None:
        self.optimize_enabled = enabled

    def enable_state_deadband(self, enabled: bool) -> None:
        self.state_deadband_enabled = enabled

    def set_desired_state(self, state: ModuleDesiredState) -> None:
        """
        Command the module.

        Args:
            state: Desired wheel speed (m/s) and steer angle (rad).
        """
        if not (math.isfinite(state.speed) and math.isfinite(state.angle)):
            self._set_fault(f"rejected non-finite desired state {state}", command=True)
            self._write(self._desired)
            return

        speed = max(-self.max_speed, min(self.max_speed, state.speed))
        angle = normalize_angle(state.angle)

        if self.state_deadband_enabled and abs(speed) < self.deadband_speed:
            self.drive.set_velocity(0.0)
            self._desired = ModuleDesiredState(0.0, self._desired.angle)
            self._command_fault = False
            return

        desired = ModuleDesiredState(speed, angle)
        if self.optimize_enabled:
            current_angle = self._read_angle()
            if current_angle is None:
                self._write(self._desired)
                return
            desired = desired.optimize(current_angle)

        self._command_fault = False
        self._write(desired)

    def get_position(self) -> ModuleMeasuredPosition:
        """Get cumulative distance and angle, holding the last good reading on fault."""
        try:
            position = ModuleMeasuredPosition(
                float(self.drive.get_distance()), float(self.steer.get_angle())
            )
        except SensorReadError as e:
            self._set_fault(f"position read failed: {e}")
            return self._last_position

        if not position.is_finite():
            self._set_fault(f"position read returned {position}")
            return self._last_position

        self._read_fault = False
        self._last_position = ModuleMeasuredPosition(
            position.distance, normalize_angle(position.angle)
        )
        return self._last_position

    def get_state(self) -> ModuleMeasuredState:
        """Get wheel velocity and angle, holding the last good reading on fault."""
        try:
            velocity = float(self.drive.get_velocity())
            angle = float(self.steer.get_angle())
        except SensorReadError as e:
            self._set_fault(f"state read failed: {e}")
            return self._last_state

        if not (math.isfinite(velocity) and math.isfinite(angle)):
            self._set_fault(f"state read returned velocity={velocity}, angle={angle}")
            return self._last_state

        self._read_fault = False
        self._last_state = ModuleMeasuredState(velocity, normalize_angle(angle))
        return self._last_state

    def stop(self) -> None:
        """Stop driving and hold the current steer angle."""
        self.drive.stop()
        self.steer.stop()
        self._desired = ModuleDesiredState(0.0, self._desired.angle)

    def _read_angle(self) -> Optional[float]:
        try:
            angle = float(self.steer.get_angle())
        except SensorReadError as e:
            self._set_fault(f"steer angle read failed: {e}", command=True)
            return None
        if not math.isfinite(angle):
            self._set_fault(f"steer angle read returned {angle}", command=True)
            return None
        return angle

    def _write(self, state: ModuleDesiredState) -> None:
        self.steer.set_angle(state.angle)
        self.drive.set_velocity(state.speed)
        self._desired = state

    def _set_fault(self, message: str, command: bool = False) -> None:
        if not self.fault:
            logger.warning(f"{self.name} fault, holding previous state: {message}")
        if command:
            self._command_fault = True
        else:
            self._read_fault = True
