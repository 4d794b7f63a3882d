"""Swerve drive kinematics between chassis motion and module states."""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import numpy as np

from .config import ModuleOffset
from .geometry import Twist, heading_error, normalize_angle

logger = logging.getLogger(__name__)

NUM_MODULES = 4


@dataclass(frozen=True)
class ChassisMotion:
    """Robot-level velocity command."""

    forward: float = 0.0  # m/s
    sideways: float = 0.0  # m/s, left positive
    angular: float = 0.0  # rad/s, counter-clockwise positive
    field_relative: bool = False

    def to_robot_relative(self, robot_heading: float) -> "ChassisMotion":
        """
        Express a field-relative command in the robot frame.

        Args:
            robot_heading: Current robot heading in radians.

        Returns:
            Robot-relative motion. Robot-relative input is returned as is.
        """
        if not self.field_relative:
            return self
        cos_h = math.cos(robot_heading)
        sin_h = math.sin(robot_heading)
        return ChassisMotion(
            forward=self.forward * cos_h + self.sideways * sin_h,
            sideways=-self.forward * sin_h + self.sideways * cos_h,
            angular=self.angular,
            field_relative=False,
        )


@dataclass(frozen=True)
class ModuleDesiredState:
    """Commanded wheel speed (m/s) and steer angle (rad)."""

    speed: float = 0.0
    angle: float = 0.0

    def optimize(self, current_angle: float) -> "ModuleDesiredState":
        """
        Choose the representation needing at most a quarter turn.

        Args:
            current_angle: Module's measured steer angle in radians.

        Returns:
            This state, or the state flipped by pi with speed negated when the
            literal target is more than 90 degrees away.
        """
        delta = heading_error(current_angle, self.angle)
        if abs(delta) > math.pi / 2:
            return ModuleDesiredState(-self.speed, normalize_angle(self.angle + math.pi))
        return ModuleDesiredState(self.speed, normalize_angle(self.angle))


@dataclass(frozen=True)
class ModuleMeasuredPosition:
    """Cumulative wheel distance (m) and steer angle (rad)."""

    distance: float = 0.0
    angle: float = 0.0

    def is_finite(self) -> bool:
        return math.isfinite(self.distance) and math.isfinite(self.angle)


@dataclass(frozen=True)
class ModuleMeasuredState:
    """Measured wheel velocity (m/s) and steer angle (rad)."""

    velocity: float = 0.0
    angle: float = 0.0


def desaturate_wheel_speeds(
    states: Sequence[ModuleDesiredState], max_speed: float
) -> List[ModuleDesiredState]:
    """
    Scale all module speeds so none exceeds max_speed.

    Every speed is multiplied by the same factor, preserving the ratio
    between modules and therefore the direction of chassis motion.

    Args:
        states: Module states.
        max_speed: Physical wheel speed limit (m/s).

    Returns:
        Desaturated module states.
    """
    largest = max((abs(s.speed) for s in states), default=0.0)
    if largest <= max_speed:
        return list(states)

    factor = max_speed / largest
    return [replace(s, speed=s.speed * factor) for s in states]


class SwerveKinematics:
    """
    Transform between chassis motion and the four module vectors.

    Each module's velocity is the chassis linear velocity plus the
    rotational contribution omega x offset. The inverse transform
    solves the overdetermined system in least squares.
    """

    def __init__(self, offsets: Sequence[ModuleOffset]):
        """
        Initialize kinematics.

        Args:
            offsets: Module translations from the chassis center.
        """
        if len(offsets) != NUM_MODULES:
            raise ValueError(f"Swerve kinematics needs {NUM_MODULES} offsets, got {len(offsets)}")

        self.offsets = tuple(offsets)

        # Rows alternate vx, vy per module: [1, 0, -y] and [0, 1, x]
        self._inverse_kinematics = np.zeros((2 * NUM_MODULES, 3))
        for i, offset in enumerate(self.offsets):
            self._inverse_kinematics[2 * i] = [1.0, 0.0, -offset.y]
            self._inverse_kinematics[2 * i + 1] = [0.0, 1.0, offset.x]
        self._forward_kinematics = np.linalg.pinv(self._inverse_kinematics)

        # Zero-speed modules keep the last commanded angle
        self._last_angles = [0.0] * NUM_MODULES

    def to_module_states(
        self, motion: ChassisMotion, robot_heading: float = 0.0
    ) -> List[ModuleDesiredState]:
        """
        Compute module states for a chassis motion.

        Args:
            motion: Chassis command.
            robot_heading: Robot heading in radians, used for field-relative motion.

        Returns:
            Four module states (not desaturated).
        """
        motion = motion.to_robot_relative(robot_heading)

        if motion.forward == 0.0 and motion.sideways == 0.0 and motion.angular == 0.0:
            return [ModuleDesiredState(0.0, angle) for angle in self._last_angles]

        chassis = np.array([motion.forward, motion.sideways, motion.angular])
        module_vectors = self._inverse_kinematics @ chassis

        states = []
        for i in range(NUM_MODULES):
            vx = module_vectors[2 * i]
            vy = module_vectors[2 * i + 1]
            speed = math.hypot(vx, vy)
            if speed > 1e-9:
                angle = math.atan2(vy, vx)
                self._last_angles[i] = angle
            else:
                angle = self._last_angles[i]
                speed = 0.0
            states.append(ModuleDesiredState(speed, normalize_angle(angle)))
        return states

    def to_chassis_motion(self, states: Sequence[ModuleMeasuredState]) -> ChassisMotion:
        """
        Recover approximate robot-relative chassis motion from module readings.

        Args:
            states: Four measured module states.

        Returns:
            Least-squares chassis motion.
        """
        vectors = np.zeros(2 * NUM_MODULES)
        for i, state in enumerate(states):
            vectors[2 * i] = state.velocity * math.cos(state.angle)
            vectors[2 * i + 1] = state.velocity * math.sin(state.angle)

        vx, vy, omega = self._forward_kinematics @ vectors
        return ChassisMotion(float(vx), float(vy), float(omega), field_relative=False)

    def to_twist(
        self,
        start: Sequence[ModuleMeasuredPosition],
        end: Sequence[ModuleMeasuredPosition],
    ) -> Twist:
        """
        Robot-frame twist implied by the change in module positions.

        Each module's travelled distance is taken along its current angle.
        """
        vectors = np.zeros(2 * NUM_MODULES)
        for i, (before, after) in enumerate(zip(start, end)):
            delta = after.distance - before.distance
            vectors[2 * i] = delta * math.cos(after.angle)
            vectors[2 * i + 1] = delta * math.sin(after.angle)

        dx, dy, dtheta = self._forward_kinematics @ vectors
        return Twist(float(dx), float(dy), float(dtheta))

    def reset_headings(self, angles: Optional[Sequence[float]] = None) -> None:
        """Set the angles used for zero-speed modules."""
        if angles is None:
            angles = [0.0] * NUM_MODULES
        self._last_angles = [normalize_angle(a) for a in angles]
