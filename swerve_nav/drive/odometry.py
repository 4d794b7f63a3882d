"""Dead-reckoning odometry from module positions and the heading sensor."""

import logging
import math
from typing import List, Optional, Sequence

from .geometry import Pose, Twist, heading_error
from .kinematics import NUM_MODULES, ModuleMeasuredPosition, SwerveKinematics

logger = logging.getLogger(__name__)


class OdometryIntegrator:
    """
    Integrate per-cycle module and heading deltas into a field pose.

    Module positions are authoritative for translation, the heading
    sensor for rotation. The pose only moves by the deltas actually
    measured between consecutive updates.
    """

    def __init__(
        self,
        kinematics: SwerveKinematics,
        heading: float,
        positions: Sequence[ModuleMeasuredPosition],
        initial_pose: Optional[Pose] = None,
    ):
        """
        Initialize odometry.

        Args:
            kinematics: Kinematics for the robot's module layout.
            heading: Current heading sensor reading (rad).
            positions: Current module positions.
            initial_pose: Starting field pose (default origin).
        """
        self.kinematics = kinematics
        self.fault = False
        self._pose = initial_pose or Pose()
        self._heading_offset = 0.0
        self._previous_heading = 0.0
        self._previous_positions: List[ModuleMeasuredPosition] = []
        self.reset_position(heading, positions, self._pose)

    @property
    def pose(self) -> Pose:
        return self._pose

    def reset_position(
        self,
        heading: float,
        positions: Sequence[ModuleMeasuredPosition],
        pose: Pose,
    ) -> None:
        """
        Set the field pose for the given sensor readings.

        Subsequent updates integrate relative to these readings, so the
        sensors themselves never need to be zeroed.
        """
        positions = self._check_positions(positions)
        if positions is None or not math.isfinite(heading):
            raise ValueError("Odometry can only be reset from finite sensor readings")

        self._pose = pose
        self._heading_offset = heading_error(heading, pose.heading)
        self._previous_heading = pose.heading
        self._previous_positions = list(positions)

    def update(self, heading: float, positions: Sequence[ModuleMeasuredPosition]) -> Pose:
        """
        Advance the pose by the change since the last update.

        Args:
            heading: Heading sensor reading (rad).
            positions: Four module positions.

        Returns:
            Updated field pose. On a bad reading the previous pose is held.
        """
        checked = self._check_positions(positions)
        if checked is None or heading is None or not math.isfinite(heading):
            if not self.fault:
                logger.warning("Odometry input fault, holding last pose")
            self.fault = True
            return self._pose
        self.fault = False

        angle = heading + self._heading_offset
        twist = self.kinematics.to_twist(self._previous_positions, checked)
        twist = Twist(twist.dx, twist.dy, heading_error(self._previous_heading, angle))

        new_pose = self._pose.exp(twist)
        self._pose = Pose(new_pose.x, new_pose.y, angle)
        self._previous_heading = self._pose.heading
        self._previous_positions = list(checked)
        return self._pose

    def _check_positions(
        self, positions: Sequence[ModuleMeasuredPosition]
    ) -> Optional[List[ModuleMeasuredPosition]]:
        if positions is None or len(positions) != NUM_MODULES:
            return None
        if not all(p is not None and p.is_finite() for p in positions):
            return None
        return list(positions)
