"""Latency-compensated fusion of odometry with vision pose measurements."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .geometry import Pose, blend_poses
from .kinematics import ModuleMeasuredPosition, SwerveKinematics
from .odometry import OdometryIntegrator
from .pose_history import PoseHistory, PoseSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustWeight:
    """Per-axis vision uncertainty (std devs). Smaller is more trusted."""

    x: float
    y: float
    heading: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.heading)

    def scaled(self, factor: float) -> "TrustWeight":
        return TrustWeight(self.x * factor, self.y * factor, self.heading * factor)

    def plus(self, amount: float) -> "TrustWeight":
        return TrustWeight(self.x + amount, self.y + amount, self.heading + amount)

    @classmethod
    def uniform(cls, value: float) -> "TrustWeight":
        return cls(value, value, value)


@dataclass(frozen=True)
class VisionMeasurement:
    """A vision pose ready to be fused."""

    pose: Pose
    timestamp: float
    trust: TrustWeight


class PoseEstimator:
    """
    Running pose estimate from odometry corrected by delayed vision.

    Every update advances the odometry pose and records it in a
    bounded history. A vision measurement is blended into the recorded
    pose at its capture time, and the odometry recorded since then is
    replayed on top of the corrected pose.
    """

    def __init__(
        self,
        kinematics: SwerveKinematics,
        heading: float,
        positions: Sequence[ModuleMeasuredPosition],
        initial_pose: Optional[Pose] = None,
        prior_covariance: Tuple[float, float, float] = (0.1, 0.1, 0.1),
        staleness_window_s: float = 1.5,
        history_capacity: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pose estimator.

        Args:
            kinematics: Kinematics for the robot's module layout.
            heading: Current heading sensor reading (rad).
            positions: Current module positions.
            initial_pose: Starting field pose (default origin).
            prior_covariance: Odometry covariance for x, y, heading.
            staleness_window_s: How far back vision may correct (seconds).
            history_capacity: Maximum number of buffered samples.
            clock: Time source in seconds, matching vision timestamps.
        """
        self.odometry = OdometryIntegrator(kinematics, heading, positions, initial_pose)
        self.prior_covariance = tuple(prior_covariance)
        self.history = PoseHistory(window_s=staleness_window_s, capacity=history_capacity)
        self.clock = clock

    @property
    def pose(self) -> Pose:
        """Current best pose estimate."""
        return self.odometry.pose

    def reset_position(
        self,
        heading: float,
        positions: Sequence[ModuleMeasuredPosition],
        pose: Pose,
    ) -> None:
        """Reset to a known pose and forget the history."""
        self.odometry.reset_position(heading, positions, pose)
        self.history.clear()
        logger.info(f"Pose reset to ({pose.x:.3f}, {pose.y:.3f}, {pose.heading:.3f} rad)")

    def update(
        self,
        heading: float,
        positions: Sequence[ModuleMeasuredPosition],
        timestamp: Optional[float] = None,
    ) -> Pose:
        """
        Advance the estimate with new sensor readings.

        Args:
            heading: Heading sensor reading (rad).
            positions: Four module positions.
            timestamp: Sample time (seconds). Defaults to the clock.

        Returns:
            Updated pose estimate.
        """
        if timestamp is None:
            timestamp = self.clock()

        pose = self.odometry.update(heading, positions)
        if not self.odometry.fault:
            self.history.add(PoseSample(timestamp, pose, heading, tuple(positions)))
        return pose

    def correction_gains(self, trust: TrustWeight) -> Tuple[float, float, float]:
        """
        Fraction of the vision difference applied per axis.

        Gain is prior / (prior + trust), so a larger trust value (less
        certain vision) gives a smaller correction.
        """
        gains = []
        for prior, std_dev in zip(self.prior_covariance, trust.as_tuple()):
            if prior <= 0 or math.isinf(std_dev):
                gains.append(0.0)
            else:
                gains.append(prior / (prior + max(std_dev, 0.0)))
        return (gains[0], gains[1], gains[2])

    def add_vision_measurement(
        self, pose: Optional[Pose], timestamp: float, trust: TrustWeight
    ) -> bool:
        """
        Fuse a vision pose captured at a past time.

        Args:
            pose: Vision-estimated robot pose.
            timestamp: Capture time (seconds, same clock as update()).
            trust: Vision uncertainty for this measurement.

        Returns:
            True if the measurement was applied, False if dropped.
        """
        if pose is None or not pose.is_finite():
            logger.debug("Dropped vision measurement without a finite pose")
            return False

        oldest = self.history.oldest()
        if oldest is None:
            logger.debug(f"Dropped vision measurement at t={timestamp:.3f}, no history yet")
            return False
        if timestamp < oldest.timestamp:
            logger.debug(
                f"Dropped stale vision measurement at t={timestamp:.3f} "
                f"(history starts at {oldest.timestamp:.3f})"
            )
            return False

        timestamp = min(timestamp, self.history.newest().timestamp)
        sample = self.history.sample_at(timestamp)

        corrected = blend_poses(sample.pose, pose, self.correction_gains(trust))

        replay = self.history.pop_after(timestamp, inclusive=True)
        self.odometry.reset_position(sample.heading, sample.positions, corrected)
        self.history.add(PoseSample(timestamp, corrected, sample.heading, sample.positions))

        for recorded in replay:
            if recorded.timestamp == timestamp:
                continue
            replayed = self.odometry.update(recorded.heading, recorded.positions)
            self.history.add(
                PoseSample(recorded.timestamp, replayed, recorded.heading, recorded.positions)
            )

        logger.debug(
            f"Applied vision measurement at t={timestamp:.3f}, "
            f"replayed {len(replay)} samples"
        )
        return True

    def add_vision_measurements(self, measurements: Iterable[VisionMeasurement]) -> int:
        """
        Fuse several measurements in timestamp order.

        Returns:
            Number of measurements applied.
        """
        applied = 0
        for measurement in sorted(measurements, key=lambda m: m.timestamp):
            if self.add_vision_measurement(
                measurement.pose, measurement.timestamp, measurement.trust
            ):
                applied += 1
        return applied
