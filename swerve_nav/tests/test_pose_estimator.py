"""Tests for latency-compensated vision fusion."""

import math

import pytest

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from swerve_nav.drive.config import Config
from swerve_nav.drive.geometry import Pose
from swerve_nav.drive.kinematics import ModuleMeasuredPosition, SwerveKinematics
from swerve_nav.drive.pose_estimator import PoseEstimator, TrustWeight, VisionMeasurement


def positions(distance: float):
    return [ModuleMeasuredPosition(distance, 0.0) for _ in range(4)]


class TestTrustWeight:
    """Test trust weight arithmetic."""

    def test_plus_and_scaled(self):
        weight = TrustWeight(0.3, 0.3, 0.6).plus(0.5).scaled(2.0)
        assert weight.as_tuple() == pytest.approx((1.6, 1.6, 2.2))

    def test_uniform(self):
        assert TrustWeight.uniform(1e6).as_tuple() == (1e6, 1e6, 1e6)


class TestPoseEstimator:
    """Test suite for PoseEstimator."""

    @pytest.fixture
    def estimator(self):
        """Estimator that has driven forward 0.2 m over 0.2 s."""
        kinematics = SwerveKinematics(Config().module_offsets())
        estimator = PoseEstimator(kinematics, 0.0, positions(0.0))
        for i in range(3):
            estimator.update(0.0, positions(i * 0.1), timestamp=i * 0.1)
        return estimator

    def test_odometry_only(self, estimator):
        assert estimator.pose.x == pytest.approx(0.2)
        assert len(estimator.history) == 3

    def test_untrusted_vision_ignored(self, estimator):
        before = estimator.pose
        applied = estimator.add_vision_measurement(
            Pose(5.0, 5.0, 1.0), 0.1, TrustWeight.uniform(float("inf"))
        )
        assert applied
        assert estimator.pose.x == pytest.approx(before.x)
        assert estimator.pose.y == pytest.approx(before.y)
        assert estimator.pose.heading == pytest.approx(before.heading)

    def test_very_large_trust_barely_moves(self, estimator):
        estimator.add_vision_measurement(Pose(5.0, 5.0, 1.0), 0.1, TrustWeight.uniform(1e6))
        assert estimator.pose.x == pytest.approx(0.2, abs=1e-5)
        assert estimator.pose.y == pytest.approx(0.0, abs=1e-5)

    def test_fully_trusted_vision_replays_odometry(self, estimator):
        """Correction at t=0.1 plus 0.1 m of replayed travel."""
        applied = estimator.add_vision_measurement(
            Pose(1.0, 0.5, 0.0), 0.1, TrustWeight.uniform(0.0)
        )
        assert applied
        assert estimator.pose.x == pytest.approx(1.1)
        assert estimator.pose.y == pytest.approx(0.5)
        assert [s.timestamp for s in estimator.history] == pytest.approx([0.0, 0.1, 0.2])

    def test_heading_correction_carries_forward(self, estimator):
        estimator.add_vision_measurement(Pose(0.1, 0.0, 0.4), 0.1, TrustWeight.uniform(0.0))
        assert estimator.pose.heading == pytest.approx(0.4)

        # Later sensor readings move relative to the corrected heading
        estimator.update(0.1, positions(0.2), timestamp=0.3)
        assert estimator.pose.heading == pytest.approx(0.5)

    def test_partial_trust(self, estimator):
        """Gain is prior / (prior + trust) per axis."""
        estimator.add_vision_measurement(Pose(0.2, 1.0, 0.0), 0.2, TrustWeight(0.1, 0.1, 0.1))
        assert estimator.pose.y == pytest.approx(0.5)

    def test_correction_gains(self, estimator):
        gains = estimator.correction_gains(TrustWeight(0.0, 0.3, float("inf")))
        assert gains == pytest.approx((1.0, 0.25, 0.0))

    def test_interpolated_timestamp(self, estimator):
        estimator.add_vision_measurement(Pose(0.05, 1.0, 0.0), 0.05, TrustWeight.uniform(0.0))
        assert estimator.pose.x == pytest.approx(0.2)
        assert estimator.pose.y == pytest.approx(1.0)

    def test_stale_measurement_dropped(self):
        kinematics = SwerveKinematics(Config().module_offsets())
        estimator = PoseEstimator(kinematics, 0.0, positions(0.0), staleness_window_s=1.5)
        for i in range(31):
            estimator.update(0.0, positions(0.0), timestamp=i * 0.1)

        applied = estimator.add_vision_measurement(
            Pose(3.0, 3.0, 0.0), 0.5, TrustWeight.uniform(0.0)
        )
        assert not applied
        assert estimator.pose == Pose()

    def test_no_history(self):
        kinematics = SwerveKinematics(Config().module_offsets())
        estimator = PoseEstimator(kinematics, 0.0, positions(0.0))
        assert not estimator.add_vision_measurement(Pose(1.0, 1.0, 0.0), 0.0, TrustWeight.uniform(0.0))

    def test_non_finite_pose_dropped(self, estimator):
        assert not estimator.add_vision_measurement(
            Pose(float("nan"), 0.0, 0.0), 0.1, TrustWeight.uniform(0.0)
        )
        assert not estimator.add_vision_measurement(None, 0.1, TrustWeight.uniform(0.0))
        assert estimator.pose.x == pytest.approx(0.2)

    def test_future_timestamp_clamped(self, estimator):
        applied = estimator.add_vision_measurement(
            Pose(1.0, 0.0, 0.0), 10.0, TrustWeight.uniform(0.0)
        )
        assert applied
        assert estimator.pose.x == pytest.approx(1.0)
        assert estimator.history.newest().timestamp == pytest.approx(0.2)

    def test_measurements_applied_in_time_order(self, estimator):
        measurements = [
            VisionMeasurement(Pose(0.2, 2.0, 0.0), 0.2, TrustWeight.uniform(0.0)),
            VisionMeasurement(Pose(0.1, 1.0, 0.0), 0.1, TrustWeight.uniform(0.0)),
        ]
        assert estimator.add_vision_measurements(measurements) == 2
        # The later measurement wins
        assert estimator.pose.y == pytest.approx(2.0)

    def test_reset_clears_history(self, estimator):
        estimator.reset_position(0.0, positions(0.2), Pose(1.0, 1.0, math.pi))
        assert len(estimator.history) == 0
        assert estimator.pose == Pose(1.0, 1.0, math.pi)

    def test_faulted_update_not_recorded(self, estimator):
        estimator.update(float("nan"), positions(0.3), timestamp=0.3)
        assert estimator.odometry.fault
        assert len(estimator.history) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
