"""Tests for odometry and the pose history buffer."""

import math

import pytest

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from swerve_nav.drive.config import Config
from swerve_nav.drive.geometry import Pose
from swerve_nav.drive.kinematics import ModuleMeasuredPosition, SwerveKinematics
from swerve_nav.drive.odometry import OdometryIntegrator
from swerve_nav.drive.pose_history import PoseHistory, PoseSample


def positions(distance: float, angle: float = 0.0):
    """Four identical module positions."""
    return [ModuleMeasuredPosition(distance, angle) for _ in range(4)]


def sample(timestamp: float, x: float = 0.0, heading: float = 0.0) -> PoseSample:
    return PoseSample(timestamp, Pose(x, 0.0, heading), heading, tuple(positions(x)))


@pytest.fixture
def kinematics():
    return SwerveKinematics(Config().module_offsets())


class TestOdometryIntegrator:
    """Test dead-reckoning integration."""

    def test_drive_forward(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        pose = odometry.update(0.0, positions(0.02))
        assert pose.x == pytest.approx(0.02)
        assert pose.y == pytest.approx(0.0)
        assert pose.heading == pytest.approx(0.0)

    def test_drive_sideways(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0, math.pi / 2))
        pose = odometry.update(0.0, positions(0.5, math.pi / 2))
        assert pose.x == pytest.approx(0.0, abs=1e-9)
        assert pose.y == pytest.approx(0.5)

    def test_forward_in_field_frame(self, kinematics):
        """Robot-frame motion is rotated by the heading."""
        odometry = OdometryIntegrator(
            kinematics, 0.0, positions(0.0), initial_pose=Pose(1.0, 1.0, math.pi / 2)
        )
        pose = odometry.update(0.0, positions(1.0))
        assert pose.x == pytest.approx(1.0)
        assert pose.y == pytest.approx(2.0)

    def test_heading_from_sensor(self, kinematics):
        """Rotation comes from the heading sensor, not the wheels."""
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        pose = odometry.update(0.3, positions(0.0))
        assert pose.heading == pytest.approx(0.3)
        assert pose.x == pytest.approx(0.0)
        assert pose.y == pytest.approx(0.0)

    def test_sensor_offset(self, kinematics):
        """The sensor reading need not match the field heading."""
        odometry = OdometryIntegrator(
            kinematics, 1.0, positions(0.0), initial_pose=Pose(0.0, 0.0, 0.0)
        )
        pose = odometry.update(1.2, positions(0.0))
        assert pose.heading == pytest.approx(0.2)

    def test_heading_wraps(self, kinematics):
        odometry = OdometryIntegrator(
            kinematics, math.radians(170), positions(0.0),
            initial_pose=Pose(0.0, 0.0, math.radians(170)),
        )
        pose = odometry.update(math.radians(-170), positions(0.0))
        assert pose.heading == pytest.approx(math.radians(-170))

    def test_bad_input_holds_pose(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        odometry.update(0.0, positions(0.1))

        pose = odometry.update(float("nan"), positions(0.2))
        assert odometry.fault
        assert pose.x == pytest.approx(0.1)

        pose = odometry.update(0.0, positions(float("inf")))
        assert odometry.fault
        assert pose.is_finite()

        pose = odometry.update(0.0, positions(0.3))
        assert not odometry.fault
        assert pose.x == pytest.approx(0.3)

    def test_wrong_module_count(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        odometry.update(0.0, positions(0.1)[:3])
        assert odometry.fault

    def test_reset_position(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        odometry.update(0.0, positions(1.0))

        odometry.reset_position(0.0, positions(1.0), Pose(5.0, 5.0, 0.0))
        pose = odometry.update(0.0, positions(1.5))
        assert pose.x == pytest.approx(5.5)
        assert pose.y == pytest.approx(5.0)

    def test_reset_rejects_non_finite(self, kinematics):
        odometry = OdometryIntegrator(kinematics, 0.0, positions(0.0))
        with pytest.raises(ValueError):
            odometry.reset_position(float("nan"), positions(0.0), Pose())


class TestPoseHistory:
    """Test the bounded pose history."""

    def test_empty(self):
        history = PoseHistory()
        assert history.oldest() is None
        assert history.newest() is None
        assert history.sample_at(0.0) is None
        assert len(history) == 0

    def test_interpolates_between_samples(self):
        history = PoseHistory()
        history.add(sample(0.0, x=0.0))
        history.add(sample(1.0, x=1.0, heading=0.2))

        mid = history.sample_at(0.25)
        assert mid.timestamp == 0.25
        assert mid.pose.x == pytest.approx(0.25)
        assert mid.heading == pytest.approx(0.05)
        assert mid.positions[0].distance == pytest.approx(0.25)

    def test_exact_timestamp(self):
        history = PoseHistory()
        history.add(sample(0.0, x=0.0))
        history.add(sample(0.5, x=0.3))
        history.add(sample(1.0, x=1.0))
        assert history.sample_at(0.5).pose.x == pytest.approx(0.3)

    def test_before_oldest(self):
        history = PoseHistory()
        history.add(sample(1.0))
        assert history.sample_at(0.5) is None

    def test_after_newest(self):
        history = PoseHistory()
        history.add(sample(0.0, x=0.0))
        history.add(sample(1.0, x=1.0))
        assert history.sample_at(3.0).pose.x == pytest.approx(1.0)

    def test_evicts_stale_samples(self):
        history = PoseHistory(window_s=1.0)
        for i in range(30):
            history.add(sample(i * 0.1))
        assert history.oldest().timestamp >= history.newest().timestamp - 1.0 - 1e-9
        assert len(history) <= 11

    def test_capacity(self):
        history = PoseHistory(window_s=100.0, capacity=5)
        for i in range(10):
            history.add(sample(float(i)))
        assert len(history) == 5
        assert history.oldest().timestamp == 5.0

    def test_out_of_order_add_replaces_newer(self):
        history = PoseHistory()
        for t in (0.0, 0.1, 0.2, 0.3):
            history.add(sample(t))
        history.add(sample(0.15, x=9.0))
        assert [s.timestamp for s in history] == [0.0, 0.1, 0.15]

    def test_pop_after(self):
        history = PoseHistory()
        for t in (0.0, 0.1, 0.2, 0.3):
            history.add(sample(t))

        removed = history.pop_after(0.1)
        assert [s.timestamp for s in removed] == [0.2, 0.3]
        assert [s.timestamp for s in history] == [0.0, 0.1]

        removed = history.pop_after(0.1, inclusive=True)
        assert [s.timestamp for s in removed] == [0.1]

    def test_clear(self):
        history = PoseHistory()
        history.add(sample(0.0))
        history.clear()
        assert len(history) == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
