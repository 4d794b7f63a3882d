"""Tests for swerve modules and the heading sensor."""

import math

import pytest

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from swerve_nav.drive.hardware import (
    HardwareInitError,
    HeadingSensor,
    SimulatedDriveActuator,
    SimulatedGyro,
    SimulatedSteerActuator,
)
from swerve_nav.drive.kinematics import ModuleDesiredState
from swerve_nav.drive.swerve_module import SwerveModule


@pytest.fixture
def drive():
    return SimulatedDriveActuator()


@pytest.fixture
def steer():
    return SimulatedSteerActuator()


@pytest.fixture
def module(drive, steer):
    return SwerveModule(0, drive, steer, max_speed=4.0)


class TestSwerveModule:
    """Test module command handling."""

    def test_passes_state_through(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(1.5, 0.3))
        assert drive.commanded_velocity == pytest.approx(1.5)
        assert steer.commanded_angle == pytest.approx(0.3)
        assert module.desired_state == ModuleDesiredState(1.5, 0.3)

    def test_clamps_speed(self, module, drive):
        module.set_desired_state(ModuleDesiredState(10.0, 0.0))
        assert drive.commanded_velocity == pytest.approx(4.0)

        module.set_desired_state(ModuleDesiredState(-10.0, 0.0))
        assert drive.commanded_velocity == pytest.approx(-4.0)

    def test_optimizes_large_turn(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(1.0, math.radians(170)))
        assert steer.commanded_angle == pytest.approx(math.radians(-10))
        assert drive.commanded_velocity == pytest.approx(-1.0)

    def test_optimize_disabled(self, module, drive, steer):
        module.set_optimize(False)
        module.set_desired_state(ModuleDesiredState(1.0, math.radians(170)))
        assert steer.commanded_angle == pytest.approx(math.radians(170))
        assert drive.commanded_velocity == pytest.approx(1.0)

    def test_deadband_holds_angle(self, module, drive, steer):
        """Below the deadband the drive stops and the wheel does not turn."""
        module.set_desired_state(ModuleDesiredState(1.0, 0.5))
        steer.step(0.02)

        module.set_desired_state(ModuleDesiredState(0.0005, -1.0))
        assert drive.commanded_velocity == 0.0
        assert steer.commanded_angle == pytest.approx(0.5)
        assert module.desired_state == ModuleDesiredState(0.0, 0.5)

    def test_deadband_disabled(self, module, drive, steer):
        module.enable_state_deadband(False)
        module.set_desired_state(ModuleDesiredState(0.0, -1.0))
        assert drive.commanded_velocity == 0.0
        assert steer.commanded_angle == pytest.approx(-1.0)

    def test_non_finite_command_holds_previous(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(1.0, 0.2))
        module.set_desired_state(ModuleDesiredState(float("nan"), 0.0))

        assert module.fault
        assert drive.commanded_velocity == pytest.approx(1.0)
        assert steer.commanded_angle == pytest.approx(0.2)

    def test_steer_read_failure_holds_previous(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(1.0, 0.2))
        steer.failing = True
        module.set_desired_state(ModuleDesiredState(2.0, 1.0))

        assert module.fault
        assert drive.commanded_velocity == pytest.approx(1.0)
        assert steer.commanded_angle == pytest.approx(0.2)

        steer.failing = False
        module.set_desired_state(ModuleDesiredState(2.0, 1.0))
        assert not module.fault
        assert drive.commanded_velocity == pytest.approx(2.0)

    def test_position_holds_on_failure(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(1.0, 0.0))
        drive.step(0.5)
        steer.step(0.5)
        good = module.get_position()
        assert good.distance == pytest.approx(0.5)

        drive.failing = True
        held = module.get_position()
        assert module.fault
        assert held == good

    def test_state_reading(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(2.0, 0.4))
        drive.step(0.02)
        steer.step(0.02)
        state = module.get_state()
        assert state.velocity == pytest.approx(2.0)
        assert state.angle == pytest.approx(0.4)

    def test_stop(self, module, drive, steer):
        module.set_desired_state(ModuleDesiredState(2.0, 0.4))
        steer.step(0.02)
        module.stop()
        assert drive.commanded_velocity == 0.0
        assert steer.commanded_angle == pytest.approx(0.4)
        assert module.desired_state.speed == 0.0


class TestHeadingSensor:
    """Test heading sensor wrapper."""

    def test_requires_device(self):
        with pytest.raises(HardwareInitError):
            HeadingSensor(None)

    def test_degrees_to_normalized_radians(self):
        sensor = HeadingSensor(SimulatedGyro(270.0))
        assert sensor.get_heading() == pytest.approx(-math.pi / 2)

    def test_holds_last_value_on_failure(self):
        gyro = SimulatedGyro(45.0)
        sensor = HeadingSensor(gyro)
        assert sensor.get_heading() == pytest.approx(math.pi / 4)

        gyro.failing = True
        assert sensor.get_heading() == pytest.approx(math.pi / 4)
        assert sensor.fault

        gyro.failing = False
        gyro.yaw_degrees = 90.0
        assert sensor.get_heading() == pytest.approx(math.pi / 2)
        assert not sensor.fault

    def test_non_finite_reading(self):
        gyro = SimulatedGyro(10.0)
        sensor = HeadingSensor(gyro)
        sensor.get_heading()
        gyro.yaw_degrees = float("nan")
        assert sensor.get_heading() == pytest.approx(math.radians(10))
        assert sensor.fault

    def test_angular_rate(self):
        gyro = SimulatedGyro()
        gyro.step(1.0, 0.02)
        sensor = HeadingSensor(gyro)
        assert sensor.get_angular_rate(2) == pytest.approx(1.0)
        assert sensor.get_angular_rate(0) == pytest.approx(0.0)

    def test_angular_rate_bad_axis(self):
        sensor = HeadingSensor(SimulatedGyro())
        with pytest.raises(ValueError):
            sensor.get_angular_rate(3)

    def test_initialize_heading_once(self):
        gyro = SimulatedGyro(30.0)
        sensor = HeadingSensor(gyro, starting_heading_deg=180.0)

        assert sensor.initialize_heading()
        assert gyro.yaw_degrees == 180.0

        gyro.yaw_degrees = 0.0
        assert not sensor.initialize_heading()
        assert gyro.yaw_degrees == 0.0

        assert sensor.initialize_heading(force=True)
        assert gyro.yaw_degrees == 180.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
