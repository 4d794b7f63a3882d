"""Simulated robot and cameras for running the drivetrain without hardware."""

import bisect
import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import Config, default_config
from .drivetrain import Drivetrain
from .geometry import Pose, Pose3d, Twist
from .hardware import (
    HeadingSensor,
    SimulatedDriveActuator,
    SimulatedGyro,
    SimulatedSteerActuator,
)
from .kinematics import ModuleMeasuredState, SwerveKinematics
from .landmarks import LandmarkMap, default_landmark_map
from .swerve_module import SwerveModule
from .vision import CameraFrame, LandmarkDetection, VisionCamera, VisionPoseSource

logger = logging.getLogger(__name__)

MODULE_NAMES = ("front left", "front right", "back left", "back right")

# Default camera mounts: front-facing and rear-facing, 0.5 m up
DEFAULT_CAMERA_MOUNTS = (
    ("front", Pose3d(0.25, 0.0, 0.5)),
    ("rear", Pose3d(-0.25, 0.0, 0.5, yaw=math.pi)),
)


class SimulatedRobot:
    """
    Ground-truth robot driven by simulated actuators.

    Each step applies the modules' last commands, moves the true pose by
    the resulting chassis motion and advances the gyro. Wheel slip makes
    the true motion fall short of what the encoders report.
    """

    def __init__(
        self,
        config: Config = None,
        initial_pose: Optional[Pose] = None,
        wheel_slip: float = 0.0,
        gyro_drift_dps: float = 0.0,
    ):
        """
        Initialize the simulated robot.

        Args:
            config: Configuration providing geometry and limits.
            initial_pose: True starting pose (default origin).
            wheel_slip: Fraction of commanded translation lost to slip (0-1).
            gyro_drift_dps: Constant gyro drift in deg/s.
        """
        self.config = config or default_config
        self.wheel_slip = wheel_slip
        self.gyro_drift_dps = gyro_drift_dps
        self.kinematics = SwerveKinematics(self.config.module_offsets())

        self.time = 0.0
        self.truth = initial_pose or Pose()
        self._truth_times: List[float] = [0.0]
        self._truth_poses: List[Pose] = [self.truth]

        self.gyro = SimulatedGyro(math.degrees(self.truth.heading))
        self.drives = [
            SimulatedDriveActuator(self.config.max_speed_mps) for _ in MODULE_NAMES
        ]
        self.steers = [SimulatedSteerActuator() for _ in MODULE_NAMES]

    def clock(self) -> float:
        return self.time

    def build_modules(self) -> List[SwerveModule]:
        """Swerve modules wired to this robot's actuators."""
        return [
            SwerveModule(
                module_id=i,
                drive=self.drives[i],
                steer=self.steers[i],
                max_speed=self.config.max_speed_mps,
                optimize=self.config.optimize_enabled,
                state_deadband=self.config.state_deadband_enabled,
                deadband_speed=self.config.deadband_speed_mps,
                name=name,
            )
            for i, name in enumerate(MODULE_NAMES)
        ]

    def step(self, dt: float) -> Pose:
        """
        Advance the simulation.

        Args:
            dt: Time step in seconds.

        Returns:
            New true pose.
        """
        for steer, drive in zip(self.steers, self.drives):
            steer.step(dt)
            drive.step(dt)

        motion = self.kinematics.to_chassis_motion(
            [ModuleMeasuredState(d.velocity, s.angle) for d, s in zip(self.drives, self.steers)]
        )
        keep = 1.0 - self.wheel_slip
        self.truth = self.truth.exp(
            Twist(motion.forward * dt * keep, motion.sideways * dt * keep, motion.angular * dt)
        )
        self.gyro.step(motion.angular, dt)
        self.gyro.yaw_degrees += self.gyro_drift_dps * dt

        self.time += dt
        self._truth_times.append(self.time)
        self._truth_poses.append(self.truth)
        return self.truth

    def truth_at(self, timestamp: float) -> Pose:
        """True pose at or just before a past time."""
        index = bisect.bisect_right(self._truth_times, timestamp) - 1
        return self._truth_poses[max(index, 0)]


class SimulatedCameraFeed:
    """
    Camera producing landmark detections from the robot's true pose.

    Frames are captured at a fixed rate and arrive `latency_s` after
    capture. Between captures the previous frame is returned again.
    """

    def __init__(
        self,
        robot: SimulatedRobot,
        robot_to_camera: Pose3d,
        landmark_map: LandmarkMap,
        fov_rad: float = math.radians(70),
        max_range_m: float = 6.0,
        latency_s: float = 0.05,
        period_s: float = 0.05,
        noise_std_m: float = 0.0,
        seed: Optional[int] = None,
    ):
        self.robot = robot
        self.robot_to_camera = robot_to_camera
        self.landmark_map = landmark_map
        self.fov_rad = fov_rad
        self.max_range_m = max_range_m
        self.latency_s = latency_s
        self.period_s = period_s
        self.noise_std_m = noise_std_m
        self.rng = np.random.default_rng(seed)
        self._last_capture: Optional[float] = None
        self._last_frame: Optional[CameraFrame] = None

    def latest_frame(self) -> Optional[CameraFrame]:
        capture_time = self.robot.time - self.latency_s
        if capture_time < 0:
            return None
        if self._last_capture is not None and capture_time - self._last_capture < self.period_s:
            return self._last_frame

        self._last_capture = capture_time
        self._last_frame = CameraFrame(capture_time, tuple(self.detect(capture_time)))
        return self._last_frame

    def detect(self, capture_time: float) -> List[LandmarkDetection]:
        """Landmarks in view at a capture time, in the camera frame."""
        robot = Pose3d.from_pose2d(self.robot.truth_at(capture_time))
        field_to_camera_inv = robot.compose(self.robot_to_camera).inverse()

        detections = []
        for landmark_id in self.landmark_map:
            landmark = self.landmark_map.get(landmark_id)
            camera_to_landmark = field_to_camera_inv.compose(landmark)
            x, y, z = camera_to_landmark.translation
            distance = math.sqrt(x * x + y * y + z * z)
            if x <= 0 or distance > self.max_range_m:
                continue
            if abs(math.atan2(y, x)) > self.fov_rad / 2:
                continue

            if self.noise_std_m > 0:
                noise = self.rng.normal(0.0, self.noise_std_m, size=3)
                camera_to_landmark = Pose3d(
                    x + noise[0],
                    y + noise[1],
                    z + noise[2],
                    camera_to_landmark.roll,
                    camera_to_landmark.pitch,
                    camera_to_landmark.yaw,
                )
            detections.append(LandmarkDetection(landmark_id, camera_to_landmark))
        return detections


def build_simulated_drivetrain(
    config: Config = None,
    robot: Optional[SimulatedRobot] = None,
    camera_mounts: Sequence[Tuple[str, Pose3d]] = DEFAULT_CAMERA_MOUNTS,
    landmark_map: Optional[LandmarkMap] = None,
    camera_noise_std_m: float = 0.0,
    camera_latency_s: float = 0.05,
    seed: Optional[int] = None,
) -> Tuple[Drivetrain, SimulatedRobot]:
    """
    Build a drivetrain wired to a simulated robot and cameras.

    Args:
        config: Configuration object.
        robot: Simulated robot (a new one at the origin by default).
        camera_mounts: (name, robot_to_camera) per camera. Empty disables vision.
        landmark_map: Field landmarks (default layout by default).
        camera_noise_std_m: Detection translation noise (m).
        camera_latency_s: Capture-to-arrival latency (s).
        seed: Random seed for camera noise.

    Returns:
        (drivetrain, robot)
    """
    config = config or default_config
    robot = robot or SimulatedRobot(config)
    landmark_map = landmark_map or default_landmark_map()

    vision = None
    if camera_mounts:
        cameras = [
            VisionCamera(
                name,
                SimulatedCameraFeed(
                    robot,
                    mount,
                    landmark_map,
                    latency_s=camera_latency_s,
                    noise_std_m=camera_noise_std_m,
                    seed=None if seed is None else seed + i,
                ),
                mount,
                landmark_map,
            )
            for i, (name, mount) in enumerate(camera_mounts)
        ]
        vision = VisionPoseSource(
            cameras,
            landmark_map,
            trust_slope=config.trust_slope,
            untrusted_std_dev=config.untrusted_std_dev,
        )

    heading_sensor = HeadingSensor(robot.gyro, config.starting_heading_deg)
    drivetrain = Drivetrain(
        robot.build_modules(),
        heading_sensor,
        vision=vision,
        config=config,
        clock=robot.clock,
    )
    if robot.truth != Pose():
        drivetrain.reset_pose(robot.truth)
    return drivetrain, robot
