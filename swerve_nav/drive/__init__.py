"""Drivetrain components for the swerve navigation core."""

from .config import Config, ModuleOffset, load_config
from .drive_modes import EnableState, ModeManager, TraversalMode, VisionTrustProfile
from .drivetrain import CycleResult, Drivetrain, HeadingDriveRequest, PoseDriveRequest
from .geometry import Pose, Pose3d, Twist, circular_mean, heading_error, normalize_angle
from .hardware import HardwareInitError, HeadingSensor, SensorReadError
from .heading_controller import HeadingController
from .kinematics import (
    ChassisMotion,
    ModuleDesiredState,
    ModuleMeasuredPosition,
    ModuleMeasuredState,
    SwerveKinematics,
    desaturate_wheel_speeds,
)
from .landmarks import LandmarkMap, load_landmark_map
from .odometry import OdometryIntegrator
from .pid_controller import PIDController, PIDGains
from .pose_estimator import PoseEstimator, TrustWeight, VisionMeasurement
from .swerve_module import SwerveModule
from .vision import VisionCamera, VisionObservation, VisionPoseSource

__all__ = [
    "Config",
    "ModuleOffset",
    "load_config",
    "EnableState",
    "ModeManager",
    "TraversalMode",
    "VisionTrustProfile",
    "CycleResult",
    "Drivetrain",
    "HeadingDriveRequest",
    "PoseDriveRequest",
    "Pose",
    "Pose3d",
    "Twist",
    "circular_mean",
    "heading_error",
    "normalize_angle",
    "HardwareInitError",
    "HeadingSensor",
    "SensorReadError",
    "HeadingController",
    "ChassisMotion",
    "ModuleDesiredState",
    "ModuleMeasuredPosition",
    "ModuleMeasuredState",
    "SwerveKinematics",
    "desaturate_wheel_speeds",
    "LandmarkMap",
    "load_landmark_map",
    "OdometryIntegrator",
    "PIDController",
    "PIDGains",
    "PoseEstimator",
    "TrustWeight",
    "VisionMeasurement",
    "SwerveModule",
    "VisionCamera",
    "VisionObservation",
    "VisionPoseSource",
]
