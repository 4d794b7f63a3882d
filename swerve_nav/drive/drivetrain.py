"""Swerve drivetrain integrating odometry, vision fusion and control."""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .config import Config, default_config
from .drive_modes import EnableState, ModeManager, TraversalMode
from .geometry import Pose
from .hardware import HardwareInitError, HeadingSensor
from .heading_controller import HeadingController
from .kinematics import (
    NUM_MODULES,
    ChassisMotion,
    ModuleDesiredState,
    ModuleMeasuredPosition,
    ModuleMeasuredState,
    SwerveKinematics,
    desaturate_wheel_speeds,
)
from .pid_controller import PIDController, PIDGains
from .pose_estimator import PoseEstimator
from .swerve_module import SwerveModule
from .vision import VisionPoseSource, VisionUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeadingDriveRequest:
    """Translate while holding a target heading."""

    forward: float  # m/s
    sideways: float  # m/s
    target_heading: float  # rad
    field_relative: bool = True


@dataclass(frozen=True)
class PoseDriveRequest:
    """Drive toward a field pose."""

    target: Pose


DriveRequest = Union[ChassisMotion, HeadingDriveRequest, PoseDriveRequest]


@dataclass
class CycleResult:
    """Result from one control cycle."""

    pose: Pose  # Pose after odometry and vision
    vision_applied: int = 0  # Vision measurements fused this cycle
    vision_combined: Optional[Pose] = None  # Combined camera estimate
    module_states: List[ModuleDesiredState] = field(default_factory=list)
    fault: bool = False  # Any sensor fault this cycle


class Drivetrain:
    """
    Swerve drivetrain.

    Owns four swerve modules, the heading sensor, the fused pose
    estimator and the heading controller. One call to periodic() runs a
    full cycle in a fixed order: odometry update, vision fusion,
    controller evaluation, then kinematics and actuator dispatch.

    Module order is front left, front right, back left, back right.
    """

    def __init__(
        self,
        modules: Sequence[SwerveModule],
        heading_sensor: HeadingSensor,
        vision: Optional[VisionPoseSource] = None,
        config: Config = None,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ):
        """
        Initialize the drivetrain.

        Args:
            modules: The four swerve modules.
            heading_sensor: Heading sensor.
            vision: Optional multi-camera vision source.
            config: Configuration object.
            clock: Time source shared with vision timestamps (seconds).
            enabled: Start with actuator output enabled.
        """
        self.config = config or default_config

        if modules is None or len(modules) != NUM_MODULES:
            raise HardwareInitError(
                f"Swerve drivetrain needs {NUM_MODULES} modules, "
                f"got {0 if modules is None else len(modules)}"
            )
        if heading_sensor is None:
            raise HardwareInitError("Swerve drivetrain needs a heading sensor")

        self.modules = list(modules)
        self.heading_sensor = heading_sensor
        self.vision = vision
        self.clock = clock
        self.vision_enabled = self.config.vision_enabled and vision is not None
        self.last_vision_update: Optional[VisionUpdate] = None

        self.kinematics = SwerveKinematics(self.config.module_offsets())

        self.estimator = PoseEstimator(
            self.kinematics,
            self.heading_sensor.get_heading(),
            self.get_module_positions(),
            initial_pose=Pose(),
            prior_covariance=self.config.prior_covariance,
            staleness_window_s=self.config.staleness_window_s,
            history_capacity=self.config.history_capacity,
            clock=clock,
        )

        self.heading_controller = HeadingController(
            PIDGains(self.config.heading_kp, self.config.heading_ki, self.config.heading_kd),
            max_angular_rate=self.config.max_angular_rate_rps,
            tolerance=self.config.heading_tolerance_rad,
        )

        # Drive-to-pose translation controllers
        limits = (-self.config.max_speed_mps, self.config.max_speed_mps)
        self.x_controller = PIDController(
            kp=self.config.translation_kp,
            ki=self.config.translation_ki,
            kd=self.config.translation_kd,
            output_limits=limits,
        )
        self.y_controller = PIDController(
            kp=self.config.translation_kp,
            ki=self.config.translation_ki,
            kd=self.config.translation_kd,
            output_limits=limits,
        )

        self.modes = ModeManager(self.config)
        self.modes.on_change(self._on_mode_change)
        self.modes.set_enabled(enabled)

    # =========================================================================
    # Control Cycle
    # =========================================================================

    def periodic(self, request: Optional[DriveRequest] = None, dt: Optional[float] = None) -> CycleResult:
        """
        Run one control cycle.

        Args:
            request: This cycle's drive request. None leaves the modules
                at their last command.
            dt: Loop period in seconds (default config.loop_period_s).

        Returns:
            CycleResult for this cycle.
        """
        if dt is None:
            dt = self.config.loop_period_s

        applied = self.update_odometry()

        states: List[ModuleDesiredState] = []
        if isinstance(request, ChassisMotion):
            states = self.drive_chassis(request)
        elif isinstance(request, HeadingDriveRequest):
            states = self.drive_to_heading(
                request.forward,
                request.sideways,
                request.target_heading,
                request.field_relative,
                dt=dt,
            )
        elif isinstance(request, PoseDriveRequest):
            target = request.target
            states = self.run_chassis_pid(target.x, target.y, target.heading, dt=dt)
        elif request is not None:
            raise TypeError(f"Unsupported drive request: {type(request).__name__}")

        combined = self.last_vision_update.combined if self.last_vision_update else None
        return CycleResult(
            pose=self.get_pose(),
            vision_applied=applied,
            vision_combined=combined,
            module_states=states,
            fault=self.fault,
        )

    def update_odometry(self) -> int:
        """
        Update the pose from wheels and heading, then fuse vision.

        Returns:
            Number of vision measurements applied.
        """
        self.estimator.update(self.heading_sensor.get_heading(), self.get_module_positions())

        self.last_vision_update = None
        if not self.vision_enabled or self.vision is None:
            return 0

        current = self.estimator.pose
        update = self.vision.collect(current, current, self.modes.trust_profile)
        self.last_vision_update = update
        if not update.measurements:
            return 0
        return self.estimator.add_vision_measurements(update.measurements)

    # =========================================================================
    # Driving
    # =========================================================================

    def drive(self, forward: float, sideways: float, rotation: float, field_relative: bool) -> List[ModuleDesiredState]:
        """
        Drive with explicit velocities.

        Args:
            forward: Forward speed (m/s).
            sideways: Sideways speed, left positive (m/s).
            rotation: Angular rate, counter-clockwise positive (rad/s).
            field_relative: Whether forward/sideways are in the field frame.
        """
        return self.drive_chassis(ChassisMotion(forward, sideways, rotation, field_relative))

    def drive_chassis(self, motion: ChassisMotion) -> List[ModuleDesiredState]:
        """
        Convert a chassis command into module commands.

        Returns:
            Desaturated module states sent to the modules.
        """
        states = self.kinematics.to_module_states(motion, self.get_heading_angle())
        states = desaturate_wheel_speeds(states, self.config.max_speed_mps)
        self.set_module_states(states)
        return states

    def drive_to_heading(
        self,
        forward: float,
        sideways: float,
        target_heading: float,
        field_relative: bool,
        dt: Optional[float] = None,
    ) -> List[ModuleDesiredState]:
        """
        Translate while the heading controller turns toward a target.

        Args:
            forward: Forward speed (m/s).
            sideways: Sideways speed (m/s).
            target_heading: Target heading (rad).
            field_relative: Whether forward/sideways are in the field frame.
            dt: Time step in seconds.
        """
        rotation = self.heading_controller.calculate(self.get_heading_angle(), target_heading, dt)
        return self.drive(forward, sideways, rotation, field_relative)

    def run_chassis_pid(
        self, x: float, y: float, heading: float, dt: Optional[float] = None
    ) -> List[ModuleDesiredState]:
        """
        Drive toward a field pose using the estimated pose.

        Args:
            x: Target field x (m).
            y: Target field y (m).
            heading: Target heading (rad).
            dt: Time step in seconds.
        """
        pose = self.get_pose()
        forward = self.x_controller.calculate(pose.x, x, dt)
        sideways = self.y_controller.calculate(pose.y, y, dt)
        rotation = self.heading_controller.calculate(pose.heading, heading, dt)
        return self.drive(forward, sideways, rotation, True)

    def set_module_states(self, states: Sequence[ModuleDesiredState]) -> None:
        """Send states to the modules, in module order. Skipped while disabled."""
        if not self.modes.is_enabled():
            return
        for module, state in zip(self.modules, states):
            module.set_desired_state(state)

    def set_formation_x(self) -> None:
        """Point every wheel at the chassis center so the robot resists pushing."""
        if not self.modes.is_enabled():
            return
        for module, offset in zip(self.modules, self.kinematics.offsets):
            deadband = module.state_deadband_enabled
            module.enable_state_deadband(False)
            module.set_desired_state(ModuleDesiredState(0.0, math.atan2(offset.y, offset.x)))
            module.enable_state_deadband(deadband)

    def stop(self) -> None:
        """Stop all modules."""
        for module in self.modules:
            module.stop()

    # =========================================================================
    # Configuration
    # =========================================================================

    def reset_pose(self, pose: Pose) -> None:
        """Reset the pose estimate to a known pose."""
        self.estimator.reset_position(
            self.heading_sensor.get_heading(), self.get_module_positions(), pose
        )
        self.heading_controller.reset()

    def set_heading_degrees(self, degrees: float) -> None:
        """Reset the heading sensor and the estimated heading."""
        self.heading_sensor.set_heading_degrees(degrees)
        pose = self.get_pose()
        self.reset_pose(Pose(pose.x, pose.y, math.radians(degrees)))

    def initialize_heading(self, force: bool = False) -> None:
        """Reset to the configured starting heading once, unless forced."""
        if self.heading_sensor.initialize_heading(force):
            pose = self.get_pose()
            self.reset_pose(
                Pose(pose.x, pose.y, math.radians(self.heading_sensor.starting_heading_deg))
            )

    def set_traversal_mode(self, mode: TraversalMode) -> None:
        self.modes.set_traversal_mode(mode)

    def set_obstacle_traversal_mode(self, traversing: bool) -> None:
        """Flag driving over an obstacle, which changes vision trust."""
        self.set_traversal_mode(TraversalMode.OBSTACLE if traversing else TraversalMode.NORMAL)

    def is_traversing_obstacle(self) -> bool:
        return self.modes.traversal_mode == TraversalMode.OBSTACLE

    def enable_vision_fusion(self, enabled: bool) -> None:
        if enabled and self.vision is None:
            logger.warning("Vision fusion requested but no vision source is configured")
        self.vision_enabled = enabled and self.vision is not None
        logger.info(f"Vision fusion {'enabled' if self.vision_enabled else 'disabled'}")

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable actuator output. Estimation keeps running."""
        self.modes.set_enabled(enabled)

    def set_all_optimize(self, enabled: bool) -> None:
        """Toggle the quarter-turn optimization on every module."""
        for module in self.modules:
            module.set_optimize(enabled)

    def enable_state_deadband(self, enabled: bool) -> None:
        """Toggle the low-speed state deadband on every module."""
        for module in self.modules:
            module.enable_state_deadband(enabled)

    def _on_mode_change(self, old_state, new_state) -> None:
        if new_state == EnableState.DISABLED:
            self.stop()

    # =========================================================================
    # Outputs
    # =========================================================================

    def get_pose(self) -> Pose:
        return self.estimator.pose

    def get_heading_angle(self) -> float:
        """Estimated heading in radians, in (-pi, pi]."""
        return self.estimator.pose.heading

    def get_angular_rate(self, axis: int) -> float:
        """Raw gyro rate in rad/s about axis 0 (x), 1 (y) or 2 (z)."""
        return self.heading_sensor.get_angular_rate(axis)

    def get_module_positions(self) -> List[ModuleMeasuredPosition]:
        return [module.get_position() for module in self.modules]

    def get_module_states(self) -> List[ModuleMeasuredState]:
        return [module.get_state() for module in self.modules]

    def get_chassis_velocity(self) -> Tuple[float, float, float]:
        """Robot-relative (forward, sideways, rotational) velocity from the modules."""
        motion = self.kinematics.to_chassis_motion(self.get_module_states())
        return (motion.forward, motion.sideways, motion.angular)

    def get_velocity(self) -> Tuple[float, float]:
        """Chassis velocity as (magnitude m/s, direction rad)."""
        forward, sideways, _ = self.get_chassis_velocity()
        return (math.hypot(forward, sideways), math.atan2(sideways, forward))

    @property
    def fault(self) -> bool:
        """Whether any sensor reported a fault on its latest read."""
        return (
            self.heading_sensor.fault
            or self.estimator.odometry.fault
            or any(module.fault for module in self.modules)
        )
