#!/usr/bin/env python3
"""
Swerve Navigation Simulator - Main Entry Point

Drives a simulated swerve robot through the full control cycle
(odometry, vision fusion, heading control, kinematics) and reports the
fused pose against ground truth.

Usage:
    # Drive a square with vision fusion:
    python run_simulation.py --pattern square

    # Odometry only, with wheel slip, for 10 seconds:
    python run_simulation.py --no-vision --slip 0.05 --duration 10

    # Verbose logging:
    python run_simulation.py -v
"""

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from swerve_nav.drive.config import Config, load_config
from swerve_nav.drive.drivetrain import DriveRequest, HeadingDriveRequest, PoseDriveRequest
from swerve_nav.drive.geometry import Pose
from swerve_nav.drive.kinematics import ChassisMotion
from swerve_nav.drive.landmarks import load_landmark_map
from swerve_nav.drive.simulation import (
    DEFAULT_CAMERA_MOUNTS,
    SimulatedRobot,
    build_simulated_drivetrain,
)

logger = logging.getLogger(__name__)

PATTERNS = ("straight", "square", "spin", "heading", "pose")


def pattern_request(pattern: str, t: float, speed: float) -> Optional[DriveRequest]:
    """Drive request for a named pattern at time t."""
    if pattern == "straight":
        return ChassisMotion(speed, 0.0, 0.0, field_relative=True)
    if pattern == "square":
        side = int(t // 2.0) % 4
        directions = [(1, 0), (0, 1), (-1, 0), (0, -1)]
        dx, dy = directions[side]
        return ChassisMotion(speed * dx, speed * dy, 0.0, field_relative=True)
    if pattern == "spin":
        return ChassisMotion(speed, 0.0, 1.0, field_relative=True)
    if pattern == "heading":
        target = math.pi / 2 if int(t // 3.0) % 2 == 0 else -math.pi / 2
        return HeadingDriveRequest(speed, 0.0, target, field_relative=True)
    if pattern == "pose":
        return PoseDriveRequest(Pose(3.0, 2.5, math.pi))
    raise ValueError(f"Unknown pattern: {pattern}")


def run_simulation(
    config: Config,
    pattern: str,
    duration_s: float,
    speed: float,
    vision: bool,
    slip: float,
    noise: float,
    start: Pose,
    seed: Optional[int],
) -> float:
    """
    Run the simulation.

    Returns:
        Final position error in meters.
    """
    robot = SimulatedRobot(config, initial_pose=start, wheel_slip=slip)
    drivetrain, robot = build_simulated_drivetrain(
        config,
        robot=robot,
        camera_mounts=DEFAULT_CAMERA_MOUNTS if vision else (),
        landmark_map=load_landmark_map(config.landmark_map_path),
        camera_noise_std_m=noise,
        seed=seed,
    )

    dt = config.loop_period_s
    cycles = int(round(duration_s / dt))
    applied_total = 0

    for cycle in range(cycles):
        result = drivetrain.periodic(pattern_request(pattern, robot.time, speed), dt=dt)
        applied_total += result.vision_applied
        robot.step(dt)

        if cycle % int(round(1.0 / dt)) == 0:
            pose = result.pose
            logger.info(
                f"t={robot.time:5.2f}s "
                f"est=({pose.x:6.3f}, {pose.y:6.3f}, {math.degrees(pose.heading):7.2f} deg) "
                f"true=({robot.truth.x:6.3f}, {robot.truth.y:6.3f}, "
                f"{math.degrees(robot.truth.heading):7.2f} deg) "
                f"vision={result.vision_applied}"
            )

    drivetrain.periodic(None, dt=dt)
    error = drivetrain.get_pose().distance_to(robot.truth)
    logger.info(
        f"Finished {cycles} cycles, {applied_total} vision measurements fused, "
        f"final position error {error:.3f} m"
    )
    return error


def main():
    parser = argparse.ArgumentParser(
        description="Swerve Navigation Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Drive a square with two cameras:
  python run_simulation.py --pattern square

  # Hold alternating headings while driving:
  python run_simulation.py --pattern heading --duration 12

  # Odometry only with wheel slip:
  python run_simulation.py --no-vision --slip 0.05
        """,
    )

    parser.add_argument(
        "--pattern",
        choices=PATTERNS,
        default="square",
        help="Drive pattern (default: square)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=8.0,
        help="Simulated seconds (default: 8.0)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Translation speed in m/s (default: 1.0)",
    )
    parser.add_argument(
        "--start",
        type=float,
        nargs=3,
        metavar=("X", "Y", "HEADING_DEG"),
        default=(2.0, 2.75, 0.0),
        help="Starting pose (default: 2.0 2.75 0.0)",
    )
    parser.add_argument(
        "--no-vision",
        action="store_true",
        help="Disable the simulated cameras",
    )
    parser.add_argument(
        "--slip",
        type=float,
        default=0.03,
        help="Fraction of wheel travel lost to slip (default: 0.03)",
    )
    parser.add_argument(
        "--noise",
        type=float,
        default=0.02,
        help="Camera detection noise std dev in meters (default: 0.02)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for camera noise",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config) if args.config else Config()
    x, y, heading_deg = args.start

    run_simulation(
        config,
        pattern=args.pattern,
        duration_s=args.duration,
        speed=args.speed,
        vision=not args.no_vision,
        slip=args.slip,
        noise=args.noise,
        start=Pose(x, y, math.radians(heading_deg)),
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
