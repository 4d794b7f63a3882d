"""Planar and spatial pose utilities shared by odometry, vision and control."""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

TWO_PI = 2.0 * math.pi


def normalize_angle(theta: float) -> float:
    """
    Wrap an angle into (-pi, pi].

    Args:
        theta: Angle in radians.

    Returns:
        Equivalent angle in (-pi, pi].
    """
    wrapped = math.remainder(theta, TWO_PI)
    if wrapped <= -math.pi:
        wrapped += TWO_PI
    return wrapped


def heading_error(current: float, target: float) -> float:
    """
    Shortest signed rotation from current to target.

    Args:
        current: Current heading in radians.
        target: Target heading in radians.

    Returns:
        Error in radians, in (-pi, pi]. Positive is counter-clockwise.
    """
    return normalize_angle(target - current)


def interpolate_angle(start: float, end: float, t: float) -> float:
    """Interpolate along the shortest arc from start to end."""
    return normalize_angle(start + heading_error(start, end) * t)


def circular_mean(angles: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    """
    Mean direction of a set of angles.

    Two equally weighted angles give the shortest-arc midpoint, so the
    mean of 170 and -170 degrees is 180 degrees, not 0.

    Args:
        angles: Angles in radians.
        weights: Optional non-negative weight per angle.

    Returns:
        Mean angle in (-pi, pi].
    """
    angles = np.asarray(angles, dtype=float)
    if angles.size == 0:
        raise ValueError("circular_mean needs at least one angle")

    if weights is None:
        weights = np.ones_like(angles)
    else:
        weights = np.asarray(weights, dtype=float)

    s = float(np.sum(weights * np.sin(angles)))
    c = float(np.sum(weights * np.cos(angles)))

    # Opposing directions have no resultant
    if math.hypot(s, c) < 1e-12:
        return interpolate_angle(float(angles[0]), float(angles[-1]), 0.5)

    return normalize_angle(math.atan2(s, c))


@dataclass(frozen=True)
class Twist:
    """Incremental motion along an arc, expressed in the robot frame."""

    dx: float = 0.0
    dy: float = 0.0
    dtheta: float = 0.0


@dataclass(frozen=True)
class Pose:
    """Planar robot pose. Heading is always normalized to (-pi, pi]."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "heading", normalize_angle(self.heading))

    @property
    def translation(self) -> np.ndarray:
        return np.array([self.x, self.y])

    def distance_to(self, other: "Pose") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.heading))

    def transform_by(self, dx: float, dy: float, dtheta: float) -> "Pose":
        """
        Apply a transform expressed in this pose's own frame.

        Args:
            dx: Forward offset in the robot frame.
            dy: Left offset in the robot frame.
            dtheta: Rotation added to the heading.

        Returns:
            Resulting field pose.
        """
        cos_h = math.cos(self.heading)
        sin_h = math.sin(self.heading)
        return Pose(
            self.x + dx * cos_h - dy * sin_h,
            self.y + dx * sin_h + dy * cos_h,
            self.heading + dtheta,
        )

    def relative_to(self, other: "Pose") -> Tuple[float, float, float]:
        """Transform taking `other` to this pose, in the frame of `other`."""
        cos_h = math.cos(other.heading)
        sin_h = math.sin(other.heading)
        ddx = self.x - other.x
        ddy = self.y - other.y
        return (
            ddx * cos_h + ddy * sin_h,
            -ddx * sin_h + ddy * cos_h,
            heading_error(other.heading, self.heading),
        )

    def exp(self, twist: Twist) -> "Pose":
        """
        Compose a twist onto this pose.

        The translation is integrated along a constant-curvature arc that
        starts at this pose's heading, so motion is interpreted in the
        robot's instantaneous frame before it lands in the field frame.
        """
        dtheta = twist.dtheta
        sin_t = math.sin(dtheta)
        cos_t = math.cos(dtheta)

        if abs(dtheta) < 1e-9:
            s = 1.0 - dtheta * dtheta / 6.0
            c = 0.5 * dtheta
        else:
            s = sin_t / dtheta
            c = (1.0 - cos_t) / dtheta

        return self.transform_by(
            twist.dx * s - twist.dy * c,
            twist.dx * c + twist.dy * s,
            dtheta,
        )

    def interpolate(self, end: "Pose", t: float) -> "Pose":
        """Linear translation and shortest-arc heading interpolation."""
        t = min(max(t, 0.0), 1.0)
        return Pose(
            self.x + (end.x - self.x) * t,
            self.y + (end.y - self.y) * t,
            interpolate_angle(self.heading, end.heading, t),
        )


def blend_poses(
    prior: Pose, observed: Pose, gains: Tuple[float, float, float]
) -> Pose:
    """
    Move `prior` toward `observed` by a per-axis fraction.

    Args:
        prior: Pose to correct.
        observed: Measured pose.
        gains: Fraction (0-1) of the difference applied for x, y, heading.

    Returns:
        Corrected pose. Heading moves along the shortest arc.
    """
    return Pose(
        prior.x + gains[0] * (observed.x - prior.x),
        prior.y + gains[1] * (observed.y - prior.y),
        prior.heading + gains[2] * heading_error(prior.heading, observed.heading),
    )


def mean_pose(poses: Iterable[Pose]) -> Pose:
    """Arithmetic mean translation and circular mean heading."""
    poses = list(poses)
    if not poses:
        raise ValueError("mean_pose needs at least one pose")
    xy = np.mean([[p.x, p.y] for p in poses], axis=0)
    return Pose(float(xy[0]), float(xy[1]), circular_mean([p.heading for p in poses]))


def rotation_matrix_from_euler(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """
    Create rotation matrix from Euler angles (ZYX convention).

    Args:
        roll: Roll angle in radians.
        pitch: Pitch angle in radians.
        yaw: Yaw angle in radians.

    Returns:
        3x3 rotation matrix.
    """
    Rx = np.array([
        [1, 0, 0],
        [0, math.cos(roll), -math.sin(roll)],
        [0, math.sin(roll), math.cos(roll)],
    ])

    Ry = np.array([
        [math.cos(pitch), 0, math.sin(pitch)],
        [0, 1, 0],
        [-math.sin(pitch), 0, math.cos(pitch)],
    ])

    Rz = np.array([
        [math.cos(yaw), -math.sin(yaw), 0],
        [math.sin(yaw), math.cos(yaw), 0],
        [0, 0, 1],
    ])

    # ZYX order: R = Rz @ Ry @ Rx
    return Rz @ Ry @ Rx


def extract_euler_angles(R: np.ndarray) -> Tuple[float, float, float]:
    """
    Extract Euler angles (roll, pitch, yaw) from rotation matrix.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Tuple of (roll, pitch, yaw) in radians.
    """
    # Handle gimbal lock
    sy = math.sqrt(R[0, 0] ** 2 + R[1, 0] ** 2)

    if sy >= 1e-6:
        roll = math.atan2(R[2, 1], R[2, 2])
        pitch = math.atan2(-R[2, 0], sy)
        yaw = math.atan2(R[1, 0], R[0, 0])
    else:
        roll = math.atan2(-R[1, 2], R[1, 1])
        pitch = math.atan2(-R[2, 0], sy)
        yaw = 0.0

    return float(roll), float(pitch), float(yaw)


def yaw_from_quaternion(w: float, x: float, y: float, z: float) -> float:
    """Yaw (rotation about +Z) of a unit quaternion."""
    return math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))


@dataclass(frozen=True)
class Pose3d:
    """Spatial pose: translation in meters, ZYX Euler rotation in radians."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0

    @property
    def translation(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    def to_matrix(self) -> np.ndarray:
        """4x4 homogeneous transform."""
        T = np.eye(4)
        T[:3, :3] = rotation_matrix_from_euler(self.roll, self.pitch, self.yaw)
        T[:3, 3] = self.translation
        return T

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose3d":
        roll, pitch, yaw = extract_euler_angles(T[:3, :3])
        return cls(float(T[0, 3]), float(T[1, 3]), float(T[2, 3]), roll, pitch, yaw)

    @classmethod
    def from_pose2d(cls, pose: Pose, z: float = 0.0) -> "Pose3d":
        return cls(pose.x, pose.y, z, 0.0, 0.0, pose.heading)

    def compose(self, other: "Pose3d") -> "Pose3d":
        """Apply `other`, expressed in this pose's frame."""
        return Pose3d.from_matrix(self.to_matrix() @ other.to_matrix())

    def inverse(self) -> "Pose3d":
        T = self.to_matrix()
        R = T[:3, :3]
        inv = np.eye(4)
        inv[:3, :3] = R.T
        inv[:3, 3] = -R.T @ T[:3, 3]
        return Pose3d.from_matrix(inv)

    def distance_to(self, point: np.ndarray) -> float:
        """3-D distance from this pose's translation to a point."""
        return float(np.linalg.norm(self.translation - np.asarray(point, dtype=float)))

    def to_pose2d(self) -> Pose:
        """Collapse onto the floor plane."""
        return Pose(self.x, self.y, self.yaw)
