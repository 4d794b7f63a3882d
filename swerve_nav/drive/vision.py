"""Camera-based robot pose estimation from mapped landmarks."""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .drive_modes import VisionTrustProfile
from .geometry import Pose, Pose3d, heading_error, mean_pose
from .landmarks import LandmarkMap
from .pose_estimator import TrustWeight, VisionMeasurement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LandmarkDetection:
    """One landmark seen by a camera."""

    landmark_id: int
    camera_to_landmark: Pose3d  # Best solution, camera frame
    alternate: Optional[Pose3d] = None  # Ambiguous second solution
    ambiguity: float = 0.0  # Ratio of best to alternate reprojection error


@dataclass(frozen=True)
class CameraFrame:
    """Detections from one camera exposure."""

    timestamp: float  # Capture time (seconds)
    detections: Tuple[LandmarkDetection, ...] = ()


class CameraFeed(Protocol):
    """Source of camera frames, produced outside the control loop."""

    def latest_frame(self) -> Optional[CameraFrame]:
        ...


@dataclass(frozen=True)
class VisionObservation:
    """Robot pose estimated by one camera."""

    pose: Optional[Pose3d]
    timestamp: float
    landmarks_used: FrozenSet[int] = frozenset()
    camera_name: str = ""

    @property
    def pose2d(self) -> Optional[Pose]:
        return self.pose.to_pose2d() if self.pose is not None else None


class PoseSource(Protocol):
    """Anything that produces at most one observation per cycle."""

    name: str

    def estimate(self, reference_pose: Pose) -> Optional[VisionObservation]:
        ...


class VisionCamera:
    """
    Pose estimator for a single camera.

    Each detection of a mapped landmark gives one or two candidate robot
    poses. The reference pose only chooses between candidates; it never
    contributes to the estimate itself.
    """

    def __init__(
        self,
        name: str,
        feed: CameraFeed,
        robot_to_camera: Pose3d,
        landmark_map: LandmarkMap,
    ):
        """
        Initialize the camera.

        Args:
            name: Camera name for logs.
            feed: Frame source.
            robot_to_camera: Camera mounting pose in the robot frame.
            landmark_map: Field landmark poses.
        """
        self.name = name
        self.feed = feed
        self.robot_to_camera = robot_to_camera
        self.landmark_map = landmark_map
        self._camera_to_robot = robot_to_camera.inverse()
        self._last_timestamp: Optional[float] = None

    def estimate(self, reference_pose: Pose) -> Optional[VisionObservation]:
        """
        Estimate the robot pose from the latest frame.

        Args:
            reference_pose: Prior pose used to resolve ambiguous solutions.

        Returns:
            Observation, or None when there is no new frame with a mapped landmark.
        """
        frame = self.feed.latest_frame()
        if frame is None or not frame.detections:
            return None

        if self._last_timestamp is not None and frame.timestamp <= self._last_timestamp:
            logger.debug(f"{self.name}: frame at t={frame.timestamp:.3f} already consumed")
            return None
        self._last_timestamp = frame.timestamp

        chosen: List[Pose3d] = []
        for detection in frame.detections:
            candidates = self._candidates(detection)
            if not candidates:
                continue
            chosen.append(self._closest_to_reference(candidates, reference_pose))

        landmarks_used = frozenset(d.landmark_id for d in frame.detections)
        if not chosen:
            logger.debug(f"{self.name}: no mapped landmarks in {sorted(landmarks_used)}")
            return None

        if len(chosen) == 1:
            pose = chosen[0]
        else:
            planar = mean_pose(p.to_pose2d() for p in chosen)
            z = float(np.mean([p.z for p in chosen]))
            pose = Pose3d(planar.x, planar.y, z, yaw=planar.heading)

        logger.debug(
            f"{self.name}: pose ({pose.x:.2f}, {pose.y:.2f}, {pose.yaw:.3f}) "
            f"from landmarks {sorted(landmarks_used)}"
        )
        return VisionObservation(pose, frame.timestamp, landmarks_used, self.name)

    def _candidates(self, detection: LandmarkDetection) -> List[Pose3d]:
        if detection.landmark_id not in self.landmark_map:
            return []
        field_to_landmark = self.landmark_map.get(detection.landmark_id)

        solutions = [detection.camera_to_landmark]
        if detection.alternate is not None:
            solutions.append(detection.alternate)

        return [
            field_to_landmark.compose(solution.inverse()).compose(self._camera_to_robot)
            for solution in solutions
        ]

    @staticmethod
    def _closest_to_reference(candidates: Sequence[Pose3d], reference: Pose) -> Pose3d:
        def score(candidate: Pose3d) -> Tuple[float, float]:
            planar = candidate.to_pose2d()
            return (
                planar.distance_to(reference),
                abs(heading_error(reference.heading, planar.heading)),
            )

        return min(candidates, key=score)


@dataclass
class VisionUpdate:
    """Vision output for one control cycle."""

    measurements: List[VisionMeasurement] = field(default_factory=list)
    observations: List[VisionObservation] = field(default_factory=list)
    combined: Optional[Pose] = None


class VisionPoseSource:
    """
    Multi-camera vision front end.

    Collects per-camera observations, assigns each a trust weight from
    the distance to its nearest used landmark, and exposes a combined
    estimate across cameras.
    """

    def __init__(
        self,
        cameras: Sequence[PoseSource],
        landmark_map: LandmarkMap,
        trust_slope: float = 0.25,
        untrusted_std_dev: float = 1.0e6,
    ):
        """
        Initialize the vision source.

        Args:
            cameras: Per-camera pose sources.
            landmark_map: Field landmark poses.
            trust_slope: Std dev added per meter to the nearest landmark.
            untrusted_std_dev: Trust used when no referenced landmark is mapped.
        """
        self.cameras = list(cameras)
        self.landmark_map = landmark_map
        self.trust_slope = trust_slope
        self.untrusted_std_dev = untrusted_std_dev

    def get_estimated_poses(self, reference_pose: Pose) -> List[VisionObservation]:
        """One observation per camera that produced a pose this cycle."""
        observations = []
        for camera in self.cameras:
            observation = camera.estimate(reference_pose)
            if observation is not None and observation.pose is not None:
                observations.append(observation)
        return observations

    def nearest_landmark_distance(
        self, observation: VisionObservation, current_pose: Pose
    ) -> Optional[float]:
        """
        Distance from the robot to the closest landmark the observation used.

        Args:
            observation: Vision observation.
            current_pose: Current estimated robot pose (on the floor, z = 0).

        Returns:
            3-D distance in meters, or None if no used landmark is mapped.
        """
        robot = Pose3d.from_pose2d(current_pose)
        distances = []
        for landmark_id in sorted(observation.landmarks_used):
            if landmark_id not in self.landmark_map:
                continue
            landmark = self.landmark_map.get(landmark_id)
            distances.append(robot.distance_to(landmark.translation))
        return min(distances) if distances else None

    def compute_trust(
        self,
        observation: VisionObservation,
        current_pose: Pose,
        profile: VisionTrustProfile,
    ) -> TrustWeight:
        """
        Trust weight for one observation.

        Args:
            observation: Vision observation.
            current_pose: Current estimated robot pose.
            profile: Trust profile of the current traversal mode.

        Returns:
            (base + distance * slope) * multiplier, or the untrusted weight
            when none of the used landmarks are mapped.
        """
        distance = self.nearest_landmark_distance(observation, current_pose)
        if distance is None:
            logger.warning(
                f"{observation.camera_name or 'camera'}: no mapped landmark in "
                f"{sorted(observation.landmarks_used)}, treating as untrusted"
            )
            return TrustWeight.uniform(self.untrusted_std_dev)

        return profile.base_trust.plus(distance * self.trust_slope).scaled(profile.multiplier)

    @staticmethod
    def combine(observations: Sequence[VisionObservation]) -> Optional[Pose]:
        """
        Single pose from this cycle's observations.

        One observation is forwarded; several give the mean translation
        and circular mean heading; none gives None.
        """
        poses = [o.pose2d for o in observations if o.pose is not None]
        if not poses:
            return None
        if len(poses) == 1:
            return poses[0]
        return mean_pose(poses)

    def collect(
        self,
        reference_pose: Pose,
        current_pose: Pose,
        profile: VisionTrustProfile,
    ) -> VisionUpdate:
        """
        Gather this cycle's observations as weighted measurements.

        Args:
            reference_pose: Prior pose for disambiguation.
            current_pose: Current estimated pose for trust weighting.
            profile: Trust profile of the current traversal mode.

        Returns:
            Measurements in timestamp order plus the combined estimate.
        """
        observations = sorted(self.get_estimated_poses(reference_pose), key=lambda o: o.timestamp)
        measurements = [
            VisionMeasurement(o.pose2d, o.timestamp, self.compute_trust(o, current_pose, profile))
            for o in observations
        ]
        return VisionUpdate(measurements, observations, self.combine(observations))
