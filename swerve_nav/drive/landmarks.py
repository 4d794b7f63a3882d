"""Static map of fiducial landmark poses."""

import json
import logging
import math
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Union

from .geometry import Pose3d, yaw_from_quaternion

logger = logging.getLogger(__name__)

# Field layout used when no layout file is available (meters, radians)
DEFAULT_FIELD_LENGTH_M = 16.54175
DEFAULT_FIELD_WIDTH_M = 8.0137
DEFAULT_LANDMARKS: Dict[int, Pose3d] = {
    1: Pose3d(15.513558, 1.071626, 0.462788, yaw=math.pi),
    2: Pose3d(15.513558, 2.748026, 0.462788, yaw=math.pi),
    3: Pose3d(15.513558, 4.424426, 0.462788, yaw=math.pi),
    4: Pose3d(16.178784, 6.749796, 0.695452, yaw=math.pi),
    5: Pose3d(0.36195, 6.749796, 0.695452),
    6: Pose3d(1.02743, 4.424426, 0.462788),
    7: Pose3d(1.02743, 2.748026, 0.462788),
    8: Pose3d(1.02743, 1.071626, 0.462788),
}


class LandmarkMap:
    """Immutable landmark id to field pose lookup."""

    def __init__(
        self,
        landmarks: Mapping[int, Pose3d],
        field_length_m: float = DEFAULT_FIELD_LENGTH_M,
        field_width_m: float = DEFAULT_FIELD_WIDTH_M,
    ):
        self._landmarks = MappingProxyType(dict(landmarks))
        self.field_length_m = field_length_m
        self.field_width_m = field_width_m

    def get(self, landmark_id: int) -> Optional[Pose3d]:
        """
        Get the pose of a landmark.

        Args:
            landmark_id: Landmark id.

        Returns:
            Landmark pose, or None for an id not in the map.
        """
        pose = self._landmarks.get(landmark_id)
        if pose is None:
            logger.warning(f"Tried to find the pose of unknown landmark {landmark_id}")
        return pose

    def ids(self) -> List[int]:
        return sorted(self._landmarks)

    def __contains__(self, landmark_id: int) -> bool:
        return landmark_id in self._landmarks

    def __len__(self) -> int:
        return len(self._landmarks)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._landmarks))


def default_landmark_map() -> LandmarkMap:
    """The compiled-in field layout."""
    return LandmarkMap(DEFAULT_LANDMARKS, DEFAULT_FIELD_LENGTH_M, DEFAULT_FIELD_WIDTH_M)


def parse_field_layout(layout: dict) -> LandmarkMap:
    """
    Build a map from a field layout document.

    Expected shape::

        {"tags": [{"ID": 1, "pose": {"translation": {"x": .., "y": .., "z": ..},
                   "rotation": {"quaternion": {"W": .., "X": .., "Y": .., "Z": ..}}}}],
         "field": {"length": .., "width": ..}}
    """
    landmarks = {}
    for tag in layout["tags"]:
        translation = tag["pose"]["translation"]
        q = tag["pose"]["rotation"]["quaternion"]
        landmarks[int(tag["ID"])] = Pose3d(
            float(translation["x"]),
            float(translation["y"]),
            float(translation["z"]),
            yaw=yaw_from_quaternion(q["W"], q["X"], q["Y"], q["Z"]),
        )

    field = layout.get("field", {})
    return LandmarkMap(
        landmarks,
        float(field.get("length", DEFAULT_FIELD_LENGTH_M)),
        float(field.get("width", DEFAULT_FIELD_WIDTH_M)),
    )


def load_landmark_map(path: Optional[Union[str, Path]] = None) -> LandmarkMap:
    """
    Load a field layout, falling back to the compiled default.

    The returned map is never empty.

    Args:
        path: Field layout JSON file. None uses the default layout.

    Returns:
        Loaded or default LandmarkMap.
    """
    if path is None:
        return default_landmark_map()

    path = Path(path)
    try:
        with path.open("r") as f:
            landmark_map = parse_field_layout(json.load(f))
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Could not load landmark map from {path} ({e}), using default layout")
        return default_landmark_map()

    if len(landmark_map) == 0:
        logger.warning(f"Landmark map {path} has no landmarks, using default layout")
        return default_landmark_map()

    logger.info(f"Loaded {len(landmark_map)} landmarks from {path}")
    return landmark_map
