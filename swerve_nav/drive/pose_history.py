"""Bounded history of timestamped odometry samples for latency compensation."""

import bisect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Optional, Tuple

from .geometry import Pose, interpolate_angle
from .kinematics import ModuleMeasuredPosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoseSample:
    """Odometry state recorded at one control cycle."""

    timestamp: float  # Seconds
    pose: Pose  # Estimated pose at this instant
    heading: float  # Raw heading sensor reading (rad)
    positions: Tuple[ModuleMeasuredPosition, ...]  # Module positions

    def interpolate(self, end: "PoseSample", timestamp: float) -> "PoseSample":
        """Sample between this one and `end` at the given time."""
        span = end.timestamp - self.timestamp
        t = 0.0 if span <= 0 else (timestamp - self.timestamp) / span
        t = min(max(t, 0.0), 1.0)

        positions = tuple(
            ModuleMeasuredPosition(
                a.distance + (b.distance - a.distance) * t,
                interpolate_angle(a.angle, b.angle, t),
            )
            for a, b in zip(self.positions, end.positions)
        )
        return PoseSample(
            timestamp=timestamp,
            pose=self.pose.interpolate(end.pose, t),
            heading=interpolate_angle(self.heading, end.heading, t),
            positions=positions,
        )


class PoseHistory:
    """
    Fixed-capacity, time-ordered buffer of odometry samples.

    Samples older than the staleness window (relative to the newest
    sample) are evicted on every insert, and the capacity bounds memory
    regardless of loop rate.
    """

    def __init__(self, window_s: float = 1.5, capacity: int = 256):
        """
        Initialize the history.

        Args:
            window_s: Maximum sample age retained (seconds).
            capacity: Maximum number of samples retained.
        """
        self.window_s = window_s
        self.capacity = capacity
        self._samples: Deque[PoseSample] = deque(maxlen=capacity)

    def add(self, sample: PoseSample) -> None:
        """
        Append a sample.

        A sample not newer than the latest one replaces every sample at or
        after its timestamp, keeping the buffer time-ordered.
        """
        if self._samples and sample.timestamp <= self._samples[-1].timestamp:
            self.pop_after(sample.timestamp, inclusive=True)
        self._samples.append(sample)
        self._evict(sample.timestamp)

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_s
        evicted = 0
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} stale pose samples")

    def oldest(self) -> Optional[PoseSample]:
        return self._samples[0] if self._samples else None

    def newest(self) -> Optional[PoseSample]:
        return self._samples[-1] if self._samples else None

    def sample_at(self, timestamp: float) -> Optional[PoseSample]:
        """
        Get the interpolated sample at a time.

        Args:
            timestamp: Time to sample (seconds).

        Returns:
            Interpolated sample, the newest sample for times past the end,
            or None when the time predates the history.
        """
        if not self._samples or timestamp < self._samples[0].timestamp:
            return None
        if timestamp >= self._samples[-1].timestamp:
            return self._samples[-1]

        timestamps = [s.timestamp for s in self._samples]
        upper = bisect.bisect_right(timestamps, timestamp)
        before = self._samples[upper - 1]
        if before.timestamp == timestamp:
            return before
        return before.interpolate(self._samples[upper], timestamp)

    def pop_after(self, timestamp: float, inclusive: bool = False) -> List[PoseSample]:
        """
        Remove and return samples after a time, oldest first.

        Args:
            timestamp: Cutoff time (seconds).
            inclusive: Also remove samples exactly at the cutoff.
        """
        removed = []
        while self._samples and (
            self._samples[-1].timestamp > timestamp
            or (inclusive and self._samples[-1].timestamp == timestamp)
        ):
            removed.append(self._samples.pop())
        removed.reverse()
        return removed

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PoseSample]:
        return iter(self._samples)
