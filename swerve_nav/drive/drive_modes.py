"""Drivetrain operating modes and the vision trust table they select."""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, List

from .config import Config
from .pose_estimator import TrustWeight

logger = logging.getLogger(__name__)


class TraversalMode(Enum):
    """How reliable wheel odometry is over the current terrain."""

    NORMAL = auto()  # Flat floor, odometry trusted
    OBSTACLE = auto()  # Driving over an obstacle, wheels slip and tilt


class EnableState(Enum):
    """Whether actuator commands are issued."""

    DISABLED = auto()  # Estimation runs, actuators idle
    ENABLED = auto()  # Full control cycle


@dataclass(frozen=True)
class VisionTrustProfile:
    """Trust parameters applied to vision in one traversal mode."""

    base_trust: TrustWeight
    multiplier: float = 1.0


def build_trust_profiles(config: Config) -> Dict[TraversalMode, VisionTrustProfile]:
    """Map each traversal mode to its vision trust profile."""
    return {
        TraversalMode.NORMAL: VisionTrustProfile(
            base_trust=TrustWeight(*config.base_trust),
        ),
        TraversalMode.OBSTACLE: VisionTrustProfile(
            base_trust=TrustWeight(*config.obstacle_base_trust),
            multiplier=config.obstacle_trust_multiplier,
        ),
    }


ModeCallback = Callable[[Enum, Enum], None]


class ModeManager:
    """
    Single owner of the traversal mode and enable state.

    Everything that depends on a mode reads it from here; callbacks
    registered with on_change() run after each change.
    """

    def __init__(self, config: Config):
        """
        Initialize in NORMAL traversal, DISABLED.

        Args:
            config: Configuration providing the trust table.
        """
        self._profiles = build_trust_profiles(config)
        self._traversal_mode = TraversalMode.NORMAL
        self._enable_state = EnableState.DISABLED
        self._callbacks: List[ModeCallback] = []

    @property
    def traversal_mode(self) -> TraversalMode:
        return self._traversal_mode

    @property
    def enable_state(self) -> EnableState:
        return self._enable_state

    @property
    def trust_profile(self) -> VisionTrustProfile:
        """Trust profile for the current traversal mode."""
        return self._profiles[self._traversal_mode]

    def is_enabled(self) -> bool:
        return self._enable_state == EnableState.ENABLED

    def set_traversal_mode(self, mode: TraversalMode) -> bool:
        """
        Change the traversal mode.

        Returns:
            True if the mode changed.
        """
        if mode == self._traversal_mode:
            return False
        old_mode = self._traversal_mode
        self._traversal_mode = mode
        logger.info(f"Traversal mode: {old_mode.name} -> {mode.name}")
        self._notify(old_mode, mode)
        return True

    def set_enabled(self, enabled: bool) -> bool:
        """
        Enable or disable actuator output.

        Returns:
            True if the state changed.
        """
        target = EnableState.ENABLED if enabled else EnableState.DISABLED
        if target == self._enable_state:
            return False
        old_state = self._enable_state
        self._enable_state = target
        logger.info(f"Drivetrain state: {old_state.name} -> {target.name}")
        self._notify(old_state, target)
        return True

    def on_change(self, callback: ModeCallback) -> None:
        """
        Register a callback for any mode or state change.

        Args:
            callback: Function(old, new) to call.
        """
        self._callbacks.append(callback)

    def _notify(self, old: Enum, new: Enum) -> None:
        for callback in self._callbacks:
            try:
                callback(old, new)
            except Exception as e:
                logger.error(f"Mode callback error: {e}")
