"""Tests for drivetrain modes."""

import pytest

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from swerve_nav.drive.config import Config
from swerve_nav.drive.drive_modes import (
    EnableState,
    ModeManager,
    TraversalMode,
    build_trust_profiles,
)
from swerve_nav.drive.pose_estimator import TrustWeight


class TestTrustProfiles:
    """Test the traversal mode trust table."""

    def test_normal_profile(self):
        profile = build_trust_profiles(Config())[TraversalMode.NORMAL]
        assert profile.base_trust == TrustWeight(0.3, 0.3, 0.6)
        assert profile.multiplier == 1.0

    def test_obstacle_profile(self):
        profile = build_trust_profiles(Config())[TraversalMode.OBSTACLE]
        assert profile.base_trust == TrustWeight(0.05, 0.05, 0.1)
        assert profile.multiplier == 0.5

    def test_custom_table(self):
        config = Config(obstacle_base_trust=(1.0, 1.0, 2.0), obstacle_trust_multiplier=3.0)
        profile = build_trust_profiles(config)[TraversalMode.OBSTACLE]
        assert profile.base_trust == TrustWeight(1.0, 1.0, 2.0)
        assert profile.multiplier == 3.0


class TestModeManager:
    """Test suite for ModeManager."""

    @pytest.fixture
    def modes(self):
        return ModeManager(Config())

    def test_initial_state(self, modes):
        assert modes.traversal_mode == TraversalMode.NORMAL
        assert modes.enable_state == EnableState.DISABLED
        assert not modes.is_enabled()

    def test_enable(self, modes):
        assert modes.set_enabled(True)
        assert modes.is_enabled()
        assert not modes.set_enabled(True)

    def test_traversal_mode_selects_profile(self, modes):
        assert modes.set_traversal_mode(TraversalMode.OBSTACLE)
        assert modes.trust_profile.multiplier == 0.5
        assert not modes.set_traversal_mode(TraversalMode.OBSTACLE)

        modes.set_traversal_mode(TraversalMode.NORMAL)
        assert modes.trust_profile.multiplier == 1.0

    def test_callbacks(self, modes):
        changes = []
        modes.on_change(lambda old, new: changes.append((old, new)))

        modes.set_enabled(True)
        modes.set_traversal_mode(TraversalMode.OBSTACLE)
        modes.set_traversal_mode(TraversalMode.OBSTACLE)

        assert changes == [
            (EnableState.DISABLED, EnableState.ENABLED),
            (TraversalMode.NORMAL, TraversalMode.OBSTACLE),
        ]

    def test_callback_error_does_not_block_change(self, modes):
        calls = []

        def broken(old, new):
            raise RuntimeError("callback failed")

        modes.on_change(broken)
        modes.on_change(lambda old, new: calls.append(new))

        assert modes.set_enabled(True)
        assert modes.is_enabled()
        assert calls == [EnableState.ENABLED]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
