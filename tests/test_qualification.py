"""
tests/test_qualification.py — Reward State Derivation
======================================================
Pure tests for the WATCHING → QUALIFIED → CLAIMED state machine.
"""

from __future__ import annotations

import pytest

from adreward.engine.qualification import (
    RewardState,
    build_progress,
    derive_state,
    is_qualified,
)


class TestDeriveState:
    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_below_threshold_is_watching(self, count):
        assert derive_state(count, has_reward=False, threshold=4) is RewardState.WATCHING

    @pytest.mark.parametrize("count", [4, 5, 40])
    def test_at_or_above_threshold_is_qualified(self, count):
        assert derive_state(count, has_reward=False, threshold=4) is RewardState.QUALIFIED

    def test_reward_row_means_claimed_regardless_of_count(self):
        assert derive_state(4, has_reward=True, threshold=4) is RewardState.CLAIMED
        # A lowered threshold after claiming never "unclaims".
        assert derive_state(1, has_reward=True, threshold=4) is RewardState.CLAIMED

    def test_threshold_is_a_parameter(self):
        assert derive_state(4, has_reward=False, threshold=5) is RewardState.WATCHING
        assert is_qualified(5, 5)


class TestProgress:
    def test_remaining_counts_down_and_floors_at_zero(self):
        assert build_progress(1, False, 4).remaining == 3
        assert build_progress(9, False, 4).remaining == 0

    def test_to_dict(self):
        assert build_progress(2, False, 4).to_dict() == {
            "ads_watched": 2,
            "threshold": 4,
            "remaining": 2,
            "state": "WATCHING",
        }
