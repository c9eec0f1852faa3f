"""
adreward.engine.qualification — Reward state machine
=====================================================

Pure derivation, no DB I/O.  A user's journey is::

    WATCHING ──(count >= threshold)──▶ QUALIFIED ──(reward row)──▶ CLAIMED

The existence of a Reward row is the authoritative CLAIMED signal; the
row's ``claimed`` boolean only tracks fulfilment.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = ["Progress", "RewardState", "build_progress", "derive_state", "is_qualified"]


class RewardState(enum.StrEnum):
    WATCHING = "WATCHING"
    QUALIFIED = "QUALIFIED"
    CLAIMED = "CLAIMED"


def is_qualified(ad_view_count: int, threshold: int) -> bool:
    return ad_view_count >= threshold


def derive_state(ad_view_count: int, has_reward: bool, threshold: int) -> RewardState:
    """Return the state for a user with *ad_view_count* views."""
    if has_reward:
        return RewardState.CLAIMED
    if is_qualified(ad_view_count, threshold):
        return RewardState.QUALIFIED
    return RewardState.WATCHING


@dataclass(frozen=True, slots=True)
class Progress:
    """Snapshot of one user's progress toward the reward."""

    ads_watched: int
    threshold: int
    state: RewardState

    @property
    def remaining(self) -> int:
        return max(0, self.threshold - self.ads_watched)

    def to_dict(self) -> dict:
        return {
            "ads_watched": self.ads_watched,
            "threshold": self.threshold,
            "remaining": self.remaining,
            "state": self.state.value,
        }


def build_progress(ad_view_count: int, has_reward: bool, threshold: int) -> Progress:
    return Progress(
        ads_watched=ad_view_count,
        threshold=threshold,
        state=derive_state(ad_view_count, has_reward, threshold),
    )
