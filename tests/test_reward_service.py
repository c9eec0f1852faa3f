"""
tests/test_reward_service.py — Reward Ledger Integration Tests
===============================================================
Claim gating (progress → already-claimed → email), one-reward-per-user,
fulfilment, and the admin-scoped qualified-user query.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from conftest import MIDWEEK

from adreward.engine.qualification import RewardState
from adreward.errors import AlreadyClaimed, Forbidden, InsufficientProgress, ValidationError
from adreward.services import ad_view_service, reward_service


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


def _watch(engine, user_id: int, n: int) -> None:
    for _ in range(n):
        ad_view_service.record_ad_view(engine, user_id, now=MIDWEEK)


class TestClaimReward:
    def test_rejects_below_threshold(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 3)
        with pytest.raises(InsufficientProgress, match=r"\(3/4\)"):
            reward_service.claim_reward(engine, user.id, "a@example.com")
        assert reward_service.get_reward_by_user_id(engine, user.id) is None

    def test_claims_at_threshold(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 4)
        reward = reward_service.claim_reward(engine, user.id, "a@example.com")
        assert reward.user_id == user.id
        assert reward.email == "a@example.com"
        assert reward.claimed is False
        assert reward.claimed_at is None

    def test_second_claim_is_rejected(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 4)
        reward_service.claim_reward(engine, user.id, "a@example.com")
        with pytest.raises(AlreadyClaimed):
            reward_service.claim_reward(engine, user.id, "b@example.com")

    def test_insufficient_progress_wins_over_bad_email(self, engine, make_user):
        user = make_user()
        with pytest.raises(InsufficientProgress):
            reward_service.claim_reward(engine, user.id, "not-an-email")

    def test_already_claimed_wins_over_bad_email(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 4)
        reward_service.claim_reward(engine, user.id, "a@example.com")
        with pytest.raises(AlreadyClaimed):
            reward_service.claim_reward(engine, user.id, "not-an-email")

    @pytest.mark.parametrize("email", ["not-an-email", "", None, "a@"])
    def test_rejects_bad_email(self, engine, make_user, email):
        user = make_user()
        _watch(engine, user.id, 4)
        with pytest.raises(ValidationError, match="Invalid email format"):
            reward_service.claim_reward(engine, user.id, email)
        assert reward_service.get_reward_by_user_id(engine, user.id) is None

    def test_custom_threshold(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 4)
        with pytest.raises(InsufficientProgress):
            reward_service.claim_reward(engine, user.id, "a@example.com", threshold=5)


class TestProgress:
    def test_walks_through_states(self, engine, make_user):
        user = make_user()
        assert reward_service.get_progress(engine, user.id).state is RewardState.WATCHING
        _watch(engine, user.id, 4)
        assert reward_service.get_progress(engine, user.id).state is RewardState.QUALIFIED
        reward_service.claim_reward(engine, user.id, "a@example.com")
        progress = reward_service.get_progress(engine, user.id)
        assert progress.state is RewardState.CLAIMED
        assert progress.ads_watched == 4


class TestMarkRewardClaimed:
    def test_missing_reward(self, engine, make_user):
        assert reward_service.mark_reward_claimed(engine, make_user().id) is None

    def test_is_idempotent(self, engine, make_user):
        user = make_user()
        _watch(engine, user.id, 4)
        reward_service.claim_reward(engine, user.id, "a@example.com")

        first_at = datetime(2026, 10, 15, tzinfo=UTC)
        reward = reward_service.mark_reward_claimed(engine, user.id, now=first_at)
        assert reward.claimed is True
        assert reward.claimed_at == first_at

        again = reward_service.mark_reward_claimed(
            engine, user.id, now=datetime(2026, 10, 16, tzinfo=UTC)
        )
        assert reward_service.reward_to_dict(again)["claimed_at"].startswith("2026-10-15")


class TestQualifiedUsers:
    def test_requires_admin_flag(self, engine):
        with pytest.raises(Forbidden):
            reward_service.get_qualified_users(engine, is_admin=False)

    def test_lists_users_at_threshold(self, engine, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        _watch(engine, alice.id, 4)
        _watch(engine, bob.id, 3)
        users = reward_service.get_qualified_users(engine, is_admin=True)
        assert [u.username for u in users] == ["alice"]

    def test_threshold_parameter(self, engine, make_user):
        alice = make_user("alice")
        _watch(engine, alice.id, 4)
        assert reward_service.get_qualified_users(engine, is_admin=True, threshold=5) == []
