"""
adreward.services.reward_service — Reward Ledger & Qualification
=================================================================

One reward per user, gated by the ad-view count reaching the
qualification threshold.

Claim checks run in this order, each mapped to a client-facing error:

1. ad-views < threshold          → :class:`InsufficientProgress`
2. a reward row already exists   → :class:`AlreadyClaimed`
3. email fails format validation → :class:`ValidationError`

The existence check in (2) is only a fast path.  The insert itself runs
in a SAVEPOINT and the ``uq_rewards_user_id`` constraint decides between
concurrent claims; the loser's ``IntegrityError`` becomes
:class:`AlreadyClaimed`.
"""

from __future__ import annotations

import logging
from datetime import datetime

import pydantic
from pydantic import EmailStr, TypeAdapter
from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError

from adreward.constants import DEFAULT_QUALIFICATION_THRESHOLD, as_utc, isoformat, utcnow
from adreward.database.engine import get_session
from adreward.database.models import AdView, Reward, User
from adreward.engine.qualification import Progress, build_progress
from adreward.errors import AlreadyClaimed, Forbidden, InsufficientProgress, ValidationError
from adreward.services.ad_view_service import count_ad_views_for

logger = logging.getLogger(__name__)

_email_adapter: TypeAdapter[str] = TypeAdapter(EmailStr)


def reward_to_dict(reward: Reward) -> dict:
    return {
        "id": reward.id,
        "user_id": reward.user_id,
        "email": reward.email,
        "claimed": reward.claimed,
        "claimed_at": isoformat(reward.claimed_at),
        "created_at": isoformat(reward.created_at),
    }


def validate_email(email: str | None) -> str:
    """Return the normalized address or raise :class:`ValidationError`."""
    try:
        return _email_adapter.validate_python(email)
    except pydantic.ValidationError:
        raise ValidationError("Invalid email format") from None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_reward_by_user_id(engine: Engine, user_id: int) -> Reward | None:
    with get_session(engine) as session:
        return session.scalar(select(Reward).where(Reward.user_id == user_id))


def get_progress(
    engine: Engine,
    user_id: int,
    *,
    threshold: int = DEFAULT_QUALIFICATION_THRESHOLD,
) -> Progress:
    with get_session(engine) as session:
        count = count_ad_views_for(session, user_id)
        has_reward = session.scalar(
            select(Reward.id).where(Reward.user_id == user_id)
        ) is not None
    return build_progress(count, has_reward, threshold)


def get_qualified_users(
    engine: Engine,
    *,
    is_admin: bool,
    threshold: int = DEFAULT_QUALIFICATION_THRESHOLD,
) -> list[User]:
    """Users whose ad-view count has reached *threshold*.

    The caller must pass the admin capability explicitly; this function
    does not decide who is an admin.
    """
    if not is_admin:
        raise Forbidden("Admin access required")

    with get_session(engine) as session:
        return list(session.scalars(
            select(User)
            .join(AdView, AdView.user_id == User.id)
            .group_by(User.id)
            .having(func.count(AdView.id) >= threshold)
            .order_by(User.id)
        ).all())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def claim_reward(
    engine: Engine,
    user_id: int,
    email: str | None,
    *,
    threshold: int = DEFAULT_QUALIFICATION_THRESHOLD,
) -> Reward:
    """Create the user's single reward row (``claimed=False``)."""
    with get_session(engine) as session:
        count = count_ad_views_for(session, user_id)
        if count < threshold:
            raise InsufficientProgress(
                f"Not enough ads watched ({count}/{threshold})"
            )

        existing = session.scalar(select(Reward.id).where(Reward.user_id == user_id))
        if existing is not None:
            raise AlreadyClaimed()

        reward = Reward(user_id=user_id, email=validate_email(email), claimed=False)
        try:
            with session.begin_nested():  # SAVEPOINT
                session.add(reward)
                session.flush()
        except IntegrityError:
            logger.info("Concurrent reward claim rejected for user %s", user_id)
            raise AlreadyClaimed() from None

        logger.info("Reward %s created for user %s", reward.id, user_id)
        return reward


def mark_reward_claimed(
    engine: Engine, user_id: int, *, now: datetime | None = None
) -> Reward | None:
    """Record fulfilment of an existing reward.  Returns ``None`` if absent.

    Idempotent: an already-fulfilled reward keeps its original timestamp.
    """
    with get_session(engine) as session:
        reward = session.scalar(select(Reward).where(Reward.user_id == user_id))
        if reward is None:
            return None
        if not reward.claimed:
            reward.claimed = True
            reward.claimed_at = as_utc(now) or utcnow()
            logger.info("Reward %s marked fulfilled for user %s", reward.id, user_id)
        return reward
