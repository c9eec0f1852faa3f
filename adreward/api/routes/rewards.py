"""
adreward.api.routes.rewards — Reward claim endpoints
=====================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adreward.api.deps import get_config, get_current_user, get_engine
from adreward.config import AdRewardConfig
from adreward.database.engine import run_db
from adreward.database.models import User
from adreward.errors import NotFound
from adreward.services import reward_service
from adreward.services.reward_service import reward_to_dict

router = APIRouter(tags=["rewards"])


class RewardClaim(BaseModel):
    # Format is checked by the service so the failure order stays
    # progress → already-claimed → email.
    email: str | None = None


@router.get("/rewards")
def get_reward(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    reward = reward_service.get_reward_by_user_id(engine, user.id)
    if reward is None:
        raise NotFound("No reward found")
    return reward_to_dict(reward)


@router.post("/rewards", status_code=201)
async def claim_reward(
    body: RewardClaim,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    reward = await run_db(
        reward_service.claim_reward,
        engine,
        user.id,
        body.email,
        threshold=cfg.qualification_threshold,
    )
    return reward_to_dict(reward)
