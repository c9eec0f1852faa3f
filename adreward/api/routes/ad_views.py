"""
adreward.api.routes.ad_views — Ad-view ledger endpoints
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from adreward.api.deps import get_config, get_current_user, get_engine
from adreward.config import AdRewardConfig
from adreward.database.engine import run_db
from adreward.database.models import User
from adreward.services import ad_view_service, reward_service
from adreward.services.ad_view_service import ad_view_to_dict

router = APIRouter(tags=["ad-views"])


@router.post("/ad-views", status_code=201)
async def create_ad_view(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    """Record one finished ad for the signed-in user."""
    view = await run_db(
        ad_view_service.record_ad_view,
        engine,
        user.id,
        reset_weekday=cfg.competition_reset_weekday,
    )
    return ad_view_to_dict(view)


@router.get("/ad-views")
def list_ad_views(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return [
        ad_view_to_dict(view)
        for view in ad_view_service.get_ad_views_by_user_id(engine, user.id)
    ]


@router.get("/progress")
def get_progress(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    """Ad count, threshold and WATCHING / QUALIFIED / CLAIMED state."""
    progress = reward_service.get_progress(
        engine, user.id, threshold=cfg.qualification_threshold
    )
    return progress.to_dict()
