"""
adreward.api.routes.public — Read-only public endpoints
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from adreward.api.deps import get_config, get_engine
from adreward.config import AdRewardConfig
from adreward.constants import MAX_LEADERBOARD_LIMIT
from adreward.services import competition_service
from adreward.services.competition_service import competition_to_dict

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# GET /competition
# ---------------------------------------------------------------------------
@router.get("/competition")
def get_competition(
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    """The running weekly competition (opens a new week if the last ended)."""
    competition, _ = competition_service.ensure_weekly_competition(
        engine, reset_weekday=cfg.competition_reset_weekday
    )
    return competition_to_dict(competition)


# ---------------------------------------------------------------------------
# GET /leaderboard
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
def get_leaderboard(
    limit: int | None = Query(None, ge=1, le=MAX_LEADERBOARD_LIMIT),
    min_ads: int | None = Query(None, ge=0),
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    """Ranked participants of the current competition, most ads first.

    Empty when no competition is running; this route never opens one.
    """
    _, rows = competition_service.get_current_leaderboard(
        engine,
        limit or cfg.leaderboard_default_limit,
        min_ads=cfg.leaderboard_min_ads if min_ads is None else min_ads,
    )
    return [row.to_dict() for row in rows]
