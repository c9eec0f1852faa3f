"""
adreward.api.routes.admin — Admin endpoints (JWT‑protected)
============================================================

``/admin/qualified-users`` hands the admin flag to the service, which
rejects non-admins itself; the remaining routes are gated by
:func:`require_admin`.  Both follow ``enforce_admin_role`` in
``config.yaml``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from adreward.api.deps import get_config, get_engine, get_is_admin, require_admin
from adreward.config import AdRewardConfig
from adreward.database.models import User
from adreward.errors import NotFound, ValidationError
from adreward.services import competition_service, reward_service
from adreward.services.competition_service import competition_to_dict
from adreward.services.identity_service import user_to_dict
from adreward.services.log_buffer import (
    VALID_LEVELS,
    get_capture_level,
    get_logs,
    set_capture_level,
)
from adreward.services.reward_service import reward_to_dict

router = APIRouter(prefix="/admin", tags=["admin"])


class LogLevelUpdate(BaseModel):
    level: str = ""


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------
@router.get("/qualified-users")
def list_qualified_users(
    is_admin: bool = Depends(get_is_admin),
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    users = reward_service.get_qualified_users(
        engine, is_admin=is_admin, threshold=cfg.qualification_threshold
    )
    return [user_to_dict(u) for u in users]


@router.post("/rewards/{user_id}/fulfil")
def fulfil_reward(
    user_id: int,
    admin: User = Depends(require_admin),
    engine=Depends(get_engine),
):
    """Mark a user's reward as delivered."""
    reward = reward_service.mark_reward_claimed(engine, user_id)
    if reward is None:
        raise NotFound("No reward found")
    return reward_to_dict(reward)


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------
@router.post("/competition/reconcile")
def reconcile_competition(
    competition_id: int | None = Query(None),
    admin: User = Depends(require_admin),
    engine=Depends(get_engine),
):
    """Rebuild participant counters from the ad-view ledger."""
    return competition_service.reconcile_participants(engine, competition_id)


@router.post("/competition/{competition_id}/end")
def end_competition(
    competition_id: int,
    admin: User = Depends(require_admin),
    engine=Depends(get_engine),
):
    competition = competition_service.end_competition(engine, competition_id)
    if competition is None:
        raise NotFound("Competition not found")
    return competition_to_dict(competition)


# ---------------------------------------------------------------------------
# Live logs
# ---------------------------------------------------------------------------
@router.get("/logs")
def get_live_logs(
    tail: int = Query(200, ge=1, le=5000),
    level: str | None = Query(None),
    logger_prefix: str | None = Query(None, alias="logger"),
    admin: User = Depends(require_admin),
):
    """Return recent log entries from the in-memory ring buffer."""
    entries = get_logs(tail=tail, level=level, logger_prefix=logger_prefix)
    return {
        "entries": entries,
        "total": len(entries),
        "capture_level": get_capture_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def change_log_level(
    body: LogLevelUpdate,
    admin: User = Depends(require_admin),
):
    """Change the capture level of the ring-buffer handler on-the-fly."""
    try:
        new_level = set_capture_level(body.level)
    except ValueError:
        raise ValidationError(
            f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}"
        ) from None
    return {"level": new_level}
