"""
adreward.services.ad_view_service — Ad-View Ledger
===================================================

Append-only log of completed ad playbacks.  Rows are never updated or
deleted; the per-user ``COUNT(*)`` is the authoritative progress figure.

Recording a view also bumps the user's tally in the current competition.
Both writes share one transaction, but the competition update runs in a
SAVEPOINT: if it fails the savepoint is rolled back, the failure is
logged with its stack trace, and the ad-view still commits.  A skipped
increment is repaired by
:func:`~adreward.services.competition_service.reconcile_participants`.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from adreward.constants import DEFAULT_RESET_WEEKDAY, as_utc, isoformat, utcnow
from adreward.database.engine import get_session
from adreward.database.models import AdView, User
from adreward.errors import Unauthorized
from adreward.services import competition_service

logger = logging.getLogger(__name__)


def ad_view_to_dict(view: AdView) -> dict:
    return {
        "id": view.id,
        "user_id": view.user_id,
        "viewed_at": isoformat(view.viewed_at),
    }


def count_ad_views_for(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(AdView).where(AdView.user_id == user_id)
    ) or 0


def record_ad_view(
    engine: Engine,
    user_id: int,
    *,
    now: datetime | None = None,
    reset_weekday: int = DEFAULT_RESET_WEEKDAY,
) -> AdView:
    """Append one ad-view for *user_id* and credit the current competition.

    Duplicate submissions are never rejected; every call is a new view.

    Raises
    ------
    Unauthorized
        If *user_id* doesn't reference an existing user.
    """
    now = as_utc(now) or utcnow()

    # Lazy rollover: opens this week's competition if the last one ended.
    try:
        competition, _ = competition_service.ensure_weekly_competition(
            engine, now=now, reset_weekday=reset_weekday
        )
    except SQLAlchemyError:
        logger.exception("Competition bootstrap failed; recording ad-view only")
        competition = None

    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            raise Unauthorized()

        view = AdView(user_id=user_id, viewed_at=now)
        session.add(view)
        session.flush()

        if competition is not None:
            try:
                with session.begin_nested():  # SAVEPOINT
                    competition_service.record_participation(
                        session, user_id, competition.id, now
                    )
            except SQLAlchemyError:
                # The ad-view stays; reconcile_participants repairs the counter.
                logger.exception(
                    "Competition update failed for user=%s competition=%s view=%s; "
                    "ledger and leaderboard now diverge until reconciliation",
                    user_id, competition.id, view.id,
                )

        logger.info("Ad-view %s recorded for user %s", view.id, user_id)
        return view


def get_ad_views_by_user_id(engine: Engine, user_id: int) -> list[AdView]:
    """All ad-views for *user_id*, oldest first."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(AdView)
            .where(AdView.user_id == user_id)
            .order_by(AdView.viewed_at.asc(), AdView.id.asc())
        ).all())


def count_ad_views(engine: Engine, user_id: int) -> int:
    with get_session(engine) as session:
        return count_ad_views_for(session, user_id)


def count_ad_views_between(
    engine: Engine, user_id: int, start: datetime, end: datetime
) -> int:
    """Ad-views for *user_id* inside the closed window ``[start, end]``."""
    with get_session(engine) as session:
        return session.scalar(
            select(func.count())
            .select_from(AdView)
            .where(
                AdView.user_id == user_id,
                AdView.viewed_at >= as_utc(start),
                AdView.viewed_at <= as_utc(end),
            )
        ) or 0
