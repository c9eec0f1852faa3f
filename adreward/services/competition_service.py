"""
adreward.services.competition_service — Weekly Competition Tracker
===================================================================

Owns the ``competitions`` and ``competition_participants`` tables.

* :func:`ensure_weekly_competition` — the single idempotent bootstrap.
  Runs at startup and lazily before each ad-view.
* :func:`record_participation` — atomic per-(competition, user) increment,
  executed inside the caller's ad-view transaction.
* :func:`get_leaderboard` — ranked participants.
* :func:`reconcile_participants` — rebuilds counters from the ad-view
  ledger when a tolerated partial failure left them behind.

No check-then-act sequence is trusted on its own: the single-active
partial index and the (competition, user) unique constraint are the
arbiters; ``IntegrityError`` inside a SAVEPOINT is the signal that a
concurrent writer won.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from adreward.constants import (
    DEFAULT_LEADERBOARD_LIMIT,
    DEFAULT_RESET_WEEKDAY,
    as_utc,
    isoformat,
    utcnow,
)
from adreward.database.engine import get_session
from adreward.database.models import AdView, Competition, CompetitionParticipant, User
from adreward.engine.windows import TICK, competition_name, week_window

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    rank: int
    participant_id: int
    user_id: int
    username: str
    ads_watched: int
    last_active: datetime

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "id": self.participant_id,
            "user_id": self.user_id,
            "username": self.username,
            "ads_watched": self.ads_watched,
            "last_active": isoformat(self.last_active),
        }


def competition_to_dict(competition: Competition | None) -> dict | None:
    if competition is None:
        return None
    return {
        "id": competition.id,
        "name": competition.name,
        "start_date": isoformat(competition.start_date),
        "end_date": isoformat(competition.end_date),
        "is_active": competition.is_active,
        "created_at": isoformat(competition.created_at),
    }


# ---------------------------------------------------------------------------
# Session-level helpers (compose inside a caller's transaction)
# ---------------------------------------------------------------------------
def current_competition(session: Session, now: datetime) -> Competition | None:
    """The active, non-expired competition at *now*.

    Expiry comes from ``end_date``; the ``is_active`` flag alone is never
    trusted.  Newest window wins if stale rows were left active.
    """
    return session.scalar(
        select(Competition)
        .where(Competition.is_active.is_(True), Competition.end_date > now)
        .order_by(Competition.start_date.desc(), Competition.id.desc())
        .limit(1)
    )


def _increment(
    session: Session, user_id: int, competition_id: int, now: datetime
) -> int:
    result = session.execute(
        update(CompetitionParticipant)
        .where(
            CompetitionParticipant.competition_id == competition_id,
            CompetitionParticipant.user_id == user_id,
        )
        .values(
            ads_watched=CompetitionParticipant.ads_watched + 1,
            last_active=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def record_participation(
    session: Session,
    user_id: int,
    competition_id: int,
    now: datetime | None = None,
) -> CompetitionParticipant:
    """Add one ad to the user's tally in *competition_id*.

    Upsert without read-modify-write: an atomic ``ads_watched + 1`` UPDATE
    first; if no row exists, INSERT with ``ads_watched = 1`` inside a
    SAVEPOINT.  Losing the insert race to a concurrent request raises
    ``IntegrityError`` on the unique pair, after which the UPDATE path is
    guaranteed to find the winner's row.
    """
    now = as_utc(now) or utcnow()

    if _increment(session, user_id, competition_id, now) == 0:
        try:
            with session.begin_nested():  # SAVEPOINT
                session.add(CompetitionParticipant(
                    competition_id=competition_id,
                    user_id=user_id,
                    ads_watched=1,
                    last_active=now,
                ))
                session.flush()
        except IntegrityError:
            logger.debug(
                "Participant insert raced for user=%s competition=%s, incrementing",
                user_id, competition_id,
            )
            _increment(session, user_id, competition_id, now)

    return session.scalars(
        select(CompetitionParticipant)
        .where(
            CompetitionParticipant.competition_id == competition_id,
            CompetitionParticipant.user_id == user_id,
        )
        .execution_options(populate_existing=True)
    ).one()


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------
def ensure_weekly_competition(
    engine: Engine,
    *,
    now: datetime | None = None,
    reset_weekday: int = DEFAULT_RESET_WEEKDAY,
) -> tuple[Competition, bool]:
    """Return the current competition, creating this week's if none exists.

    Returns ``(competition, created)``.  Idempotent and safe to call
    concurrently:

    1. Expired rows still flagged active are retired so the single-active
       index admits a new week.
    2. If a current competition exists it is returned untouched.
    3. Otherwise a row for the computed window is inserted in a SAVEPOINT;
       a concurrent winner surfaces as ``IntegrityError`` and its row is
       returned instead.  If this week's competition was ended early, the
       new window starts one tick after the ended one.
    """
    now = as_utc(now) or utcnow()

    with get_session(engine) as session:
        retired = session.execute(
            update(Competition)
            .where(Competition.is_active.is_(True), Competition.end_date <= now)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        ).rowcount
        if retired:
            logger.info("Retired %d expired competition(s)", retired)

        existing = current_competition(session, now)
        if existing is not None:
            return existing, False

        start, end = week_window(now, reset_weekday)
        ended_early = session.scalar(
            select(Competition)
            .where(Competition.end_date >= start, Competition.end_date < now)
            .order_by(Competition.end_date.desc())
            .limit(1)
        )
        if ended_early is not None:
            # Resume the week after the ended window so no view is in both.
            start = as_utc(ended_early.end_date) + TICK

        competition = Competition(
            name=competition_name(start),
            start_date=start,
            end_date=end,
            is_active=True,
            created_at=now,
        )
        try:
            with session.begin_nested():  # SAVEPOINT
                session.add(competition)
                session.flush()
        except IntegrityError:
            winner = current_competition(session, now)
            if winner is None:
                raise
            logger.info("Competition %s was created concurrently", winner.id)
            return winner, False

        logger.info(
            "Created %r (%s → %s)", competition.name,
            isoformat(competition.start_date), isoformat(competition.end_date),
        )
        return competition, True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_current_competition(
    engine: Engine, now: datetime | None = None
) -> Competition | None:
    with get_session(engine) as session:
        return current_competition(session, as_utc(now) or utcnow())


def get_competition_by_id(engine: Engine, competition_id: int) -> Competition | None:
    with get_session(engine) as session:
        return session.get(Competition, competition_id)


def get_participant(
    engine: Engine, user_id: int, competition_id: int
) -> CompetitionParticipant | None:
    with get_session(engine) as session:
        return session.scalar(
            select(CompetitionParticipant).where(
                CompetitionParticipant.competition_id == competition_id,
                CompetitionParticipant.user_id == user_id,
            )
        )


def get_leaderboard(
    engine: Engine,
    competition_id: int,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    *,
    min_ads: int = 0,
) -> list[LeaderboardRow]:
    """Participants of *competition_id* ranked by ``ads_watched``.

    Ties break by participant id, i.e. whoever joined the week first.
    """
    with get_session(engine) as session:
        query = (
            select(CompetitionParticipant, User.username)
            .join(User, CompetitionParticipant.user_id == User.id)
            .where(CompetitionParticipant.competition_id == competition_id)
        )
        if min_ads > 0:
            query = query.where(CompetitionParticipant.ads_watched >= min_ads)
        rows = session.execute(
            query.order_by(
                CompetitionParticipant.ads_watched.desc(),
                CompetitionParticipant.id.asc(),
            ).limit(limit)
        ).all()

    return [
        LeaderboardRow(
            rank=i + 1,
            participant_id=p.id,
            user_id=p.user_id,
            username=username,
            ads_watched=p.ads_watched,
            last_active=p.last_active,
        )
        for i, (p, username) in enumerate(rows)
    ]


def get_current_leaderboard(
    engine: Engine,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    *,
    min_ads: int = 0,
    now: datetime | None = None,
) -> tuple[Competition | None, list[LeaderboardRow]]:
    """Leaderboard of the current competition; empty when none is running."""
    competition = get_current_competition(engine, now)
    if competition is None:
        return None, []
    return competition, get_leaderboard(
        engine, competition.id, limit, min_ads=min_ads
    )


# ---------------------------------------------------------------------------
# Admin mutations
# ---------------------------------------------------------------------------
def end_competition(
    engine: Engine, competition_id: int, *, now: datetime | None = None
) -> Competition | None:
    """Deactivate a competition early.  Returns ``None`` if it doesn't exist.

    ``end_date`` is pulled back to just before *now* so the window only
    covers views it was actually credited with; views from *now* on go
    to the replacement competition.
    """
    now = as_utc(now) or utcnow()

    with get_session(engine) as session:
        competition = session.get(Competition, competition_id)
        if competition is None:
            return None
        competition.is_active = False
        start = as_utc(competition.start_date)
        end = as_utc(competition.end_date)
        competition.end_date = max(start, min(end, now - TICK))
        logger.info(
            "Ended competition %s at %s", competition_id, isoformat(competition.end_date)
        )
        return competition


def _lock_participants(session: Session) -> None:
    """Hold off participant writers until the caller's transaction ends.

    Writers that already touched the table finish first, so a COUNT taken
    afterwards includes their views; later writers add on top of the
    rebuilt value.  SQLite writers are already serialized by
    ``BEGIN IMMEDIATE``.
    """
    if session.get_bind().dialect.name == "postgresql":
        session.execute(text(
            f"LOCK TABLE {CompetitionParticipant.__tablename__} "
            "IN SHARE ROW EXCLUSIVE MODE"
        ))


def reconcile_participants(
    engine: Engine, competition_id: int | None = None
) -> dict:
    """Rebuild ``ads_watched`` for one competition from the ad-view ledger.

    Defaults to the current competition.  Returns
    ``{"competition_id", "checked", "corrected", "corrections"}``.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        # Before the COUNT, or a concurrent +1 would be overwritten.
        _lock_participants(session)

        if competition_id is None:
            competition = current_competition(session, utcnow())
        else:
            competition = session.get(Competition, competition_id)
        if competition is None:
            return {
                "competition_id": competition_id,
                "checked": 0,
                "corrected": 0,
                "corrections": [],
            }

        # Ground truth: COUNT(*) per user within the window
        truth_rows = session.execute(
            select(AdView.user_id, func.count().label("actual"))
            .where(
                AdView.viewed_at >= competition.start_date,
                AdView.viewed_at <= competition.end_date,
            )
            .group_by(AdView.user_id)
        ).all()
        truth: dict[int, int] = {row.user_id: row.actual for row in truth_rows}

        participants: dict[int, CompetitionParticipant] = {
            p.user_id: p
            for p in session.scalars(
                select(CompetitionParticipant).where(
                    CompetitionParticipant.competition_id == competition.id
                )
            ).all()
        }

        checked = 0
        for user_id in sorted(truth.keys() | participants.keys()):
            checked += 1
            actual = truth.get(user_id, 0)
            participant = participants.get(user_id)
            stored = participant.ads_watched if participant else 0
            if stored == actual:
                continue

            corrections.append({
                "user_id": user_id,
                "stored": stored,
                "actual": actual,
                "diff": actual - stored,
            })
            if participant is None:
                session.add(CompetitionParticipant(
                    competition_id=competition.id,
                    user_id=user_id,
                    ads_watched=actual,
                ))
            else:
                participant.ads_watched = actual

        result_id = competition.id

    if corrections:
        logger.warning(
            "Participant reconciliation: corrected %d/%d counters in competition %s: %s",
            len(corrections), checked, result_id, corrections,
        )
    else:
        logger.info(
            "Participant reconciliation: all %d counters match in competition %s",
            checked, result_id,
        )

    return {
        "competition_id": result_id,
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
    }
