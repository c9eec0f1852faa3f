"""
tests/test_ad_view_service.py — Ad-View Ledger
===============================================
Service-level tests for record_ad_view(): ledger append, competition
credit, lazy weekly rollover, and tolerance of competition failures.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from conftest import MIDWEEK
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from adreward.database.models import AdView, Competition
from adreward.errors import Unauthorized
from adreward.services import ad_view_service, competition_service


class TestRecordAdView:
    def test_appends_to_ledger(self, db_engine, make_user):
        user = make_user()
        view = ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        assert view.id is not None
        assert view.user_id == user.id
        assert ad_view_service.count_ad_views(db_engine, user.id) == 1

    def test_duplicates_are_separate_views(self, db_engine, make_user):
        user = make_user()
        a = ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        b = ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        assert a.id != b.id
        assert ad_view_service.count_ad_views(db_engine, user.id) == 2

    def test_unknown_user_is_rejected(self, db_engine):
        with pytest.raises(Unauthorized):
            ad_view_service.record_ad_view(db_engine, 404, now=MIDWEEK)
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(AdView)) == 0

    def test_credits_current_competition(self, db_engine, make_user):
        user = make_user()
        for _ in range(3):
            ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)

        competition = competition_service.get_current_competition(db_engine, MIDWEEK)
        participant = competition_service.get_participant(
            db_engine, user.id, competition.id
        )
        assert participant.ads_watched == 3

    def test_lazily_opens_next_week(self, db_engine, make_user):
        user = make_user()
        ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        next_week = MIDWEEK + timedelta(days=7)
        ad_view_service.record_ad_view(db_engine, user.id, now=next_week)

        with Session(db_engine) as session:
            competitions = session.scalars(
                select(Competition).order_by(Competition.start_date)
            ).all()
        assert len(competitions) == 2
        assert [c.is_active for c in competitions] == [False, True]

        current = competition_service.get_current_competition(db_engine, next_week)
        participant = competition_service.get_participant(db_engine, user.id, current.id)
        assert participant.ads_watched == 1

    def test_competition_failure_keeps_the_view(self, db_engine, make_user, caplog):
        user = make_user()
        with patch.object(
            competition_service,
            "record_participation",
            side_effect=OperationalError("UPDATE", {}, Exception("boom")),
        ):
            view = ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)

        assert view.id is not None
        assert ad_view_service.count_ad_views(db_engine, user.id) == 1
        assert "Competition update failed" in caplog.text

        competition = competition_service.get_current_competition(db_engine, MIDWEEK)
        assert competition_service.get_participant(
            db_engine, user.id, competition.id
        ) is None

    def test_bootstrap_failure_keeps_the_view(self, db_engine, make_user):
        user = make_user()
        with patch.object(
            competition_service,
            "ensure_weekly_competition",
            side_effect=OperationalError("INSERT", {}, Exception("boom")),
        ):
            ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        assert ad_view_service.count_ad_views(db_engine, user.id) == 1


class TestReads:
    def test_views_are_user_scoped_and_ordered(self, db_engine, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        ad_view_service.record_ad_view(db_engine, alice.id, now=MIDWEEK)
        ad_view_service.record_ad_view(db_engine, bob.id, now=MIDWEEK)
        ad_view_service.record_ad_view(
            db_engine, alice.id, now=MIDWEEK + timedelta(minutes=5)
        )

        views = ad_view_service.get_ad_views_by_user_id(db_engine, alice.id)
        assert [v.user_id for v in views] == [alice.id, alice.id]
        assert views[0].viewed_at <= views[1].viewed_at

    def test_count_between(self, db_engine, make_user):
        user = make_user()
        ad_view_service.record_ad_view(db_engine, user.id, now=MIDWEEK)
        ad_view_service.record_ad_view(
            db_engine, user.id, now=MIDWEEK + timedelta(days=7)
        )
        assert ad_view_service.count_ad_views_between(
            db_engine, user.id, MIDWEEK - timedelta(hours=1), MIDWEEK + timedelta(hours=1)
        ) == 1

    def test_no_views(self, db_engine, make_user):
        user = make_user()
        assert ad_view_service.get_ad_views_by_user_id(db_engine, user.id) == []
        assert ad_view_service.count_ad_views(db_engine, user.id) == 0
