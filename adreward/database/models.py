"""
adreward.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users                    — Registered accounts (identity store)
- ad_views                 — Append-only ad playback ledger
- competitions             — Weekly leaderboard windows
- competition_participants — Per-user aggregate inside one competition
- rewards                  — One reward claim per user

Every multi-entity invariant is backed by a storage-level constraint so
concurrent requests race on the database, not on application checks:

* ``uq_participants_competition_user`` — one participant row per pair.
* ``uq_rewards_user_id`` — one reward per user.
* ``ix_competitions_single_active`` — at most one ``is_active`` competition.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from adreward.constants import utcnow


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all adreward ORM models."""


# ---------------------------------------------------------------------------
# Users — identity store
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    ad_views: Mapped[list[AdView]] = relationship(back_populates="user")
    reward: Mapped[Reward | None] = relationship(
        back_populates="user", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# AdView — append-only ledger, never updated or deleted
# ---------------------------------------------------------------------------
class AdView(Base):
    __tablename__ = "ad_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped[User] = relationship(back_populates="ad_views")

    __table_args__ = (
        Index("ix_ad_views_user_time", "user_id", "viewed_at"),
    )

    def __repr__(self) -> str:
        return f"<AdView id={self.id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Competition — weekly leaderboard window
# ---------------------------------------------------------------------------
class Competition(Base):
    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    participants: Mapped[list[CompetitionParticipant]] = relationship(
        back_populates="competition"
    )

    __table_args__ = (
        # Partial unique index: the bootstrap insert races here instead of
        # on a SELECT-then-INSERT.
        Index(
            "ix_competitions_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_competitions_end_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<Competition id={self.id} name={self.name!r} active={self.is_active}>"


# ---------------------------------------------------------------------------
# CompetitionParticipant — per-user aggregate within one competition
# ---------------------------------------------------------------------------
class CompetitionParticipant(Base):
    __tablename__ = "competition_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competitions.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    ads_watched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    competition: Mapped[Competition] = relationship(back_populates="participants")
    user: Mapped[User] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "competition_id", "user_id", name="uq_participants_competition_user"
        ),
        Index("ix_participants_competition_ads", "competition_id", "ads_watched"),
    )

    def __repr__(self) -> str:
        return (
            f"<CompetitionParticipant competition={self.competition_id} "
            f"user={self.user_id} ads={self.ads_watched}>"
        )


# ---------------------------------------------------------------------------
# Reward — at most one per user
# ---------------------------------------------------------------------------
class Reward(Base):
    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped[User] = relationship(back_populates="reward")

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_rewards_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Reward id={self.id} user={self.user_id} claimed={self.claimed}>"
