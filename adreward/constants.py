"""
adreward.constants — Shared Constants & Helpers
================================================

Single source of truth for product defaults and the UTC time helpers.
Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Qualification
# ---------------------------------------------------------------------------
# The claim path historically required 4 ads while the admin report used 5.
# One value now drives both; the product owner still has to confirm it.
DEFAULT_QUALIFICATION_THRESHOLD = 4

# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------
SUNDAY = 6  # datetime.weekday() numbering, Monday == 0
DEFAULT_RESET_WEEKDAY = SUNDAY
COMPETITION_NAME_FORMAT = "Weekly Competition {start:%Y-%m-%d}"

DEFAULT_LEADERBOARD_LIMIT = 100
MAX_LEADERBOARD_LIMIT = 500

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 100
MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    """Return the current aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite.

    SQLite drops tzinfo on storage; every timestamp we write is UTC, so a
    naive value coming back is UTC by construction.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat(value: datetime | None) -> str | None:
    """Serialize a stored timestamp as an ISO-8601 UTC string."""
    value = as_utc(value)
    return value.isoformat() if value else None
