"""
adreward.engine.windows — Competition window calendar
======================================================

Pure date math for weekly competitions.  All values are UTC.

A window opens at 00:00 on the reset weekday and closes one microsecond
before the next reset.  Consecutive windows are contiguous and never
overlap, so every ad-view belongs to exactly one week.

NOTE: the legacy Node service closed each week at 23:59:59.999 on the
*next* reset day, giving 8-day windows that overlap by one day.  That
would credit a single view to two competitions; the contiguous boundary
is pending product sign-off (see DESIGN.md, "Window boundaries").

A competition ended early by an admin keeps its truncated ``end_date``
and the replacement opens one :data:`TICK` later (see
``competition_service.ensure_weekly_competition``).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from adreward.constants import COMPETITION_NAME_FORMAT, DEFAULT_RESET_WEEKDAY, as_utc

__all__ = ["TICK", "competition_name", "contains", "week_window"]

_WEEK = timedelta(days=7)
TICK = timedelta(microseconds=1)


def week_window(
    now: datetime, reset_weekday: int = DEFAULT_RESET_WEEKDAY
) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` of the week containing *now*.

    *start* is the most recent *reset_weekday* at 00:00 (today if *now*
    falls on it); *end* is 23:59:59.999999 on the day before the next one.
    """
    if not 0 <= reset_weekday <= 6:
        raise ValueError(f"reset_weekday must be 0..6, got {reset_weekday}")

    now = as_utc(now)
    days_since_reset = (now.weekday() - reset_weekday) % 7
    start = (now - timedelta(days=days_since_reset)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return start, start + _WEEK - TICK


def contains(start: datetime, end: datetime, moment: datetime) -> bool:
    """True if *moment* lies inside the closed window ``[start, end]``."""
    return as_utc(start) <= as_utc(moment) <= as_utc(end)


def competition_name(start: datetime) -> str:
    return COMPETITION_NAME_FORMAT.format(start=as_utc(start))
