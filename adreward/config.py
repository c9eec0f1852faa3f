"""
adreward.config — YAML Configuration Loader
============================================

This module reads ``config.yaml`` for **product tuning** (qualification
threshold, competition reset day, leaderboard defaults, admin policy).
Secrets and infrastructure (``DATABASE_URL``, ``JWT_SECRET``) stay in the
environment / ``.env``.

Usage::

    from adreward.config import load_config

    cfg = load_config()                   # reads ./config.yaml by default
    print(cfg.qualification_threshold)    # 4
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from adreward.constants import (
    DEFAULT_LEADERBOARD_LIMIT,
    DEFAULT_QUALIFICATION_THRESHOLD,
    DEFAULT_RESET_WEEKDAY,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AdRewardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Qualification
    qualification_threshold: int = DEFAULT_QUALIFICATION_THRESHOLD

    # Competitions
    competition_reset_weekday: int = DEFAULT_RESET_WEEKDAY  # Monday == 0
    leaderboard_default_limit: int = DEFAULT_LEADERBOARD_LIMIT
    leaderboard_min_ads: int = 0

    # Auth
    token_ttl_hours: int = 12

    # Admin policy: when disabled, any signed-in user counts as admin
    enforce_admin_role: bool = False
    admin_usernames: tuple[str, ...] = field(default_factory=tuple)

    def is_admin(self, username: str) -> bool:
        """Apply the admin policy to *username*."""
        if not self.enforce_admin_role:
            return True
        return username in self.admin_usernames


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> AdRewardConfig:
    """Read *path* and return an :class:`AdRewardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``ADREWARD_CONFIG`` env var, then ``config.yaml`` in the current
        working directory.  A missing file yields the built-in defaults.

    Raises
    ------
    ValueError
        If a value is out of range (threshold < 1, weekday outside 0..6).
    """
    config_path = Path(path or os.getenv("ADREWARD_CONFIG", "config.yaml"))
    if not config_path.exists():
        logger.warning(
            "Configuration file not found: %s, using defaults", config_path.resolve()
        )
        return AdRewardConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = AdRewardConfig(
        qualification_threshold=int(
            raw.get("qualification_threshold", DEFAULT_QUALIFICATION_THRESHOLD)
        ),
        competition_reset_weekday=int(
            raw.get("competition_reset_weekday", DEFAULT_RESET_WEEKDAY)
        ),
        leaderboard_default_limit=int(
            raw.get("leaderboard_default_limit", DEFAULT_LEADERBOARD_LIMIT)
        ),
        leaderboard_min_ads=int(raw.get("leaderboard_min_ads", 0)),
        token_ttl_hours=int(raw.get("token_ttl_hours", 12)),
        enforce_admin_role=bool(raw.get("enforce_admin_role", False)),
        admin_usernames=tuple(str(u) for u in raw.get("admin_usernames") or ()),
    )

    if cfg.qualification_threshold < 1:
        raise ValueError("qualification_threshold must be at least 1")
    if not 0 <= cfg.competition_reset_weekday <= 6:
        raise ValueError("competition_reset_weekday must be between 0 and 6")

    logger.info(
        "Loaded %s (threshold=%d, reset_weekday=%d)",
        config_path, cfg.qualification_threshold, cfg.competition_reset_weekday,
    )
    return cfg
