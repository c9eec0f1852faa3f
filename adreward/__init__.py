"""
AdReward — Ad-watching reward ledger with a weekly competition
===============================================================
Users sign in, watch ads, and claim a one-time reward once their
ad-view count reaches the qualification threshold.  Every ad also
counts toward the running weekly competition leaderboard.

Package layout::

    adreward/
    ├── __main__.py        # python -m adreward → uvicorn
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Defaults + UTC helpers
    ├── errors.py          # Domain exceptions → HTTP status
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session + async helper
    │   └── models.py      # users, ad_views, competitions, participants, rewards
    ├── engine/
    │   ├── qualification.py  # WATCHING / QUALIFIED / CLAIMED
    │   └── windows.py        # Weekly competition windows
    ├── services/
    │   ├── ad_view_service.py      # Ad-view ledger
    │   ├── competition_service.py  # Weekly competitions + leaderboard
    │   ├── reward_service.py       # Reward claims + qualified users
    │   ├── identity_service.py     # Accounts + password hashing
    │   └── log_buffer.py           # In-memory log tail
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Register / login → JWT
        ├── deps.py        # Engine, config, current user
        └── routes/        # Ad-views, rewards, public + admin endpoints
"""

__version__ = "0.1.0"
