"""
adreward.api.deps — FastAPI dependency injection
=================================================

Engine/config singletons, bearer-token issuing, and the
``get_current_user`` guard every authenticated route depends on.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from adreward.config import AdRewardConfig, load_config
from adreward.database.engine import create_db_engine
from adreward.database.models import User
from adreward.errors import Forbidden, Unauthorized
from adreward.services import identity_service

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "adreward-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> AdRewardConfig:
    return load_config()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def create_access_token(user: User, ttl_hours: int = 12) -> str:
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> User:
    """Validate the bearer token and return the signed-in user."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        user_id = int(payload["sub"])
    except (InvalidTokenError, KeyError, ValueError):
        raise Unauthorized() from None

    user = identity_service.get_user(engine, user_id)
    if user is None:
        raise Unauthorized()
    return user


def get_is_admin(
    user: User = Depends(get_current_user),
    cfg: AdRewardConfig = Depends(get_config),
) -> bool:
    """The admin capability flag handed to admin-scoped services."""
    return cfg.is_admin(user.username)


def require_admin(
    user: User = Depends(get_current_user),
    is_admin: bool = Depends(get_is_admin),
) -> User:
    if not is_admin:
        logger.warning("Non-admin %s denied admin route", user.username)
        raise Forbidden("Admin access required")
    return user
