"""
adreward.services.identity_service — Users & Password Hashing
==============================================================

Registration and credential checks backing the ``/api/register`` and
``/api/login`` routes.  Password hashes use salted scrypt and are never
serialized; :func:`user_to_dict` is the only projection routes may return.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError

from adreward.constants import (
    MAX_USERNAME_LENGTH,
    MIN_PASSWORD_LENGTH,
    MIN_USERNAME_LENGTH,
    isoformat,
)
from adreward.database.engine import get_session
from adreward.database.models import User
from adreward.errors import ValidationError
from adreward.services.reward_service import validate_email

logger = logging.getLogger(__name__)

# scrypt cost parameters (N, r, p) — ~16 MiB per hash
_SCRYPT_N = 2 ** 14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SALT_BYTES = 16


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    """Return ``scrypt$N$r$p$<salt hex>$<hash hex>``."""
    salt = secrets.token_bytes(_SALT_BYTES)
    digest = hashlib.scrypt(
        password.encode(), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P
    )
    return f"scrypt${_SCRYPT_N}${_SCRYPT_R}${_SCRYPT_P}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, n, r, p, salt_hex, digest_hex = stored.split("$")
    except ValueError:
        return False
    if scheme != "scrypt":
        return False
    digest = hashlib.scrypt(
        password.encode(),
        salt=bytes.fromhex(salt_hex),
        n=int(n),
        r=int(r),
        p=int(p),
    )
    return hmac.compare_digest(digest.hex(), digest_hex)


def user_to_dict(user: User) -> dict:
    """Public projection of a user — never includes the password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": isoformat(user.created_at),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_user(engine: Engine, user_id: int) -> User | None:
    with get_session(engine) as session:
        return session.get(User, user_id)


def get_user_by_username(engine: Engine, username: str) -> User | None:
    with get_session(engine) as session:
        return session.scalar(select(User).where(User.username == username))


def get_user_by_email(engine: Engine, email: str) -> User | None:
    with get_session(engine) as session:
        return session.scalar(select(User).where(User.email == email))


# ---------------------------------------------------------------------------
# Registration / authentication
# ---------------------------------------------------------------------------
def create_user(engine: Engine, username: str, email: str, password: str) -> User:
    """Register a new account.

    Raises
    ------
    ValidationError
        On a short username or password, a malformed email, or a username
        or email that is already taken.
    """
    username = (username or "").strip()
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be at least {MIN_USERNAME_LENGTH} characters"
        )
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be {MAX_USERNAME_LENGTH} characters or less"
        )
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    email = validate_email(email)

    with get_session(engine) as session:
        if session.scalar(select(User.id).where(User.username == username)):
            raise ValidationError("Username already exists")
        if session.scalar(select(User.id).where(User.email == email)):
            raise ValidationError("Email already registered")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
        )
        try:
            with session.begin_nested():  # SAVEPOINT
                session.add(user)
                session.flush()
        except IntegrityError:
            raise ValidationError("Username or email already registered") from None

        logger.info("Registered user %s (%s)", user.id, username)
        return user


def authenticate(engine: Engine, username: str, password: str) -> User | None:
    """Return the user if *password* matches, else ``None``."""
    user = get_user_by_username(engine, (username or "").strip())
    if user is None or not verify_password(password or "", user.password_hash):
        logger.info("Failed login for %r", username)
        return None
    return user
