"""
adreward.api.auth — Registration, login and bearer tokens
==========================================================

Sessions are stateless JWTs: ``/login`` and ``/register`` hand one back,
the client sends it as ``Authorization: Bearer <token>``, and ``/logout``
is an acknowledgement (the client discards the token).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adreward.api.deps import (
    create_access_token,
    get_config,
    get_current_user,
    get_engine,
)
from adreward.config import AdRewardConfig
from adreward.database.engine import run_db
from adreward.database.models import User
from adreward.errors import Unauthorized
from adreward.services import identity_service
from adreward.services.identity_service import user_to_dict

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    username: str
    password: str


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    """Create an account and sign it in."""
    user = await run_db(
        identity_service.create_user, engine, body.username, body.email, body.password
    )
    return {
        "user": user_to_dict(user),
        "token": create_access_token(user, cfg.token_ttl_hours),
    }


@router.post("/login")
async def login(
    body: LoginRequest,
    engine=Depends(get_engine),
    cfg: AdRewardConfig = Depends(get_config),
):
    user = await run_db(identity_service.authenticate, engine, body.username, body.password)
    if user is None:
        raise Unauthorized("Invalid username or password")
    logger.info("User %s signed in", user.id)
    return {
        "user": user_to_dict(user),
        "token": create_access_token(user, cfg.token_ttl_hours),
    }


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    logger.info("User %s signed out", user.id)
    return {"ok": True}


@router.get("/user")
def current_user(user: User = Depends(get_current_user)):
    return user_to_dict(user)
