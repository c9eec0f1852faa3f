"""
adreward.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn adreward.api.main:app --reload --port 5000

or ``python -m adreward``.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from adreward.api.auth import router as auth_router  # noqa: E402
from adreward.api.deps import get_config, get_engine  # noqa: E402
from adreward.api.routes.ad_views import router as ad_views_router  # noqa: E402
from adreward.api.routes.admin import router as admin_router  # noqa: E402
from adreward.api.routes.public import router as public_router  # noqa: E402
from adreward.api.routes.rewards import router as rewards_router  # noqa: E402
from adreward.database.engine import init_db  # noqa: E402
from adreward.errors import AdRewardError  # noqa: E402
from adreward.services.log_buffer import install_handler  # noqa: E402

logger = logging.getLogger(__name__)

_MAX_LOG_LINE = 80


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables and open this week."""
    # Uvicorn reconfigures logging when it starts, so attach here.
    install_handler()

    # Tests swap the engine/config through dependency_overrides.
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    cfg = app.dependency_overrides.get(get_config, get_config)()
    init_db(engine, reset_weekday=cfg.competition_reset_weekday)
    logger.info("AdReward API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("AdReward API shutting down")


app = FastAPI(
    title="AdReward API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering: every failure is {"message": ...}
# ---------------------------------------------------------------------------
@app.exception_handler(AdRewardError)
async def _domain_error(request: Request, exc: AdRewardError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


# ---------------------------------------------------------------------------
# Request log
# ---------------------------------------------------------------------------
@app.middleware("http")
async def _log_api_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    path = request.url.path
    if path.startswith("/api"):
        elapsed_ms = (time.perf_counter() - start) * 1000
        line = f"{request.method} {path} {response.status_code} in {elapsed_ms:.0f}ms"
        if len(line) > _MAX_LOG_LINE:
            line = line[: _MAX_LOG_LINE - 1] + "…"
        logger.info(line)
    return response


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(ad_views_router, prefix="/api")
app.include_router(rewards_router, prefix="/api")
app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
