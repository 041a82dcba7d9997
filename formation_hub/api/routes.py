"""
Formation Hub — centralised router registration.

This module is the single place where every APIRouter is mounted onto the
FastAPI application.  Call ``register_routes(app)`` once from
``formation_hub.app``.
"""

from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter, FastAPI

from formation_hub import __version__
from formation_hub.api.schemas import HealthResponse
from formation_hub.cache_backend import get_cache_backend
from formation_hub.metrics import metrics_snapshot

logger = logging.getLogger(__name__)

_START_TIME: float = time.time()

system_router = APIRouter(prefix="/api", tags=["system"])


def _db_status() -> str:
    from formation_hub.database import check_connection, get_db

    db = get_db()
    try:
        check_connection(db)
        return "ok"
    except Exception as exc:
        logger.error("Health check: database unavailable: %s", exc)
        return f"error: {exc}"
    finally:
        db.close()


@system_router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check():
    db_status = await asyncio.to_thread(_db_status)
    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        version=__version__,
        db=db_status,
        cache_backend=get_cache_backend().backend,
        uptime_seconds=round(time.time() - _START_TIME, 1),
        metrics=metrics_snapshot(),
    )


def register_routes(app: FastAPI) -> None:
    """Mount all routers onto ``app``."""
    from formation_hub import auth
    from formation_hub.routers import formations, roster, search

    app.include_router(auth.router)
    app.include_router(formations.router)
    app.include_router(search.router)
    app.include_router(roster.router)
    app.include_router(system_router)

    logger.info("Routes registered: %d total endpoints", len(app.routes))
