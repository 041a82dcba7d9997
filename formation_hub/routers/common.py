"""
Helpers shared by the routers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from fastapi import Request

from formation_hub.database import get_db
from formation_hub.domain.errors import UnauthorizedError
from formation_hub.domain.models import UserContext


def ctx(request: Request) -> UserContext:
    return getattr(request.state, "user_ctx", None) or UserContext.anonymous()


def require_auth(user_ctx: UserContext) -> str:
    if not user_ctx.is_authenticated:
        raise UnauthorizedError("Authentication required")
    return user_ctx.user_id


async def run_with_db(fn: Callable[..., Any], *args: Any) -> Any:
    """Run ``fn(db, *args)`` in a worker thread with its own session."""
    def _sync():
        db = get_db()
        try:
            return fn(db, *args)
        finally:
            db.close()

    return await asyncio.to_thread(_sync)
