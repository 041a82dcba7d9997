"""
Search endpoint.

GET /api/search?q=<name>&tags=<a,b>&characters=<hero,hero>
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from formation_hub import config, formations
from formation_hub.api.schemas import FormationListResponse
from formation_hub.rate_limiter import enforce_rate_limit
from formation_hub.routers.common import run_with_db

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("", response_model=FormationListResponse)
async def search(
    request: Request,
    q: Optional[str] = Query(None, max_length=100, description="Substring of the formation name"),
    tags: Optional[str] = Query(None, description="Comma-separated tags; all must match"),
    characters: Optional[str] = Query(None, description="Comma-separated hero names; all must be present"),
):
    enforce_rate_limit(request, "search", config.SEARCH_RATE_LIMIT_PER_MINUTE)
    rows = await run_with_db(formations.search_formations, q, tags, characters)
    return FormationListResponse(count=len(rows), formations=rows)
