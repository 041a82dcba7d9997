"""
Formation endpoints.

Routes:
    GET    /api/formations/popular       most voted formations
    GET    /api/formations/mine          the signed-in user's formations
    GET    /api/formations/{id}          one formation
    POST   /api/formations               create
    PUT    /api/formations/{id}          update (owner only)
    DELETE /api/formations/{id}          delete (owner only)
    POST   /api/formations/{id}/vote     upvote
    DELETE /api/formations/{id}/vote     remove upvote
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from formation_hub import config, formations
from formation_hub.api.schemas import (
    FormationCreatedResponse,
    FormationListResponse,
    StatusResponse,
    VoteResponse,
)
from formation_hub.domain.models import FormationCreate, FormationData
from formation_hub.rate_limiter import enforce_rate_limit
from formation_hub.routers.common import ctx, require_auth, run_with_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/formations", tags=["formations"])


@router.get("/popular", response_model=FormationListResponse)
async def popular_formations(
    limit: int = Query(config.POPULAR_DEFAULT_LIMIT, ge=1, le=100),
):
    rows = await run_with_db(formations.most_popular_formations, limit)
    return FormationListResponse(count=len(rows), formations=rows)


@router.get("/mine", response_model=FormationListResponse)
async def my_formations(request: Request):
    user_id = require_auth(ctx(request))
    rows = await run_with_db(formations.get_formations_for_user_id, user_id)
    return FormationListResponse(count=len(rows), formations=rows)


@router.get("/{formation_id}", response_model=FormationData)
async def get_formation(formation_id: int):
    formation = await run_with_db(formations.get_formation, formation_id)
    if formation is None:
        raise HTTPException(status_code=404, detail="Formation not found")
    return formation


@router.post("", response_model=FormationCreatedResponse, status_code=201)
async def create_formation(request: Request, body: FormationCreate):
    user_id = require_auth(ctx(request))
    new_id = await run_with_db(formations.create_formation, user_id, body)
    return FormationCreatedResponse(id=str(new_id))


@router.put("/{formation_id}", response_model=StatusResponse)
async def update_formation(request: Request, formation_id: int, body: FormationCreate):
    user_id = require_auth(ctx(request))
    await run_with_db(formations.update_formation, user_id, formation_id, body)
    return StatusResponse()


@router.delete("/{formation_id}", response_model=StatusResponse)
async def delete_formation(request: Request, formation_id: int):
    user_id = require_auth(ctx(request))
    await run_with_db(formations.delete_formation, user_id, formation_id)
    return StatusResponse()


@router.post("/{formation_id}/vote", response_model=VoteResponse)
async def vote(request: Request, formation_id: int):
    user_id = require_auth(ctx(request))
    enforce_rate_limit(request, "vote", config.VOTE_RATE_LIMIT_PER_MINUTE)
    votes = await run_with_db(formations.vote_formation, user_id, formation_id)
    return VoteResponse(formation_id=formation_id, votes=votes, voted=True)


@router.delete("/{formation_id}/vote", response_model=VoteResponse)
async def unvote(request: Request, formation_id: int):
    user_id = require_auth(ctx(request))
    enforce_rate_limit(request, "vote", config.VOTE_RATE_LIMIT_PER_MINUTE)
    votes = await run_with_db(formations.unvote_formation, user_id, formation_id)
    return VoteResponse(formation_id=formation_id, votes=votes, voted=False)
