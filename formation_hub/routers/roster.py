"""
Roster endpoints (artifact levels of the signed-in user).

Routes:
    GET  /api/roster/artifacts                      starter + active seasonal artifacts
    POST /api/roster/artifacts                      save [{"artifactId", "level"}]
    POST /api/roster/artifacts/{key}/{action}       increment / decrement one level
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Request

from formation_hub import roster
from formation_hub.api.schemas import RosterArtifactsResponse
from formation_hub.domain.enums import ArtifactAction
from formation_hub.domain.models import Artifact, ArtifactLevel
from formation_hub.routers.common import ctx, require_auth, run_with_db

router = APIRouter(prefix="/api/roster", tags=["roster"])


def _grouped(artifacts: List[Artifact]) -> RosterArtifactsResponse:
    starter, seasonal = roster.split_artifacts(artifacts)
    return RosterArtifactsResponse(starter=starter, seasonal=seasonal)


@router.get("/artifacts", response_model=RosterArtifactsResponse)
async def get_artifacts(request: Request):
    user_id = require_auth(ctx(request))
    return _grouped(await run_with_db(roster.get_user_artifacts, user_id))


@router.post("/artifacts", response_model=RosterArtifactsResponse)
async def save_artifacts(request: Request, body: List[ArtifactLevel]):
    user_id = require_auth(ctx(request))
    return _grouped(await run_with_db(roster.save_user_artifacts, user_id, body))


@router.post("/artifacts/{artifact_key}/{action}", response_model=RosterArtifactsResponse)
async def step_artifact(request: Request, artifact_key: str, action: ArtifactAction):
    user_id = require_auth(ctx(request))
    return _grouped(
        await run_with_db(roster.apply_artifact_action, user_id, artifact_key, action.value)
    )
