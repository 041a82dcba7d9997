"""
Formation Hub — API request/response schemas (Pydantic).

Request bodies that are also service inputs (``FormationCreate``,
``ArtifactLevel``) live in ``formation_hub.domain.models``; this module holds
the envelopes the endpoints answer with.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Union

from pydantic import BaseModel, Field

from formation_hub.domain.models import Artifact, FormationData


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Formations
# ---------------------------------------------------------------------------

class FormationListResponse(BaseModel):
    """Response for search, popular and "mine" listings."""
    count: int
    formations: List[FormationData]


class FormationCreatedResponse(BaseModel):
    id: str


class VoteResponse(BaseModel):
    formation_id: int
    votes: int
    voted: bool


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

class RosterArtifactsResponse(BaseModel):
    """Artifacts grouped the way the roster editor shows them."""
    starter: List[Artifact]
    seasonal: List[Artifact]


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    version: str
    db: str = "ok"
    cache_backend: str = "memory"
    uptime_seconds: float = 0.0
    metrics: Dict[str, Union[int, float]] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
