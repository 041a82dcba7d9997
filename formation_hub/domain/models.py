"""
formation_hub.domain.models — Canonical Pydantic / dataclass models.

These are the single source of truth for data structures flowing through
the service.  Layers that produce or consume these models must not invent
their own parallel types.

Import pattern::

    from formation_hub.domain.models import FormationData, UserContext
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from formation_hub.domain.enums import Category

MAX_HERO_SLOTS = 5
MAX_NAME_LENGTH = 100


# ---------------------------------------------------------------------------
# User context (resolved once per API request)
# ---------------------------------------------------------------------------

@dataclass
class UserContext:
    """
    Lightweight context object built from the authenticated request.
    ``user_id`` is the identity provider's id, or None when signed out.
    """
    user_id: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "UserContext":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class UserSummary(BaseModel):
    """Owner fields merged into every formation payload."""

    user_id: str
    username: str
    user_image: str = ""


# ---------------------------------------------------------------------------
# Formations
# ---------------------------------------------------------------------------

def _clean_list_item(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{what} must not be empty")
    if "," in value:
        raise ValueError(f"{what} must not contain ','")
    return value


class FormationCreate(BaseModel):
    """Body of POST /api/formations and PUT /api/formations/{id}."""

    model_config = ConfigDict(populate_by_name=True)

    formation: List[str] = Field(min_length=1, max_length=MAX_HERO_SLOTS)
    artifact: str
    layout: Union[int, str]
    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    tags: List[str] = Field(default_factory=list)
    formation_share_id: Optional[str] = Field(default=None, alias="formationShareId")

    @field_validator("formation")
    @classmethod
    def _check_heroes(cls, v: List[str]) -> List[str]:
        return [_clean_list_item(hero, "hero id") for hero in v]

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for tag in v:
            tag = _clean_list_item(tag, "tag")
            if tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("layout")
    @classmethod
    def _parse_layout(cls, v: Union[int, str]) -> int:
        try:
            return int(v)
        except (TypeError, ValueError):
            raise ValueError("layout must be an integer") from None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class FormationData(BaseModel):
    """A formation row merged with its vote count and owner."""

    id: int
    name: str
    user_id: str
    formation: List[str]
    artifact: str
    layout: int
    tags: List[str] = Field(default_factory=list)
    formation_share_id: Optional[str] = None
    votes: int = 0

    username: str
    user_image: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": 42,
            "name": "Dream realm burst",
            "user_id": "190284756381",
            "formation": ["12", "7", "3", "25", "18"],
            "artifact": "starter-3",
            "layout": 2,
            "tags": ["dream realm", "boss"],
            "votes": 17,
            "username": "Odie",
            "user_image": "https://cdn.example/avatars/odie.png",
        }
    })


# ---------------------------------------------------------------------------
# Artifacts (roster editor)
# ---------------------------------------------------------------------------

class Artifact(BaseModel):
    key: str
    label: str
    image_url: str = ""
    category: Category
    max_level: int = Field(ge=0)
    active: bool = True
    level: int = 0


class ArtifactLevel(BaseModel):
    """One entry of the POST /api/roster/artifacts body."""

    model_config = ConfigDict(populate_by_name=True)

    artifact_id: str = Field(alias="artifactId")
    level: int
