"""
Formation service: CRUD, search, popularity and votes.

Every function takes an open SQLAlchemy session as its first argument and
leaves closing it to the caller.  Reads that back public pages are cached
under tags and revalidated after each write:

  formations                 every cached single-formation read
  formation:<id>             one formation page
  most-popular-formations    the popularity ranking
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from formation_hub import config
from formation_hub.cache_backend import cached_json, revalidate_tags
from formation_hub.catalog import hero_name_to_id
from formation_hub.database import Formation, Vote
from formation_hub.domain.errors import (
    AlreadyVotedError, ForbiddenError, FormationNotFoundError, UnauthorizedError,
)
from formation_hub.domain.models import FormationCreate, FormationData, UserSummary
from formation_hub.metrics import record_vote
from formation_hub.users import get_user_or_unknown

logger = logging.getLogger(__name__)

FORMATIONS_TAG = "formations"
POPULAR_TAG = "most-popular-formations"

_LIKE_ESCAPE = "\\"


def formation_tag(formation_id: int) -> str:
    return f"formation:{formation_id}"


def build_formation_json(
    formation: Formation,
    user: UserSummary,
    votes: Optional[int] = None,
) -> FormationData:
    """Merge a formation row with its owner and vote count."""
    if votes is None:
        votes = len(formation.votes)
    return FormationData(
        id=formation.id,
        name=formation.name,
        user_id=formation.user_id,
        formation=formation.hero_ids,
        artifact=formation.artifact,
        layout=formation.layout,
        tags=formation.tag_list,
        formation_share_id=formation.formation_share_id,
        votes=votes,
        username=user.username,
        user_image=user.user_image,
    )


def _with_owner(db: Session, formation: Formation, votes: Optional[int] = None) -> FormationData:
    return build_formation_json(formation, get_user_or_unknown(db, formation.user_id), votes)


def _escape_like(value: str) -> str:
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _load(db: Session, formation_id: int) -> Optional[Formation]:
    return (
        db.query(Formation)
        .options(selectinload(Formation.votes))
        .filter(Formation.id == formation_id)
        .first()
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_formation(db: Session, formation_id: int) -> Optional[FormationData]:
    """Return one formation, or None when it does not exist."""
    def _loader():
        row = _load(db, formation_id)
        if row is None:
            return None
        return _with_owner(db, row).model_dump()

    payload = cached_json(
        f"formation:{formation_id}",
        _loader,
        tags=(FORMATIONS_TAG, formation_tag(formation_id)),
        ttl_seconds=config.FORMATION_CACHE_TTL_SECONDS,
    )
    return FormationData(**payload) if payload else None


def get_formations_for_user_id(db: Session, user_id: str) -> List[FormationData]:
    rows = (
        db.query(Formation)
        .options(selectinload(Formation.votes))
        .filter(Formation.user_id == user_id)
        .order_by(Formation.id.desc())
        .all()
    )
    return [_with_owner(db, row) for row in rows]


def _hero_condition(hero_id: str):
    escaped = _escape_like(hero_id)
    return or_(
        Formation.formation == hero_id,
        Formation.formation.like(f"{escaped},%", escape=_LIKE_ESCAPE),
        Formation.formation.like(f"%,{escaped}", escape=_LIKE_ESCAPE),
        Formation.formation.like(f"%,{escaped},%", escape=_LIKE_ESCAPE),
    )


def search_formations(
    db: Session,
    query: Optional[str] = None,
    raw_tags: Optional[str] = None,
    raw_characters: Optional[str] = None,
) -> List[FormationData]:
    """Formations matching every given filter.

    ``raw_tags`` and ``raw_characters`` are comma-separated.  Characters are
    hero names resolved through the catalog; a name the catalog does not know
    matches nothing.
    """
    conditions = []

    query = (query or "").strip()
    if query:
        conditions.append(Formation.name.ilike(f"%{_escape_like(query)}%", escape=_LIKE_ESCAPE))

    for tag in _split_csv(raw_tags):
        conditions.append(Formation.tags.ilike(f"%{_escape_like(tag)}%", escape=_LIKE_ESCAPE))

    characters = _split_csv(raw_characters)
    if characters:
        hero_map = hero_name_to_id()
        for name in characters:
            hero_id = hero_map.get(name.lower())
            if hero_id is None:
                logger.debug("search: unknown hero %r", name)
                return []
            conditions.append(_hero_condition(hero_id))

    logger.debug("search: query=%r tags=%r characters=%r", query, raw_tags, characters)

    q = db.query(Formation).options(selectinload(Formation.votes))
    if conditions:
        q = q.filter(and_(*conditions))
    return [_with_owner(db, row) for row in q.order_by(Formation.id.desc()).all()]


def most_popular_formations(db: Session, limit: int) -> List[FormationData]:
    """The ``limit`` formations with the most votes (ties: oldest first)."""
    def _loader():
        vote_count = func.count(Vote.id).label("vote_count")
        rows = (
            db.query(Formation, vote_count)
            .outerjoin(Vote, Vote.formation_id == Formation.id)
            .group_by(Formation.id)
            .order_by(vote_count.desc(), Formation.id.asc())
            .limit(limit)
            .all()
        )
        return [_with_owner(db, formation, votes).model_dump() for formation, votes in rows]

    payload = cached_json(
        f"popular:{limit}",
        _loader,
        tags=(POPULAR_TAG,),
        ttl_seconds=config.FORMATION_CACHE_TTL_SECONDS,
    )
    return [FormationData(**item) for item in payload]


def count_votes(db: Session, formation_id: int) -> int:
    return db.query(func.count(Vote.id)).filter(Vote.formation_id == formation_id).scalar() or 0


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _apply(row: Formation, data: FormationCreate) -> None:
    row.formation = ",".join(data.formation)
    row.artifact = data.artifact
    row.layout = int(data.layout)
    row.name = data.name
    row.tags = ",".join(data.tags)
    row.formation_share_id = data.formation_share_id


def _owned(db: Session, user_id: Optional[str], formation_id: int) -> Formation:
    if not user_id:
        raise UnauthorizedError()
    row = db.get(Formation, formation_id)
    if row is None:
        raise FormationNotFoundError(formation_id)
    if row.user_id != user_id:
        raise ForbiddenError()
    return row


def create_formation(db: Session, user_id: Optional[str], data: FormationCreate) -> int:
    """Persist a new formation owned by ``user_id`` and return its id."""
    if not user_id:
        raise UnauthorizedError()
    row = Formation(user_id=user_id)
    _apply(row, data)
    db.add(row)
    db.commit()
    logger.info("Formation %d created by %s", row.id, user_id)
    revalidate_tags(POPULAR_TAG)
    return row.id


def update_formation(
    db: Session,
    user_id: Optional[str],
    formation_id: int,
    data: FormationCreate,
) -> None:
    row = _owned(db, user_id, formation_id)
    _apply(row, data)
    db.commit()
    logger.info("Formation %d updated by %s", formation_id, user_id)
    revalidate_tags(formation_tag(formation_id), POPULAR_TAG)


def delete_formation(db: Session, user_id: Optional[str], formation_id: int) -> None:
    row = _owned(db, user_id, formation_id)
    db.delete(row)
    db.commit()
    logger.info("Formation %d deleted by %s", formation_id, user_id)
    revalidate_tags(formation_tag(formation_id), POPULAR_TAG)


def vote_formation(db: Session, user_id: Optional[str], formation_id: int) -> int:
    """Record ``user_id``'s vote and return the new vote count."""
    if not user_id:
        raise UnauthorizedError()
    if db.get(Formation, formation_id) is None:
        raise FormationNotFoundError(formation_id)

    existing = (
        db.query(Vote)
        .filter(Vote.formation_id == formation_id, Vote.user_id == user_id)
        .first()
    )
    if existing is not None:
        raise AlreadyVotedError(formation_id)

    db.add(Vote(formation_id=formation_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyVotedError(formation_id) from None

    record_vote(1)
    revalidate_tags(formation_tag(formation_id), POPULAR_TAG)
    return count_votes(db, formation_id)


def unvote_formation(db: Session, user_id: Optional[str], formation_id: int) -> int:
    """Remove ``user_id``'s vote if present and return the new vote count."""
    if not user_id:
        raise UnauthorizedError()
    if db.get(Formation, formation_id) is None:
        raise FormationNotFoundError(formation_id)

    removed = (
        db.query(Vote)
        .filter(Vote.formation_id == formation_id, Vote.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        record_vote(-1)
        revalidate_tags(formation_tag(formation_id), POPULAR_TAG)
    return count_votes(db, formation_id)
