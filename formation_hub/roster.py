"""
Artifact roster: per-user artifact levels and the level reducer.

``reduce_artifacts`` is the pure state transition behind the roster editor's
+/- buttons.  The persistence helpers below merge the artifact catalog with
the levels a user has saved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from formation_hub.catalog import get_artifact_catalog
from formation_hub.database import UserArtifact
from formation_hub.domain.enums import ArtifactAction, Category
from formation_hub.domain.errors import InvalidArtifactError, UnauthorizedError
from formation_hub.domain.models import Artifact, ArtifactLevel

logger = logging.getLogger(__name__)


def reduce_artifacts(artifacts: List[Artifact], action: Mapping[str, Any]) -> List[Artifact]:
    """Apply an ``increment`` / ``decrement`` action to one artifact.

    ``action`` is ``{"type": ..., "artifact": Artifact}``; the artifact is
    matched by ``key``.  Levels stay within ``[0, max_level]``: an action
    that would leave that range, an unknown type or an unknown key returns
    ``artifacts`` itself, untouched.  Otherwise a new list is returned.
    """
    target = action.get("artifact")
    key = target.key if isinstance(target, Artifact) else target
    try:
        kind = ArtifactAction(action.get("type"))
    except ValueError:
        return artifacts

    step = 1 if kind is ArtifactAction.INCREMENT else -1
    current = next((a for a in artifacts if a.key == key), None)
    if current is None:
        return artifacts

    new_level = current.level + step
    if new_level > current.max_level or new_level < 0:
        return artifacts

    return [
        a.model_copy(update={"level": new_level}) if a.key == key else a
        for a in artifacts
    ]


def split_artifacts(artifacts: Sequence[Artifact]) -> Tuple[List[Artifact], List[Artifact]]:
    """Return (starter, active seasonal) artifacts, catalog order preserved."""
    starter = [a for a in artifacts if a.category == Category.STARTER]
    seasonal = [a for a in artifacts if a.category == Category.SEASONAL and a.active]
    return starter, seasonal


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def _stored_levels(db: Session, user_id: str) -> Dict[str, int]:
    rows = db.query(UserArtifact).filter(UserArtifact.user_id == user_id).all()
    return {row.artifact_id: row.level for row in rows}


def get_user_artifacts(db: Session, user_id: Optional[str]) -> List[Artifact]:
    """Catalog artifacts carrying ``user_id``'s saved levels (0 when unsaved)."""
    if not user_id:
        raise UnauthorizedError()
    levels = _stored_levels(db, user_id)
    merged = []
    for artifact in get_artifact_catalog():
        # the catalog may have lowered max_level since the level was saved
        level = min(max(levels.get(artifact.key, 0), 0), artifact.max_level)
        merged.append(artifact.model_copy(update={"level": level}))
    return merged


def _validate(items: Sequence[ArtifactLevel], catalog: Dict[str, Artifact]) -> None:
    for item in items:
        artifact = catalog.get(item.artifact_id)
        if artifact is None:
            raise InvalidArtifactError(f"Unknown artifact {item.artifact_id!r}")
        if not 0 <= item.level <= artifact.max_level:
            raise InvalidArtifactError(
                f"Level {item.level} out of range for {item.artifact_id!r} "
                f"(0-{artifact.max_level})"
            )


def save_user_artifacts(
    db: Session,
    user_id: Optional[str],
    items: Sequence[ArtifactLevel],
) -> List[Artifact]:
    """Validate and upsert artifact levels; nothing is written if any is invalid."""
    if not user_id:
        raise UnauthorizedError()
    catalog = {a.key: a for a in get_artifact_catalog()}
    _validate(items, catalog)

    existing = {
        row.artifact_id: row
        for row in db.query(UserArtifact).filter(UserArtifact.user_id == user_id).all()
    }
    for item in items:
        row = existing.get(item.artifact_id)
        if row is None:
            row = UserArtifact(user_id=user_id, artifact_id=item.artifact_id, level=item.level)
            db.add(row)
            existing[item.artifact_id] = row
        else:
            row.level = item.level
    db.commit()
    logger.info("Saved %d artifact levels for %s", len(items), user_id)
    return get_user_artifacts(db, user_id)


def apply_artifact_action(
    db: Session,
    user_id: Optional[str],
    artifact_key: str,
    action_type: str,
) -> List[Artifact]:
    """Run one editor action against the stored roster and persist the result."""
    artifacts = get_user_artifacts(db, user_id)
    target = next((a for a in artifacts if a.key == artifact_key), None)
    if target is None:
        raise InvalidArtifactError(f"Unknown artifact {artifact_key!r}")

    updated = reduce_artifacts(artifacts, {"type": action_type, "artifact": target})
    if updated is artifacts:
        return artifacts

    changed = next(a for a in updated if a.key == artifact_key)
    return save_user_artifacts(
        db, user_id, [ArtifactLevel(artifact_id=changed.key, level=changed.level)]
    )
