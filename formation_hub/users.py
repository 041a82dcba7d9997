"""
Local cache of identity-provider user profiles.

Only the display name and avatar are stored; the identity itself is owned by
Discord.  Profiles are written on login and, when a bot token is configured,
fetched on demand for owners who have not signed in on this instance.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from formation_hub import config
from formation_hub.cache_backend import revalidate_tags
from formation_hub.database import UserProfile
from formation_hub.domain.errors import UserNotFoundError
from formation_hub.domain.models import UserSummary

logger = logging.getLogger(__name__)

DISCORD_USER_BY_ID_URL = "https://discord.com/api/users/{user_id}"
DISCORD_AVATAR_URL = "https://cdn.discordapp.com/avatars/{user_id}/{avatar}.png"


def avatar_url(user_id: str, avatar: Optional[str]) -> str:
    if not avatar:
        return ""
    if avatar.startswith("http"):
        return avatar
    return DISCORD_AVATAR_URL.format(user_id=user_id, avatar=avatar)


def unknown_user() -> UserSummary:
    return UserSummary(user_id="0", username="Unknown", user_image="")


def _summary(profile: UserProfile) -> UserSummary:
    return UserSummary(
        user_id=profile.user_id,
        username=profile.username,
        user_image=profile.avatar_url or "",
    )


def upsert_user(db: Session, user_id: str, username: str, avatar: Optional[str] = None) -> UserSummary:
    """Create or refresh the cached profile for ``user_id``."""
    profile = db.get(UserProfile, user_id)
    image = avatar_url(user_id, avatar)
    if profile is None:
        profile = UserProfile(user_id=user_id, username=username, avatar_url=image)
        db.add(profile)
        changed = True
    else:
        changed = (profile.username, profile.avatar_url) != (username, image)
        profile.username = username
        profile.avatar_url = image
    db.commit()
    if changed:
        # cached formation payloads embed the owner name and avatar
        from formation_hub.formations import FORMATIONS_TAG, POPULAR_TAG
        revalidate_tags(FORMATIONS_TAG, POPULAR_TAG)
    return _summary(profile)


def _fetch_from_provider(user_id: str) -> Optional[dict]:
    if not config.DISCORD_BOT_TOKEN:
        return None
    with httpx.Client(timeout=5.0) as client:
        resp = client.get(
            DISCORD_USER_BY_ID_URL.format(user_id=user_id),
            headers={"Authorization": f"Bot {config.DISCORD_BOT_TOKEN}"},
        )
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    return resp.json()


def get_user(db: Session, user_id: str) -> UserSummary:
    """Return the cached profile of ``user_id``.

    Raises ``UserNotFoundError`` when neither the local cache nor the
    provider knows the user.
    """
    profile = db.get(UserProfile, user_id)
    if profile is not None:
        return _summary(profile)

    remote = _fetch_from_provider(user_id)
    if not remote:
        raise UserNotFoundError(user_id)

    logger.info("Cached provider profile for user %s", user_id)
    return upsert_user(
        db,
        user_id,
        remote.get("global_name") or remote.get("username") or user_id,
        remote.get("avatar"),
    )


def get_user_or_unknown(db: Session, user_id: Optional[str]) -> UserSummary:
    """Like ``get_user`` but degrades to the "Unknown" owner."""
    if not user_id:
        return unknown_user()
    try:
        return get_user(db, user_id)
    except (UserNotFoundError, httpx.HTTPError, ValueError) as exc:
        logger.warning("Could not resolve owner %s: %s", user_id, exc)
        return unknown_user()
