"""
Sign-in for Formation Hub via Discord OAuth2.

Flow:
  1. ``/api/auth/login`` redirects to Discord's consent screen.
  2. Discord calls back ``/api/auth/callback?code=``; the code is exchanged,
     the profile is cached locally and a session token is issued.
  3. The frontend sends the token as ``Authorization: Bearer <token>``
     (or relies on the session cookie when served from the same origin).

Tokens are ``<base64 json>.<hex hmac-sha256>`` signed with ``AUTH_SECRET``.
Reads are public; the routers only ask for a user on writes.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from formation_hub import config
from formation_hub.database import get_db
from formation_hub.domain.models import UserContext
from formation_hub.users import upsert_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SESSION_EXPIRY = 7 * 24 * 3600
COOKIE_NAME = "formation_hub_session"

DISCORD_AUTH_URL = "https://discord.com/api/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"
DISCORD_USER_URL = "https://discord.com/api/users/@me"


def is_configured() -> bool:
    return bool(config.DISCORD_CLIENT_ID and config.DISCORD_CLIENT_SECRET)


def display_name(user: Dict[str, Any]) -> str:
    """Discord's display name, falling back to the account name."""
    return user.get("global_name") or user["username"]


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

def _signature(body: str) -> str:
    return hmac.new(config.AUTH_SECRET.encode(), body.encode(), hashlib.sha256).hexdigest()


def create_token(user: Dict[str, Any]) -> str:
    """Sign a session token for a Discord user object."""
    claims = {
        "sub": str(user["id"]),
        "username": display_name(user),
        "avatar": user.get("avatar"),
        "exp": int(time.time()) + SESSION_EXPIRY,
    }
    body = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode()
    return f"{body}.{_signature(body)}"


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token's claims, or None if forged, malformed or expired."""
    body, _, signature = token.partition(".")
    if not signature:
        return None
    # header values are latin-1 decoded and may hold non-ASCII text
    if not hmac.compare_digest(signature.encode(), _signature(body).encode()):
        return None
    try:
        claims = json.loads(base64.urlsafe_b64decode(body))
    except ValueError:
        return None
    if not isinstance(claims, dict) or claims.get("exp", 0) < time.time():
        return None
    return claims


def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    """Claims from the bearer token, else from the session cookie."""
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        claims = decode_token(token)
        if claims:
            return claims
    cookie = request.cookies.get(COOKIE_NAME)
    return decode_token(cookie) if cookie else None


def user_context(request: Request) -> UserContext:
    claims = get_current_user(request)
    if not claims or not claims.get("sub"):
        return UserContext.anonymous()
    return UserContext(
        user_id=claims["sub"],
        username=claims.get("username"),
        avatar=claims.get("avatar"),
    )


# ---------------------------------------------------------------------------
# Discord calls
# ---------------------------------------------------------------------------

async def _exchange_code(client: httpx.AsyncClient, code: str) -> str:
    resp = await client.post(
        DISCORD_TOKEN_URL,
        data={
            "client_id": config.DISCORD_CLIENT_ID,
            "client_secret": config.DISCORD_CLIENT_SECRET,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": config.DISCORD_REDIRECT_URI,
        },
    )
    if resp.status_code != 200:
        logger.error("Discord code exchange failed (%s): %s", resp.status_code, resp.text)
        raise HTTPException(status_code=401, detail="Discord authentication failed.")
    return resp.json()["access_token"]


async def _fetch_identity(client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
    resp = await client.get(DISCORD_USER_URL, headers={"Authorization": f"Bearer {access_token}"})
    if resp.status_code != 200:
        logger.error("Discord identity lookup failed (%s)", resp.status_code)
        raise HTTPException(status_code=401, detail="Failed to fetch Discord user.")
    return resp.json()


def _remember_profile(user: Dict[str, Any]) -> None:
    db = get_db()
    try:
        upsert_user(db, str(user["id"]), display_name(user), user.get("avatar"))
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/login")
async def login():
    if not is_configured():
        raise HTTPException(
            status_code=503,
            detail="Sign-in is not configured (DISCORD_CLIENT_ID / DISCORD_CLIENT_SECRET).",
        )
    query = urlencode({
        "client_id": config.DISCORD_CLIENT_ID,
        "redirect_uri": config.DISCORD_REDIRECT_URI,
        "response_type": "code",
        "scope": "identify",
    })
    return RedirectResponse(f"{DISCORD_AUTH_URL}?{query}")


@router.get("/callback")
async def callback(code: str):
    """Finish the OAuth dance and send the browser back to the frontend."""
    if not is_configured():
        raise HTTPException(status_code=503, detail="Sign-in is not configured.")

    async with httpx.AsyncClient(timeout=10.0) as client:
        access_token = await _exchange_code(client, code)
        user = await _fetch_identity(client, access_token)

    await asyncio.to_thread(_remember_profile, user)
    logger.info("Signed in %s (%s)", display_name(user), user["id"])

    token = create_token(user)
    response = RedirectResponse(f"{config.FRONTEND_URL}?{urlencode({'token': token})}", status_code=302)
    response.set_cookie(COOKIE_NAME, token, max_age=SESSION_EXPIRY, httponly=True, samesite="lax")
    return response


@router.get("/me")
async def me(request: Request):
    claims = get_current_user(request)
    if not claims:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    return {"id": claims["sub"], "username": claims.get("username"), "avatar": claims.get("avatar")}


@router.post("/logout")
async def logout():
    response = JSONResponse({"status": "logged_out"})
    response.delete_cookie(COOKIE_NAME)
    return response
