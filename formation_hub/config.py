"""
Centralized configuration for Formation Hub.
All settings come from environment variables for 12-factor deployment.
"""

import os
import secrets


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(BASE_DIR, 'formations.db')}",
)
REDIS_URL = os.environ.get("REDIS_URL", "").strip()

# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
BACKEND_URL = os.environ.get("BACKEND_URL", "http://localhost:8001")

# ---------------------------------------------------------------------------
# Auth (identity provider)
# ---------------------------------------------------------------------------
AUTH_SECRET = os.environ.get("AUTH_SECRET", "") or secrets.token_hex(32)
DISCORD_CLIENT_ID = os.environ.get("DISCORD_CLIENT_ID", "")
DISCORD_CLIENT_SECRET = os.environ.get("DISCORD_CLIENT_SECRET", "")
DISCORD_REDIRECT_URI = os.environ.get(
    "DISCORD_REDIRECT_URI",
    f"{BACKEND_URL}/api/auth/callback",
)
# Bot token used to look up profiles of users who never signed in here.
DISCORD_BOT_TOKEN = os.environ.get("DISCORD_BOT_TOKEN", "")

# ---------------------------------------------------------------------------
# CMS data (heroes, artifacts)
# ---------------------------------------------------------------------------
CMS_URL = os.environ.get("CMS_URL", "").strip()
CATALOG_PATH = os.environ.get(
    "CATALOG_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "catalog.json"),
)
CATALOG_TTL_SECONDS = int(os.environ.get("CATALOG_TTL_SECONDS", "3600"))

# ---------------------------------------------------------------------------
# Cached reads / revalidation
# ---------------------------------------------------------------------------
FORMATION_CACHE_TTL_SECONDS = int(os.environ.get("FORMATION_CACHE_TTL_SECONDS", "3600"))
POPULAR_DEFAULT_LIMIT = int(os.environ.get("POPULAR_DEFAULT_LIMIT", "10"))

# ---------------------------------------------------------------------------
# Rate limits (per client, per minute; 0 disables)
# ---------------------------------------------------------------------------
SEARCH_RATE_LIMIT_PER_MINUTE = int(os.environ.get("SEARCH_RATE_LIMIT_PER_MINUTE", "60"))
VOTE_RATE_LIMIT_PER_MINUTE = int(os.environ.get("VOTE_RATE_LIMIT_PER_MINUTE", "30"))

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------
PORT = int(os.environ.get("PORT", "8001"))
DEBUG_TRACEBACKS = _env_bool("DEBUG_TRACEBACKS", False)

# ---------------------------------------------------------------------------
# CORS — Starlette mirrors the request Origin when credentials=True + "*",
# so this effectively allows any origin while still supporting Bearer tokens
# in cross-domain preflight requests.
# ---------------------------------------------------------------------------
CORS_ORIGINS = [
    s.strip()
    for s in os.environ.get("CORS_ORIGINS", "*").split(",")
    if s.strip()
]
