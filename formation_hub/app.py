"""
Formation Hub - FastAPI Application
Main entry point for the backend server.

Run with:
    uvicorn formation_hub.app:app --reload --host 0.0.0.0 --port 8001
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formation_hub import __version__, config
from formation_hub.api.routes import register_routes
from formation_hub.auth import user_context
from formation_hub.core.logging import configure_logging
from formation_hub.database import init_db
from formation_hub.domain.errors import FormationHubError
from formation_hub.metrics import record_error

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs once on startup, yields for the lifetime of the app."""
    logger.info("Initialising database...")
    init_db()
    logger.info("Database ready.")
    yield


app = FastAPI(
    title="Formation Hub",
    version=__version__,
    description="Share, vote on and search game team formations",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(FormationHubError)
async def formation_hub_error_handler(request: Request, exc: FormationHubError):
    logger.info(
        "%s on %s %s: %s",
        type(exc).__name__, request.method, request.url.path, exc,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    record_error()
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method, request.url.path, exc, tb,
    )
    content = {
        "detail": str(exc),
        "type": type(exc).__name__,
        "path": request.url.path,
    }
    if config.DEBUG_TRACEBACKS:
        content["traceback"] = tb
    return JSONResponse(status_code=500, content=content)


# ---------------------------------------------------------------------------
# Request user context
# ---------------------------------------------------------------------------

@app.middleware("http")
async def user_context_middleware(request: Request, call_next):
    """Attach the signed-in user (or an anonymous context) to ``request.state.user_ctx``."""
    request.state.user_ctx = user_context(request)
    return await call_next(request)


register_routes(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "formation_hub.app:app",
        host="0.0.0.0",
        port=config.PORT,
        reload=True,
    )
