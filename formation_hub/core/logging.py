"""
Formation Hub — logging setup.

``configure_logging()`` is called once by ``formation_hub.app`` at import
time; later calls are ignored so uvicorn workers and tests can import the
app repeatedly.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Iterable, Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
DEFAULT_DATEFMT = "%H:%M:%S"

# Libraries that log every request or statement at INFO.
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "uvicorn.access",
)

_configured = False


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Optional[str] = None,
    fmt: str = DEFAULT_FORMAT,
    datefmt: str = DEFAULT_DATEFMT,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> bool:
    """Install a stdout handler on the root logger.

    ``level`` overrides the ``LOG_LEVEL`` environment variable; unknown
    names fall back to INFO.  Returns False when logging was already
    configured by an earlier call.
    """
    global _configured
    if _configured:
        return False

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return True


def reset_logging_for_tests() -> None:
    global _configured
    _configured = False
