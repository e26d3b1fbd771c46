"""Root logger setup for Wheelcast; ``wheelcast.app`` calls it on import."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from wheelcast import config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Request, SQL and socket frame chatter drowns out room and spin events.
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "websockets", "uvicorn.access")

_configured = False


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """Install a stdout handler on the root logger. Later calls are no-ops."""
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_level(level or config.LOG_LEVEL))
    # Under uvicorn the root logger may already have handlers.
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
