"""Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; only the entry point
calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LEVELS = (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG)


def configure_logging(level: str = "INFO") -> int:
    """Configure the root logger once at startup and return the level used.

    Unknown level names fall back to INFO rather than failing startup.
    """
    resolved = getattr(logging, level.strip().upper(), None)
    if resolved not in _LEVELS:
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger(__name__).debug("Logging configured at %s", logging.getLevelName(resolved))
    return resolved
