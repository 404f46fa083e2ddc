"""nanohelix runtime configuration helpers."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

_WORKERS_ENV = "NANOHELIX_RELAX_WORKERS"
_LOG_LEVEL_ENV = "NANOHELIX_LOG_LEVEL"
_CHEBYSHEV_DEGREE_ENV = "NANOHELIX_CHEBYSHEV_DEGREE"

DEFAULT_CHEBYSHEV_DEGREE = 32
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

LOGGER = logging.getLogger(__name__)


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        LOGGER.warning("Ignoring %s=%r (not an integer); using %d.", name, raw, default)
        return default
    if value < minimum:
        LOGGER.warning("Ignoring %s=%d (below %d); using %d.", name, value, minimum, default)
        return default
    return value


def _env_level(name: str) -> Optional[str]:
    value = os.getenv(name)
    if not value:
        return None
    return value.strip().upper() or None


def default_relax_workers() -> int:
    """Worker threads used for per-body force evaluation."""

    return _env_int(_WORKERS_ENV, 1)


def chebyshev_degree() -> int:
    """Degree of the Chebyshev arc-length fits."""

    return _env_int(_CHEBYSHEV_DEGREE_ENV, DEFAULT_CHEBYSHEV_DEGREE, minimum=4)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Attach a handler to the ``nanohelix`` logger.

    ``level`` overrides ``NANOHELIX_LOG_LEVEL``; the default is WARNING.
    Calling it again replaces the handler installed by the previous call.
    """

    resolved = (level or _env_level(_LOG_LEVEL_ENV) or "WARNING").upper()
    numeric = logging.getLevelName(resolved)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{resolved}'.")
    logger = logging.getLogger("nanohelix")
    for handler in list(logger.handlers):
        if getattr(handler, "_nanohelix_handler", False):
            logger.removeHandler(handler)
            handler.close()
    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._nanohelix_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(numeric)
    LOGGER.debug("configure_logging level=%s file=%s", resolved, log_file)
    return logger
