"""Process-wide logging for the relief coordination backend.

Every module logs through ``get_logger(__name__)``. Messages are an event
label followed by pipe-separated ``key=value`` pairs, for example::

    Allocation executed | request_id=7 | resource_id=2 | quantity=10 | status=Fulfilled

INFO covers intake changes, capacity recomputes, allocation executions,
rejections and the startup sequence. Stock conflicts and failed capacity
recomputes are WARNING. Controllers log unexpected failures with
``logger.exception`` before answering 500. The level comes from
``LOG_LEVEL`` unless a caller passes one explicitly.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from relief_backend.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGER_INITIALIZED = False


def _resolve_level(level: Optional[str]) -> int:
    name = (level or get_settings().log_level).upper()
    resolved = logging.getLevelName(name)
    # getLevelName returns a string for unknown names.
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """Install the process-wide stdout handler once.

    Ledger recomputes, allocation executions and controller failures all go
    through this handler, so one grep over ``key=value`` pairs follows a
    request id across layers.
    """
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    logging.basicConfig(level=_resolve_level(level), format=LOG_FORMAT, stream=sys.stdout)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
