"""Logging setup for the tagref command line.

Diagnostics go to stderr through the ``tagref`` logger. Command output
(summaries, listings, error blocks) is written by the CLI directly and is
never routed through logging.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from tagref.config import env_log_level

LOGGER_NAME = "tagref"
_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"


class _TagrefHandler(logging.StreamHandler):
    """Stderr handler owned by ``setup_logging``."""


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``tagref`` logger.

    Args:
        level: Explicit level name. Falls back to ``TAGREF_LOG_LEVEL``, then
            ``WARNING``.
    """
    resolved = level or env_log_level() or "WARNING"
    numeric = logging.getLevelName(resolved.upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, _TagrefHandler):
            logger.removeHandler(handler)
    handler = _TagrefHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(numeric)
    logger.propagate = False
    return logger
