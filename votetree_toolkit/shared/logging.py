"""
Logging utilities for the Voting Tree toolkit.

Every module gets a logger with a single console handler; the level can be
overridden with the VT_LOG_LEVEL environment variable. Long-lived managers
use a routine logger so their lines carry the routine they belong to
("Voting Info Snapshot", "Network Tree", ...).
"""

import logging
import os
from typing import Any, MutableMapping, Optional, Tuple

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger with a stream handler.

    The first time a logger is created, a StreamHandler is attached with a
    plain-text formatter. Subsequent calls reuse the existing configuration.
    """
    logger = logging.getLogger(name if name else __name__)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(handler)

        level_str = os.getenv("VT_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_str, logging.INFO)
        logger.setLevel(level)

    return logger


class RoutineLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the routine name, e.g. ``[Node Tree]``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['routine']}] {msg}", kwargs


def get_routine_logger(name: str, routine: str) -> RoutineLoggerAdapter:
    """Get a logger whose messages are tagged with a routine name."""
    return RoutineLoggerAdapter(get_logger(name), {"routine": routine})
