"""Logging setup for the vizsync processes."""

import os
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> [vizsync] <level>{level: <7}</level> {name}:{line} - {message}"


def setup(level: Optional[str] = None) -> int:
    """Replace loguru's default sink with a tagged stderr sink.

    The level falls back to ``VIZSYNC_LOG_LEVEL`` then ``INFO``. Returns the id
    of the installed sink.
    """

    chosen = (level or os.environ.get("VIZSYNC_LOG_LEVEL") or "INFO").upper()
    logger.remove()
    return logger.add(sys.stderr, level=chosen, format=LOG_FORMAT, backtrace=False, diagnose=False)
