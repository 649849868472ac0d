"""
Logging setup shared by the command line entry points
"""

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<level>{time:YYYY-MM-DD HH:mm:ss}</level> | <level>{level: <8}</level> | "
    "[{extra[session]}] {message}"
)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Replace the default loguru sink

    Args:
        level: Minimum level for all sinks
        log_file: Optional path of a rotating log file
    """
    logger.remove()
    logger.configure(extra={"session": "main"})
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())

    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level.upper(),
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
