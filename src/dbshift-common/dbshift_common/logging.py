"""
One-time loguru setup for processes that run migrations (CLI, service startup).
"""

import sys

from loguru import logger

_configured = False


def configure_logging(debug: bool = False) -> bool:
    """
    Replace loguru's default sink with a single stderr sink. Only the first call
    in a process has an effect; returns True when this call configured logging.
    """
    global _configured
    if _configured:
        return False
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if debug else "INFO",
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    _configured = True
    return True
