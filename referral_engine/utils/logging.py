"""
Logging setup.

Configures loguru sinks for workers and scripts.
"""

import sys

from loguru import logger

from referral_engine.config.settings import settings


def setup_logging(log_file: str | None = None) -> None:
    """
    Configure logger with stderr output and file rotation.

    Args:
        log_file: Log file path (defaults to settings.log_file, None disables)
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    path = log_file or settings.log_file
    if path:
        logger.add(
            path,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info("Referral engine logging configured")
