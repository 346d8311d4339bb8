"""
Logging utility with loguru.
Provides structured logging with optional file rotation.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from joinengine.config.settings import settings, PROJECT_ROOT


def setup_logger(level: Optional[str] = None, log_to_file: Optional[bool] = None):
    """
    Configure loguru logger with console and (optionally) file outputs.
    """
    level = level or settings.log_level
    log_to_file = settings.log_to_file if log_to_file is None else log_to_file

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )

    if log_to_file:
        log_dir = Path(settings.log_dir)
        if not log_dir.is_absolute():
            log_dir = PROJECT_ROOT / log_dir
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "joinengine.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
        )

    logger.info("Logger initialized")
    return logger
