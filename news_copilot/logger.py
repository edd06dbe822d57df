# news_copilot/logger.py
from __future__ import annotations

import sys

from loguru import logger


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logger(level: str = "INFO"):
    """
    Single colourised stderr sink. stdout is left to CLI output.
    """
    logger.remove()
    logger.add(sys.stderr, colorize=True, format=LOG_FORMAT, level=level.upper())
    return logger
