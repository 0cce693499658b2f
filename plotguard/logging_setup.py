"""Loguru sink configuration shared by CLI entry points."""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def configure_logging(level: str = "INFO") -> None:
    """Replace the default loguru sink with a formatted stderr sink.

    Parameters
    ----------
    level : str
        Minimum level emitted, e.g. ``"DEBUG"`` or ``"INFO"``.
    """
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
