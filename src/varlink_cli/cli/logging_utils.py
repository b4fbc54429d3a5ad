"""Loguru setup for the ``--debug`` global option."""

from __future__ import annotations

import sys

from loguru import logger

DEBUG_FORMAT = (
    "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | <level>{message}</level>"
)


def configure_logging(debug: bool) -> None:
    """Send DEBUG records to stderr when *debug* is set, else stay silent."""
    logger.remove()
    if debug:
        logger.add(sys.stderr, level="DEBUG", format=DEBUG_FORMAT)
        logger.enable("varlink_cli")
    else:
        logger.disable("varlink_cli")
