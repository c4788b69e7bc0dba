"""
Logging setup for toolhub.

All modules log through logging.getLogger(__name__), i.e. under the
"toolhub" logger. setup_logging() attaches a single Rich handler to that
logger; calling it again only updates the level.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "toolhub"


def setup_logging(level: str | int = "INFO", console: Console | None = None) -> logging.Logger:
    """
    Configure the toolhub logger.

    Args:
        level: Level name or number
        console: Rich console to write to (stderr by default)

    Returns:
        The configured "toolhub" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)

    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
