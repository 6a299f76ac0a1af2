"""Logging configuration for You CLI."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import YouConfig

_LOGGER_NAME = "youcli"


def configure_logging(config: YouConfig) -> None:
    """Route package logs to stderr through Rich at the configured level."""
    level = getattr(logging, config.log_level.value.upper(), logging.WARNING)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=config.show_debug,
        rich_tracebacks=config.show_debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(_LOGGER_NAME)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger below the package logger.

    Args:
        name: Optional logger name (usually __name__)
    """
    if not name or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    if name.startswith(_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
