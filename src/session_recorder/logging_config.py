"""Logging utilities with Rich integration."""

from __future__ import annotations

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler


ROOT_LOGGER = "session_recorder"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Configure standard logging with a Rich handler and return the package logger."""

    console = Console(stderr=True)
    handler = RichHandler(console=console, show_time=True, show_path=False)
    logging.basicConfig(level=level, handlers=[handler], format="%(message)s", force=True)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.debug("Logging configured with level %s", logging.getLevelName(logger.getEffectiveLevel()))
    return logger


__all__ = ["configure_logging"]
