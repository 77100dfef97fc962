"""Logging configuration."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}

# Chatty third-party loggers kept at WARNING regardless of the debug level.
_QUIET_LOGGERS = ("httpx", "httpcore", "LiteLLM", "LiteLLM Router", "LiteLLM Proxy")


def level_for(debug: int) -> int:
    """Map a proxy debug level (0-2) to a logging level."""
    return _LEVELS.get(debug, logging.DEBUG)


def setup_logging(debug: int = 0) -> None:
    """Send log records to stderr through rich, at a level chosen by *debug*."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=debug >= 2,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level_for(debug),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
