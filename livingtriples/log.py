"""Logging setup for command-line runs."""

from __future__ import annotations

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO", fmt: str = LOG_FORMAT) -> logging.Logger:
    """
    Install a single stream handler on the package logger.

    Calling this again replaces the handler instead of stacking a second one.
    """
    global _handler

    package_logger = logging.getLogger("livingtriples")
    if _handler is not None:
        package_logger.removeHandler(_handler)

    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(fmt))
    package_logger.addHandler(_handler)
    package_logger.setLevel(level.upper())
    return package_logger
