"""Logging configuration for the doves analysis tools."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'

_handler: logging.Handler | None = None


def setup_logging(
    level: str = "INFO",
    format_json: bool = False,
    stream: TextIO | None = None,
) -> logging.Handler:
    """
    Configure the root logger for scripts and long solver runs.

    Calling it again replaces the previously installed handler instead of
    stacking a second one.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: Whether to emit one JSON object per line
        stream: Output stream, stdout by default

    Returns:
        The installed handler
    """
    global _handler

    log_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(stream or sys.stdout)
    if format_json:
        handler.setFormatter(logging.Formatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    if _handler is not None:
        logging.root.removeHandler(_handler)
    logging.root.setLevel(log_level)
    logging.root.addHandler(handler)
    _handler = handler
    return handler


__all__ = ["setup_logging"]
