"""Logging setup for ipcrawler.

All modules log through children of the ``ipcrawler`` logger so the CLI can
adjust verbosity in one place.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "ipcrawler"

_HANDLER_ATTR = "_ipcrawler_handler"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger below the ``ipcrawler`` namespace.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ipcrawler root logger.

    Precedence: debug > quiet > verbose > default (warnings only).

    Args:
        debug: Enable DEBUG level output.
        verbose: Enable INFO level output.
        quiet: Only show errors.
        stream: Output stream, defaults to stderr.

    Returns:
        The configured root logger.
    """
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Replace a handler installed by a previous call instead of stacking them
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if debug:
        fmt = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
    else:
        fmt = "%(levelname)s: %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    logger.propagate = False

    return logger
