"""Centralized logging configuration for the ``spend_analysis`` package.

Public helpers:

- ``configure_logging(...)``: attach one ``StreamHandler`` to the package root
  logger (``"spend_analysis"``). Entry points (the CLI, a host service) call it
  once at startup; later calls only adjust the level.
- ``get_logger(name)``: return a child logger. Short names such as
  ``"recurrence"`` are expanded to ``"spend_analysis.recurrence"``. Until an
  application configures logging, the package root carries a ``NullHandler``
  so library use stays silent.

Library modules never attach handlers themselves. Log lines follow the
``operation:event key=value`` shape used throughout the package so they can
be grepped and parsed without a JSON formatter.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "spend_analysis"
LEVEL_ENV_VAR = "SPEND_ANALYSIS_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    # getLevelName returns "Level <name>" for unknown names
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure the package root logger and return it.

    Parameters
    ----------
    level:
        ``int`` level or level name. ``None`` falls back to
        ``SPEND_ANALYSIS_LOG_LEVEL`` and then ``INFO``.
    fmt:
        Format string for the handler (default :data:`DEFAULT_FORMAT`).
    stream:
        Output stream for the handler (default ``sys.stderr``).
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = _resolve_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
        logger.addHandler(_handler)
        logger.propagate = False

    _handler.setLevel(resolved)
    logger.setLevel(resolved)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``spend_analysis.<name>`` (or ``name`` if already qualified)."""

    root = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not root.handlers:
        root.addHandler(logging.NullHandler())
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "LEVEL_ENV_VAR", "PACKAGE_LOGGER"]
