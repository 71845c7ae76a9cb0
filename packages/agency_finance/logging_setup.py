"""Logging for the ``agency_finance`` package.

Library modules ask for ``get_logger("agency_finance.<module>")`` and emit
grep-friendly ``area:event key=value`` messages; they never attach handlers.
Only an entry point (the CLI callback, a notebook) calls
:func:`configure_logging`, which installs a single named ``StreamHandler`` on
the ``agency_finance`` logger. Until then the package logger only carries a
``NullHandler``.

Environment:

- ``AGENCY_FINANCE_LOG_LEVEL``: level name or number, used when no explicit
  level is passed (default ``INFO``).
- ``AGENCY_FINANCE_LOG_FORMAT``: ``logging.Formatter`` string, used when no
  explicit format is passed.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "agency_finance"
LEVEL_ENV = "AGENCY_FINANCE_LOG_LEVEL"
FORMAT_ENV = "AGENCY_FINANCE_LOG_FORMAT"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Name given to the handler installed by configure_logging(); its presence is
# what marks the package logger as configured.
_HANDLER_NAME = "agency_finance.stream"


def _as_level(value: int | str | None) -> int | None:
    if isinstance(value, int):
        return value
    if not value or not value.strip():
        return None
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name)


def resolve_level(level: int | str | None = None) -> int:
    """Explicit ``level``, else ``AGENCY_FINANCE_LOG_LEVEL``, else ``INFO``.

    Unknown names fall through to the next source.
    """

    for candidate in (level, os.getenv(LEVEL_ENV)):
        resolved = _as_level(candidate)
        if resolved is not None:
            return resolved
    return logging.INFO


def _installed_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return handler
    return None


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> logging.Logger:
    """Install the package handler once and return the package logger.

    Later calls leave the existing handler, level and format untouched.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _installed_handler(logger) is not None:
        return logger

    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or os.getenv(FORMAT_ENV) or DEFAULT_FORMAT, DEFAULT_DATEFMT)
    )

    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False
    return logger


def reset_logging() -> None:
    """Return the package logger to its unconfigured state (tests)."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging", "resolve_level"]
