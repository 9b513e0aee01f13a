"""Logging for ``receipt_ledger``.

Every module logs through ``get_logger(__name__)``, which lands under the
``receipt_ledger`` logger. Until a host installs output with
:func:`configure_logging` that logger only carries a ``NullHandler``, so
embedding the library in a UI shell prints nothing by default.

The CLI calls :func:`configure_logging` from its root callback. The console
handler is recognised by name, which makes repeated calls harmless and lets
:func:`reset_logging` undo it (tests, re-entrant hosts).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

from .config import LOG_LEVEL_ENV

PACKAGE_LOGGER = "receipt_ledger"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_HANDLER_NAME = "receipt_ledger.console"


def resolve_level(level: int | str | None = None) -> int:
    """Explicit ``level``, else ``RECEIPT_LEDGER_LOG_LEVEL``, else INFO.

    Names are case-insensitive; numeric strings are accepted. Unknown names
    resolve to INFO.
    """

    if level is None:
        level = os.getenv(LOG_LEVEL_ENV)
    if isinstance(level, int):
        return level
    name = (level or "").strip().upper()
    if name.isdigit():
        return int(name)
    mapping = logging.getLevelNamesMapping()
    return mapping.get(name, logging.INFO)


def _console_handler(logger: logging.Logger) -> logging.Handler | None:
    return next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send package logs to ``stream`` (stderr by default); first call wins."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _console_handler(pkg) is not None:
        return pkg

    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    # Records are emitted once, here, not again by the root logger.
    pkg.propagate = False
    return pkg


def reset_logging() -> None:
    """Drop every handler from the package logger and restore library defaults."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
        if h.get_name() == _HANDLER_NAME:
            h.close()
    pkg.setLevel(logging.NOTSET)
    pkg.propagate = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "get_logger",
    "reset_logging",
    "resolve_level",
    "PACKAGE_LOGGER",
]
