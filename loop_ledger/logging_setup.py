"""Logging setup for ``loop_ledger``.

Every module logs through ``get_logger("loop_ledger.<module>")`` and never
installs handlers of its own. Until an entrypoint calls
:func:`configure_logging`, the ``loop_ledger`` logger only carries a
``NullHandler``, so importing the package as a library stays silent.

Messages use an ``event key=value`` form, e.g.
``cache:loop_saved id=... date=... total=...``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "loop_ledger"
_LEVEL_ENV_VAR = "LOOP_LEDGER_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    """Resolve ``level`` (int, name or numeric string) to a logging level.

    ``None`` reads ``LOOP_LEDGER_LOG_LEVEL``; anything unrecognised is INFO.
    """

    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR)
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelNamesMapping().get(name)
        if numeric is not None:
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    force: bool = False,
) -> None:
    """Attach one ``StreamHandler`` to the ``loop_ledger`` logger.

    Parameters
    ----------
    level:
        Level as ``int`` or name (``"DEBUG"``). ``None`` falls back to the
        ``LOOP_LEDGER_LOG_LEVEL`` environment variable, then INFO.
    fmt:
        Format string; defaults to ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Handler stream, ``sys.stderr`` when omitted.
    force:
        Replace an earlier configuration instead of keeping it.

    Later calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    _CONFIGURED = True


def reset_logging() -> None:
    """Undo :func:`configure_logging` (drop handlers, propagate to root again)."""

    global _CONFIGURED
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]
