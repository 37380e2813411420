"""Logging setup for the record tracker.

Every module logs through a child of the ``record_tracker`` logger. The CLI
configures that logger once per run with the level from settings and the
record kind being worked on; each line carries the kind, so job and ticket
runs sharing one log stay apart.
"""

import logging
import sys
from typing import TextIO

LOGGER_NAME = "record_tracker"

LOG_FORMAT = "%(asctime)s - %(name)s - {kind} - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_HANDLER = "record_tracker.console"


def _formatter(kind: str) -> logging.Formatter:
    return logging.Formatter(
        LOG_FORMAT.format(kind=kind.replace("%", "%%")), datefmt=DATE_FORMAT
    )


def console_handler() -> logging.Handler | None:
    """Return the handler installed by ``configure_logging``, if any."""
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        if handler.get_name() == CONSOLE_HANDLER:
            return handler
    return None


def configure_logging(
    level: str | None = None,
    kind: str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the package logger.

    The first call installs one console handler. Later calls reuse it and
    only change what they are given.

    Args:
        level: Log level name. Defaults to INFO.
        kind: Record kind shown on every line (``job`` or ``ticket``).
            Defaults to ``-`` until a kind is known.
        stream: Where to write. Defaults to stderr.

    Returns:
        The ``record_tracker`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger.setLevel(log_level)

    handler = console_handler()
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.set_name(CONSOLE_HANDLER)
        handler.setFormatter(_formatter(kind or "-"))
        logger.addHandler(handler)
        logger.propagate = False
    else:
        if stream is not None:
            handler.setStream(stream)
        if kind is not None:
            handler.setFormatter(_formatter(kind))
    handler.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child of the package logger.

    Accepts either a short name (``"store"``) or a module ``__name__``
    (``"record_tracker.records.store"``); both land under ``record_tracker``.
    """
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Drop handlers and level so the next configure starts fresh (tests)."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
