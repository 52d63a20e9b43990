"""
Logging helpers for memindex.

Modules log through ``get_logger(__name__)``. Those loggers carry no
handlers of their own and propagate to the ``memindex`` package logger,
which :func:`setup_logger` configures once (``SemanticMemory.from_settings``
calls it with ``Settings.log_level``).
"""

import logging
import sys
from typing import Optional, Union

from ..core.exceptions import ValidationError


PACKAGE_LOGGER = "memindex"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

Level = Union[str, int]

# Marks handlers installed by setup_logger
_HANDLER_FLAG = "_memindex_handler"


def resolve_level(level: Level) -> int:
    """Turn ``"debug"``, ``"INFO"``, ``logging.WARNING``... into a level number."""
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValidationError(f"Unknown log level: {level!r}")
    return resolved


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: Level = "INFO",
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a logger with a stderr handler and an optional file handler.

    Calling it again for the same name replaces the handlers installed by
    the previous call; handlers added by anything else are left alone.

    Args:
        name: Logger name
        level: Level name or number
        format_string: Custom format string
        log_file: Also append records to this file

    Returns:
        The configured logger

    Raises:
        ValidationError: If the level is unknown
    """
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level))

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_FLAG, True)
        logger.addHandler(handler)

    return logger


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Logger for a memindex module (unconfigured, see module docstring)."""
    return logging.getLogger(name)


class LogContext:
    """
    Temporarily change a logger's level.

    Example:
        >>> with LogContext(level="DEBUG"):
        ...     index.load(state)
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        level: Level = "DEBUG",
    ):
        self.logger = logger if logger is not None else get_logger()
        self.new_level = resolve_level(level)
        self.old_level = self.logger.level

    def __enter__(self) -> logging.Logger:
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, *args) -> None:
        self.logger.setLevel(self.old_level)
