"""
Logging setup for rye self management.

Progress meant for the user is printed to stdout. Diagnostics, warnings
and errors go through the ``rye_self`` logger to stderr, formatted the way
rye reports problems (``warning: ...``, ``error: ...``). A log file can be
requested with ``log_file`` or the RYE_SELF_LOG environment variable.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "rye_self"
LOG_FILE_ENV = "RYE_SELF_LOG"

_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_FILE_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_configured: Optional[logging.Logger] = None


def _resolve_level(level: str, verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.getLevelName(level.upper())


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter("%(prefix)s%(message)s", use_colors=sys.stderr.isatty()))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    # the file keeps debug records even when the console is quiet
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure the ``rye_self`` logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        level: Console level name when neither verbose nor quiet is set
        log_file: File receiving all records (default: $RYE_SELF_LOG)
        verbose: Show debug records and ``vlog`` output
        quiet: No console handler, warnings and up only
        propagate: Pass records on to the root logger (used by tests)

    Returns:
        The configured logger
    """
    global _configured

    resolved = _resolve_level(level, verbose, quiet)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not quiet:
        logger.addHandler(_stderr_handler(resolved))

    log_file = log_file or os.environ.get(LOG_FILE_ENV)
    if log_file:
        logger.addHandler(_file_handler(Path(log_file)))

    logger.propagate = propagate
    _configured = logger
    return logger


def get_logger() -> logging.Logger:
    """Return the ``rye_self`` logger, configuring defaults on first use."""
    if _configured is None:
        return setup_logging()
    return _configured


class ColoredFormatter(logging.Formatter):
    """
    Sets ``record.prefix`` to a rye-style level tag such as ``warning: ``.

    Informational records get no prefix so they read like normal output.
    """

    PREFIXES = {
        logging.DEBUG: ("debug: ", "\033[2m"),
        logging.WARNING: ("warning: ", "\033[33m"),
        logging.ERROR: ("error: ", "\033[31m"),
        logging.CRITICAL: ("error: ", "\033[1;31m"),
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        tag, color = self.PREFIXES.get(record.levelno, ("", ""))
        if tag and self.use_colors:
            record.prefix = f"{color}{tag}{self.RESET}"
        else:
            record.prefix = tag
        return super().format(record)
