"""Logging configuration using loguru.

Intercepts stdlib logging so that uvicorn, watchfiles, httpx, etc. all flow
through loguru with a unified format.  An optional file sink backs the
"Show log" action attached to error notifications.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_log_file: Path | None = None


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure loguru as the sole logging sink.

    Call this once at process startup.  When *log_file* is given, records are
    also written there (rotated at 5 MB) so the path can be offered to users.
    """
    global _log_file  # noqa: PLW0603

    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT)

    if log_file is not None:
        _log_file = Path(log_file).expanduser()
        _log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(_log_file, level=level, format=_LOG_FORMAT, rotation="5 MB", retention=3, colorize=False)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for name in ("uvicorn.access", "httpx", "httpcore", "watchfiles.main"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialised (level={}, file={})", level, _log_file)


def current_log_file() -> Path | None:
    """Return the file sink configured by ``setup_logging``, if any."""
    return _log_file
