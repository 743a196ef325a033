"""
Loguru setup for the photo cache.

Importing this module configures the sinks from settings and exposes ``logger``.
Records emitted through the standard ``logging`` module (httpx, httpcore,
asyncio, diskcache) are forwarded into loguru.
"""

import inspect
import logging
import sys
from pathlib import Path

from loguru import logger as _logger

from ..settings import Settings, settings

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Log every request at INFO
CHATTY_LOGGERS = ("httpx", "httpcore")

LOG_FILE_NAME = "tava.log"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original call site."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames inside the logging package
        frame, depth = inspect.currentframe(), 0
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _route_stdlib_logging(level: str) -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    quiet_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in CHATTY_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(quiet_level)


def setup_logging(
    level: str = "INFO",
    format: str | None = None,
    log_file: str | Path | None = None,
    rotation: str = "20 MB",
    retention: str = "1 week",
) -> None:
    """
    Replace loguru's sinks with a stderr sink and, optionally, a rotating file.

    Args:
        level: Minimum level for every sink
        format: Loguru format string (DEFAULT_FORMAT if None)
        log_file: Write to this file as well; parent directories are created
        rotation: Size or age at which the file is rotated
        retention: How long rotated files are kept
    """
    fmt = format or DEFAULT_FORMAT

    _logger.remove()
    _logger.add(sys.stderr, level=level, format=fmt, colorize=True, backtrace=True)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _logger.add(
            str(path),
            level=level,
            format=fmt,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
        )

    _route_stdlib_logging(level)


def configure_from_settings(config: Settings) -> None:
    """Apply the ``log_*`` settings."""
    setup_logging(
        level=config.log_level,
        format=config.log_format,
        log_file=config.get_log_dir() / LOG_FILE_NAME if config.log_to_file else None,
        rotation=config.log_rotation,
        retention=config.log_retention,
    )


configure_from_settings(settings)

logger = _logger
