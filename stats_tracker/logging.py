"""Logging configuration using Loguru.

Library modules log through ``logging.getLogger(__name__)``. Calling
``setup_logging`` once at program start routes those records into loguru,
which writes colored console output and a rotating JSON log file.

Example:
    >>> from stats_tracker.logging import setup_logging, get_logger
    >>> setup_logging(level="DEBUG", log_dir="logs")
    >>> logger = get_logger(__name__)
    >>> logger.info("Applying event {}", 481)

Status Tags:
    >>> from stats_tracker.logging import SUCCESS, FAIL, WARN
    >>> logger.info(f"{SUCCESS} Game 12 recalculated")
    >>> logger.warning(f"{WARN} Rebound without kind in game 12")
    >>> logger.error(f"{FAIL} Event 481 could not be applied")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

from loguru import logger

# ANSI tags, rendered by loguru's colorize=True console sink
SUCCESS = "\033[92m[SUCCESS]\033[0m"  # Green
FAIL = "\033[91m[FAIL]\033[0m"        # Red
WARN = "\033[93m[WARN]\033[0m"        # Yellow

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

# Loggers that are chatty at DEBUG regardless of application level
_SQLALCHEMY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "sqlalchemy.orm")


class InterceptHandler(logging.Handler):
    """Forward stdlib ``logging`` records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging-module frames so loguru reports the real call site
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "logs",
    rotation: str = "1 day",
    retention: str = "30 days",
    serialize: bool = True,
    console: bool = True,
    sql_echo: bool = False,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files; created if missing.
        rotation: When to rotate log files (e.g., "1 day", "100 MB").
        retention: How long to keep old log files.
        serialize: Write the file log as JSON lines.
        console: Also log to stderr.
        sql_echo: Let SQLAlchemy statement logging through at INFO.
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / "stats_tracker_{time:YYYY-MM-DD}.log",
        level=level,
        format=FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        serialize=serialize,
        enqueue=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _SQLALCHEMY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if sql_echo else logging.WARNING)


def get_logger(name: str) -> Any:
    """Return the loguru logger bound to ``name``."""
    return logger.bind(name=name)


__all__ = ["get_logger", "logger", "setup_logging", "SUCCESS", "FAIL", "WARN"]
