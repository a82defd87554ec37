"""Logging setup for the interactive client.

The prompt owns the terminal, so log records go to a rotating file under the
config directory instead of the console.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from mysqlit.shared.core.utils import CONFIG_DIR

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(
    name: str = "mysqlit",
    log_dir: Path | None = None,
    log_filename: str = "mysqlit.log",
    level: int | str = logging.WARNING,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> logging.Logger:
    """Create a logger with a rotating file handler.

    Args:
        name: Logger name; child loggers (``mysqlit.domains...``) propagate to it
        log_dir: Directory for log files (created if missing), defaults to <config>/logs
        log_filename: Log file name
        level: Logging level, as an int or a level name such as ``"INFO"``
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    log_dir = log_dir or CONFIG_DIR / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    if not logger.handlers:
        file_handler = RotatingFileHandler(
            log_dir / log_filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.propagate = False

    return logger
