"""Rotating logger setup for the installer service."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union


def setup_logger(
    name: str = "installer",
    log_file: Union[str, Path] = "./logs/installer.log",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 3,
    level: Union[int, str] = logging.INFO,
) -> logging.Logger:
    """Setup rotating file logger with ISO 8601 timestamps.

    Child loggers (``installer.orchestrator``, ``installer.durable_writer``...)
    propagate here, so one call configures the whole package.

    Args:
        name: Logger name
        log_file: Path to log file (created if doesn't exist)
        max_bytes: Max size before rotation
        backup_count: Number of rotated files to keep
        level: Logging level, as int or name ("DEBUG", "INFO", ...)

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if already configured
    if logger.handlers:
        return logger

    file_handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
