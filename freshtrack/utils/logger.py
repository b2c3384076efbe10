"""Logging configuration for the ledger, scanner and outer surfaces."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import get_config


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure a named logger once: stdout plus an optional rotating file.

    Stdout receives the configured level. The file, when attached, also
    receives DEBUG records unless ``level`` is given explicitly.

    Args:
        name: Logger name
        log_file: Optional log file path, ignored in production
        level: Optional log level (overrides config)

    Returns:
        Configured logger instance
    """
    config = get_config()

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    configured = getattr(logging, (level or config.logging.level).upper())
    logger.setLevel(configured)
    formatter = logging.Formatter(config.logging.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(configured)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # No log files in production, stdout is collected by the host
    if log_file and not config.is_production:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count
        )
        # Suppressed scans and commit traces only reach the files
        file_level = configured if level else logging.DEBUG
        file_handler.setLevel(file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.setLevel(min(configured, file_level))

    return logger


def get_channel_logger(channel: str, level: Optional[str] = None) -> logging.Logger:
    """Logger whose file is configured under ``logging.files.<channel>``."""
    return setup_logger(channel, getattr(get_config().logging.files, channel), level)


def get_ledger_logger() -> logging.Logger:
    """Stock movements, product edits, alert recomputation and persistence."""
    return get_channel_logger("ledger")


def get_scanner_logger() -> logging.Logger:
    """Scan admissions, drops and prompt decisions."""
    return get_channel_logger("scanner")


def get_error_logger() -> logging.Logger:
    return get_channel_logger("error", "ERROR")


def get_api_logger() -> logging.Logger:
    return setup_logger("api")


def get_scheduler_logger() -> logging.Logger:
    """Get logger for APScheduler internals.

    Without this, exceptions raised by jobs in the background thread
    never show up.
    """
    return setup_logger("apscheduler")
