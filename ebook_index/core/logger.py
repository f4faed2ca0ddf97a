"""
Centralized logging setup for the ebook index.

Provides console and rotating file output with configuration from config.json.
Uses a guard to prevent multiple initialization.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FILE_NAME = "ebook_index.log"

_logger_initialized = False


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    logs_directory: Path = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5
) -> None:
    """
    Initialize the root logger with console and optional file handlers.

    Console output goes to stderr so command output on stdout stays clean.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Format string for log messages.
        logs_directory: Directory for log files. If None, file logging disabled.
        max_file_size_mb: Maximum size of each log file in MB.
        backup_count: Number of backup files to keep.
    """
    global _logger_initialized

    if _logger_initialized:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if logs_directory:
        logs_directory = Path(logs_directory)
        logs_directory.mkdir(parents=True, exist_ok=True)

        log_file = logs_directory / LOG_FILE_NAME
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _logger_initialized = True


def set_level(log_level: str) -> None:
    """Change the root logger level after initialization."""
    logging.getLogger().setLevel(getattr(logging, log_level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Automatically initializes logging from config on first call.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Configured Logger instance.
    """
    global _logger_initialized

    if not _logger_initialized:
        from .config_loader import get_config
        from .exceptions import ConfigurationError

        try:
            config = get_config()
            setup_logging(
                log_level=config.logging.level,
                log_format=config.logging.format,
                logs_directory=config.paths.logs_directory,
                max_file_size_mb=config.logging.max_file_size_mb,
                backup_count=config.logging.backup_count
            )
        except ConfigurationError:
            setup_logging()

    return logging.getLogger(name)
