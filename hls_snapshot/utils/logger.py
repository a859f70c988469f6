"""
Logging setup for the HLS snapshot pipeline.

Console output plus an optional rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    log_file: Optional[str] = None,
    level: str = 'INFO',
    max_size_mb: int = 10,
    backup_count: int = 3,
    log_format: Optional[str] = None,
    console: bool = True
) -> None:
    """
    Initialize logging configuration.

    Args:
        log_file: Path to log file (None = no file logging)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        max_size_mb: Maximum log file size in MB before rotation
        backup_count: Number of rotated files to keep
        log_format: Log format string
        console: Whether to log to stdout
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Replace handlers from any earlier call
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # aiohttp logs every connection problem we already report per stream
    logging.getLogger('aiohttp').setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the specified module.

    Handlers live on the root logger and are installed by setup_logging.
    """
    return logging.getLogger(name)


def setup_from_config(config: dict, level: Optional[str] = None) -> None:
    """
    Setup logging from the `logging` configuration section.

    Args:
        config: Logging section with keys level, file, max_size_mb,
            backup_count, format and console
        level: Overrides the configured level when given
    """
    setup_logging(
        log_file=config.get('file'),
        level=level or config.get('level', 'INFO'),
        max_size_mb=config.get('max_size_mb', 10),
        backup_count=config.get('backup_count', 3),
        log_format=config.get('format'),
        console=config.get('console', True)
    )
