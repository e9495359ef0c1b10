"""
Logging configuration for production use.

Provides console and rotating file output for the monitor. Library modules
log through named loggers; the entry point calls setup_logging() once.
"""

import logging
import logging.handlers
from typing import Optional

from .config import config


def setup_logging(logger_name: str = "fantasy_anomaly", level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        logger_name: Name of the logger ("" configures the root logger)
        level: Optional level override (defaults to config.log_level)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Don't add handlers if logger already configured
    if logger.handlers:
        return logger

    level = level or config.log_level
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = config.logs_dir / f"{logger_name or 'monitor'}.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
