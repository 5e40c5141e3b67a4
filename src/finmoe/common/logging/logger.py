"""Centralized logging configuration."""

import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(LOG_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_logging(level: str = "INFO", logger_name: Optional[str] = "finmoe") -> logging.Logger:
    """Attach the standard handler to the package logger.

    Module loggers (``logging.getLogger(__name__)``) propagate to it.
    """
    return get_logger(logger_name, level)
