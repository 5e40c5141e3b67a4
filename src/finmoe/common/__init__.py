"""Common utilities - logging, config, exceptions."""

from finmoe.common.logging.logger import get_logger, configure_logging
from finmoe.common.config import Config, get_config, reset_config
from finmoe.common.exceptions import (
    FinMoEException,
    ConfigurationError,
    ValidationError,
    InferenceError,
    RateLimitError,
    ProviderError,
    ParseError,
    UnknownWorkerError,
    RequestNotFoundError,
    InvalidTransitionError,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    # Config
    "Config",
    "get_config",
    "reset_config",
    # Exceptions
    "FinMoEException",
    "ConfigurationError",
    "ValidationError",
    "InferenceError",
    "RateLimitError",
    "ProviderError",
    "ParseError",
    "UnknownWorkerError",
    "RequestNotFoundError",
    "InvalidTransitionError",
]
