"""Configuration management - Centralized configuration for FinMoE.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks,
once, when the Config object is built. There is no live reload.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from finmoe.common.constants import StorageConstants, WorkerConstants
from finmoe.common.exceptions import ConfigurationError


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


GROQ_OPENAI_BASE_URL = "https://api.groq.com/openai/v1"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else None


def _env_agents(name: str, default: str) -> Tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass
class Config:
    """Central configuration object for FinMoE.

    All settings can be overridden via environment variables prefixed with FINMOE_.

    Example:
        FINMOE_ENVIRONMENT=production
        FINMOE_MIN_REQUEST_INTERVAL_MS=20000
        FINMOE_FRAUD_LOAD_THRESHOLD=85
    """

    # Core settings
    environment: Environment = field(
        default_factory=lambda: Environment(
            os.getenv("FINMOE_ENVIRONMENT", "development")
        )
    )
    debug: bool = field(
        default_factory=lambda: os.getenv("FINMOE_DEBUG", "false").lower() == "true"
    )
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("FINMOE_LOG_LEVEL", "INFO"))
    )

    # Kill-switch source (see emergency.DynamicConfig)
    config_source: str = field(
        default_factory=lambda: os.getenv("FINMOE_CONFIG_SOURCE", "environment")
    )
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )

    # Inference provider
    inference_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("FINMOE_INFERENCE_API_KEY") or os.getenv("GROQ_API_KEY")
    )
    inference_base_url: str = field(
        default_factory=lambda: os.getenv("FINMOE_INFERENCE_BASE_URL", GROQ_OPENAI_BASE_URL)
    )
    min_request_interval_ms: int = field(
        default_factory=lambda: _env_int("FINMOE_MIN_REQUEST_INTERVAL_MS", 15000)
    )
    call_timeout_seconds: float = field(
        default_factory=lambda: _env_float("FINMOE_CALL_TIMEOUT_SECONDS", 30.0)
    )
    rate_limit_retries: int = field(
        default_factory=lambda: _env_int("FINMOE_RATE_LIMIT_RETRIES", 1)
    )

    # Per-specialization models
    router_model: str = field(
        default_factory=lambda: os.getenv("FINMOE_ROUTER_MODEL", "llama-3.1-8b-instant")
    )
    credit_model: str = field(
        default_factory=lambda: os.getenv("FINMOE_CREDIT_MODEL", "llama-3.3-70b-versatile")
    )
    fraud_model: str = field(
        default_factory=lambda: os.getenv("FINMOE_FRAUD_MODEL", "llama-3.1-8b-instant")
    )
    esg_model: str = field(
        default_factory=lambda: os.getenv("FINMOE_ESG_MODEL", "llama-3.3-70b-versatile")
    )

    # Per-worker scaling thresholds
    credit_load_threshold: float = field(
        default_factory=lambda: _env_float("FINMOE_CREDIT_LOAD_THRESHOLD", 70.0)
    )
    fraud_load_threshold: float = field(
        default_factory=lambda: _env_float("FINMOE_FRAUD_LOAD_THRESHOLD", 80.0)
    )
    esg_load_threshold: float = field(
        default_factory=lambda: _env_float("FINMOE_ESG_LOAD_THRESHOLD", 60.0)
    )

    # Load model tuning
    dispatch_load_min: float = field(
        default_factory=lambda: _env_float("FINMOE_DISPATCH_LOAD_MIN", 15.0)
    )
    dispatch_load_max: float = field(
        default_factory=lambda: _env_float("FINMOE_DISPATCH_LOAD_MAX", 40.0)
    )
    completion_load_min: float = field(
        default_factory=lambda: _env_float("FINMOE_COMPLETION_LOAD_MIN", 10.0)
    )
    completion_load_max: float = field(
        default_factory=lambda: _env_float("FINMOE_COMPLETION_LOAD_MAX", 30.0)
    )
    load_floor: float = field(
        default_factory=lambda: _env_float("FINMOE_LOAD_FLOOR", 10.0)
    )
    random_seed: Optional[int] = field(
        default_factory=lambda: _env_optional_int("FINMOE_RANDOM_SEED")
    )

    # Routing
    fallback_default_agents: Tuple[str, ...] = field(
        default_factory=lambda: _env_agents(
            "FINMOE_FALLBACK_DEFAULT_AGENTS",
            f"{WorkerConstants.CREDIT_AGENT_ID},{WorkerConstants.FRAUD_AGENT_ID}",
        )
    )

    # History buffers
    max_request_history: int = field(
        default_factory=lambda: _env_int(
            "FINMOE_MAX_REQUEST_HISTORY", StorageConstants.MAX_REQUEST_HISTORY
        )
    )
    max_log_history: int = field(
        default_factory=lambda: _env_int(
            "FINMOE_MAX_LOG_HISTORY", StorageConstants.MAX_LOG_HISTORY
        )
    )

    # Metrics
    publish_metrics: bool = field(
        default_factory=lambda: os.getenv("FINMOE_PUBLISH_METRICS", "false").lower() == "true"
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.min_request_interval_ms < 0:
            raise ConfigurationError(
                "FINMOE_MIN_REQUEST_INTERVAL_MS must be non-negative",
                details={"value": self.min_request_interval_ms},
            )
        if self.call_timeout_seconds <= 0:
            raise ConfigurationError(
                "FINMOE_CALL_TIMEOUT_SECONDS must be positive",
                details={"value": self.call_timeout_seconds},
            )
        if self.rate_limit_retries < 0:
            raise ConfigurationError("FINMOE_RATE_LIMIT_RETRIES must be non-negative")
        if not 0 <= self.dispatch_load_min <= self.dispatch_load_max:
            raise ConfigurationError(
                "Dispatch load range is invalid",
                details={"min": self.dispatch_load_min, "max": self.dispatch_load_max},
            )
        if not 0 <= self.completion_load_min <= self.completion_load_max:
            raise ConfigurationError(
                "Completion load range is invalid",
                details={"min": self.completion_load_min, "max": self.completion_load_max},
            )
        if not 0 <= self.load_floor < 100:
            raise ConfigurationError(
                "FINMOE_LOAD_FLOOR must be within [0, 100)",
                details={"value": self.load_floor},
            )
        unknown = set(self.fallback_default_agents) - set(WorkerConstants.NAMES)
        if not self.fallback_default_agents or unknown:
            raise ConfigurationError(
                "FINMOE_FALLBACK_DEFAULT_AGENTS must name known workers",
                details={"unknown": sorted(unknown)},
            )
        if self.max_request_history < 1 or self.max_log_history < 1:
            raise ConfigurationError("History buffer sizes must be at least 1")

        # Warn about debug in production
        if self.environment == Environment.PRODUCTION and self.debug:
            import warnings
            warnings.warn(
                "Debug mode is enabled in production environment",
                RuntimeWarning,
                stacklevel=2
            )

    @property
    def min_request_interval_seconds(self) -> float:
        """Minimum spacing between outbound provider calls, in seconds."""
        return self.min_request_interval_ms / 1000.0

    @property
    def load_thresholds(self) -> Dict[str, float]:
        """Scaling threshold per worker id."""
        return {
            WorkerConstants.CREDIT_AGENT_ID: self.credit_load_threshold,
            WorkerConstants.FRAUD_AGENT_ID: self.fraud_load_threshold,
            WorkerConstants.ESG_AGENT_ID: self.esg_load_threshold,
        }

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
