"""Configuration module - static settings and kill switches."""

from finmoe.common.config.settings import (
    Config,
    Environment,
    LogLevel,
    GROQ_OPENAI_BASE_URL,
    get_config,
    reset_config,
)
from finmoe.common.config.emergency import ConfigSource, DynamicConfig, KillSwitch

__all__ = [
    "Config",
    "Environment",
    "LogLevel",
    "GROQ_OPENAI_BASE_URL",
    "get_config",
    "reset_config",
    "ConfigSource",
    "DynamicConfig",
    "KillSwitch",
]
