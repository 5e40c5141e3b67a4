"""Inference - provider adapters and the shared rate-limited client."""

from finmoe.inference.client import (
    KILL_SWITCH_STUB,
    PromptSpec,
    RateLimitedInferenceClient,
    RateLimiterState,
)
from finmoe.inference.provider import (
    InferenceProvider,
    OpenAICompatibleProvider,
    parse_retry_after,
)

__all__ = [
    "KILL_SWITCH_STUB",
    "PromptSpec",
    "RateLimitedInferenceClient",
    "RateLimiterState",
    "InferenceProvider",
    "OpenAICompatibleProvider",
    "parse_retry_after",
]
