"""Inference provider adapters.

The core only needs ``complete(prompt, model, max_tokens, temperature)``.
Provider failures are translated into the FinMoE taxonomy here so the
rate limiter never sees SDK exception types.
"""

import logging
from typing import Any, Mapping, Optional, Protocol

import openai
from openai import AsyncOpenAI

from finmoe.common.config.settings import GROQ_OPENAI_BASE_URL
from finmoe.common.exceptions import ConfigurationError, ProviderError, RateLimitError

logger = logging.getLogger(__name__)


class InferenceProvider(Protocol):
    """External text-completion provider."""

    async def complete(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the completion text.

        Raises:
            RateLimitError: provider rate limit, with optional retry-after hint
            ProviderError: any other provider failure
        """
        ...


def parse_retry_after(headers: Optional[Mapping[str, Any]]) -> Optional[float]:
    """Read a Retry-After header as seconds. HTTP-date values are ignored."""
    if not headers:
        return None
    raw = headers.get("retry-after") or headers.get("Retry-After")
    if raw is None:
        return None
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class OpenAICompatibleProvider:
    """Chat-completions provider over the OpenAI wire protocol.

    Defaults to Groq's OpenAI-compatible endpoint. SDK-level retries are
    disabled; retry policy belongs to the callers of the rate limiter.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = GROQ_OPENAI_BASE_URL,
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None and not api_key:
            raise ConfigurationError(
                "FINMOE_INFERENCE_API_KEY (or GROQ_API_KEY) is not configured"
            )
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                messages=[{"role": "user", "content": prompt}],
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimitError(
                f"Provider rate limit for model {model}",
                retry_after_seconds=parse_retry_after(e.response.headers),
            ) from e
        except openai.APIConnectionError as e:
            # Includes APITimeoutError
            raise ProviderError(
                f"Provider unreachable: {type(e).__name__}",
                retryable=True,
                details={"model": model},
            ) from e
        except openai.APIStatusError as e:
            raise ProviderError(
                f"Provider returned HTTP {e.status_code}",
                retryable=e.status_code >= 500,
                details={"model": model, "status_code": e.status_code},
            ) from e
        except openai.APIError as e:
            raise ProviderError(
                f"Provider error: {e}", details={"model": model}
            ) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def test_connection(self, model: str = "llama-3.1-8b-instant") -> bool:
        """Check that the provider answers a trivial prompt. Never raises."""
        try:
            content = await self.complete(
                "Hello! Just testing the connection.", model=model, max_tokens=50, temperature=0.0
            )
        except (ProviderError, RateLimitError) as e:
            logger.warning(f"Inference connection test failed: {e.message}")
            return False
        return bool(content)
