"""Rate-Limited Inference Client.

Serializes every outbound provider call through one shared limiter:

- before a call, wait until ``next_allowed_at``
- after any outcome, push ``next_allowed_at`` to ``now + min_interval``
- after a rate-limit signal, push it to ``now + max(min_interval, retry_after)``
  and re-raise; retrying is the caller's decision
- every call carries a deadline; a timeout is a retryable ProviderError
- with the kill switch on, no call is made and a fixed stub is returned
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from finmoe.common.exceptions import ProviderError, RateLimitError
from finmoe.inference.provider import InferenceProvider

logger = logging.getLogger(__name__)

KILL_SWITCH_STUB = "Kill switch active: inference disabled, simulated response."

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]
BackoffListener = Callable[[float], None]


@dataclass(frozen=True)
class PromptSpec:
    """One outbound completion request."""
    prompt: str
    model: str
    max_tokens: int = 400
    temperature: float = 0.3


@dataclass
class RateLimiterState:
    """Earliest time (on the client's clock) the next call may start.

    Never moves backwards.
    """
    next_allowed_at: float = 0.0

    def advance_to(self, timestamp: float) -> None:
        if timestamp > self.next_allowed_at:
            self.next_allowed_at = timestamp


class RateLimitedInferenceClient:
    """Shared gateway to the inference provider.

    One instance is owned by the dispatch service and passed to the
    router and every expert.
    """

    def __init__(
        self,
        provider: Optional[InferenceProvider],
        min_interval_seconds: float,
        kill_switch: bool = False,
        call_timeout_seconds: float = 30.0,
        state: Optional[RateLimiterState] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        on_backoff: Optional[BackoffListener] = None,
    ):
        """Initialize the client.

        Args:
            provider: Provider adapter. May be None only with the kill switch on.
            min_interval_seconds: Minimum spacing between call starts
            kill_switch: Return stub text instead of calling out
            call_timeout_seconds: Deadline for a single provider call
            state: Shared limiter state. A fresh one is created if not provided.
            clock: Monotonic time source, in seconds
            sleep: Awaitable delay used while waiting for the next slot
            on_backoff: Called with the backoff in seconds after a rate-limit signal
        """
        self._provider = provider
        self._min_interval = min_interval_seconds
        self._kill_switch = kill_switch
        self._call_timeout = call_timeout_seconds
        self.state = state or RateLimiterState()
        self._clock = clock
        self._sleep = sleep
        self.on_backoff = on_backoff
        self._lock = asyncio.Lock()

    @property
    def kill_switch(self) -> bool:
        return self._kill_switch

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    async def invoke(self, spec: PromptSpec) -> str:
        """Run one completion under the rate limit.

        Raises:
            RateLimitError: provider signalled a rate limit
            ProviderError: any other failure, including a missed deadline
        """
        if self._kill_switch:
            return KILL_SWITCH_STUB
        if self._provider is None:
            raise ProviderError("No inference provider configured")

        async with self._lock:
            wait = max(0.0, self.state.next_allowed_at - self._clock())
            if wait > 0:
                logger.debug(f"Rate limiter waiting {wait:.2f}s before calling {spec.model}")
                await self._sleep(wait)

            backoff = self._min_interval
            try:
                return await asyncio.wait_for(
                    self._provider.complete(
                        spec.prompt,
                        model=spec.model,
                        max_tokens=spec.max_tokens,
                        temperature=spec.temperature,
                    ),
                    timeout=self._call_timeout,
                )
            except RateLimitError as e:
                backoff = max(self._min_interval, e.retry_after_seconds or 0.0)
                logger.warning(
                    f"Inference rate limit (429). Backing off for {round(backoff)}s"
                )
                self._notify_backoff(backoff)
                raise
            except ProviderError:
                raise
            except asyncio.TimeoutError as e:
                raise ProviderError(
                    f"Provider call to {spec.model} exceeded {self._call_timeout}s deadline",
                    retryable=True,
                    details={"model": spec.model},
                ) from e
            except Exception as e:
                raise ProviderError(
                    f"Provider call failed: {type(e).__name__}: {e}",
                    details={"model": spec.model},
                ) from e
            finally:
                self.state.advance_to(self._clock() + backoff)

    def _notify_backoff(self, backoff: float) -> None:
        if self.on_backoff is None:
            return
        try:
            self.on_backoff(backoff)
        except Exception as e:
            logger.warning(f"Backoff listener failed: {type(e).__name__}: {e}")
