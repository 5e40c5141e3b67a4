"""Tests for the Rate-Limited Inference Client."""

import asyncio

import pytest

from finmoe.common.exceptions import ProviderError, RateLimitError
from finmoe.inference.client import (
    KILL_SWITCH_STUB,
    PromptSpec,
    RateLimitedInferenceClient,
    RateLimiterState,
)
from tests.fixtures.fakes import FakeClock, HangingProvider, ScriptedProvider

SPEC = PromptSpec(prompt="hello", model="test-model", max_tokens=10, temperature=0.0)


class TestRateLimiterState:
    """Tests for RateLimiterState."""

    def test_advance_moves_forward(self):
        state = RateLimiterState()
        state.advance_to(10.0)
        assert state.next_allowed_at == 10.0

    def test_advance_never_moves_backwards(self):
        state = RateLimiterState(next_allowed_at=50.0)
        state.advance_to(20.0)
        assert state.next_allowed_at == 50.0


class TestSpacing:
    """Calls are spaced by at least the minimum interval."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, client, provider, clock):
        await client.invoke(SPEC)

        assert clock.sleeps == []
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_back_to_back_calls_are_spaced(self, client, provider, clock):
        await client.invoke(SPEC)
        await client.invoke(SPEC)
        await client.invoke(SPEC)

        times = provider.call_times
        assert len(times) == 3
        assert all(b - a >= 15.0 for a, b in zip(times, times[1:]))

    @pytest.mark.asyncio
    async def test_no_wait_once_interval_elapsed(self, client, provider, clock):
        await client.invoke(SPEC)
        clock.advance(30.0)
        await client.invoke(SPEC)

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_serialized(self, client, provider, clock):
        await asyncio.gather(*(client.invoke(SPEC) for _ in range(4)))

        times = sorted(provider.call_times)
        assert len(times) == 4
        assert all(b - a >= 15.0 for a, b in zip(times, times[1:]))

    @pytest.mark.asyncio
    async def test_failed_call_still_advances_limiter(self, clock):
        provider = ScriptedProvider(
            replies=[ProviderError("boom"), "ok"], clock=clock
        )
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep
        )

        with pytest.raises(ProviderError):
            await client.invoke(SPEC)
        assert await client.invoke(SPEC) == "ok"

        first, second = provider.call_times
        assert second - first >= 15.0


class TestRateLimitSignal:
    """429 handling: backoff = max(min interval, retry-after)."""

    @pytest.mark.asyncio
    async def test_retry_after_longer_than_interval(self, clock):
        provider = ScriptedProvider(
            replies=[RateLimitError("slow down", retry_after_seconds=20.0), "ok"], clock=clock
        )
        backoffs = []
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep,
            on_backoff=backoffs.append,
        )

        with pytest.raises(RateLimitError):
            await client.invoke(SPEC)
        assert client.state.next_allowed_at >= clock() + 20.0
        assert backoffs == [20.0]

        await client.invoke(SPEC)
        first, second = provider.call_times
        assert second - first >= 20.0

    @pytest.mark.asyncio
    async def test_retry_after_shorter_than_interval(self, clock):
        provider = ScriptedProvider(
            replies=[RateLimitError("slow down", retry_after_seconds=2.0)], clock=clock
        )
        backoffs = []
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep,
            on_backoff=backoffs.append,
        )

        with pytest.raises(RateLimitError):
            await client.invoke(SPEC)

        assert backoffs == [15.0]
        assert client.state.next_allowed_at == pytest.approx(clock() + 15.0)

    @pytest.mark.asyncio
    async def test_missing_retry_after_uses_interval(self, clock):
        provider = ScriptedProvider(replies=[RateLimitError("slow down")], clock=clock)
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep
        )

        with pytest.raises(RateLimitError):
            await client.invoke(SPEC)

        assert client.state.next_allowed_at == pytest.approx(clock() + 15.0)

    @pytest.mark.asyncio
    async def test_broken_backoff_listener_is_ignored(self, clock):
        def listener(seconds):
            raise RuntimeError("listener down")

        provider = ScriptedProvider(replies=[RateLimitError("slow down")], clock=clock)
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep,
            on_backoff=listener,
        )

        with pytest.raises(RateLimitError):
            await client.invoke(SPEC)


class TestKillSwitch:
    """Kill switch returns the stub without calling out."""

    @pytest.mark.asyncio
    async def test_stub_returned_without_provider_call(self, provider, clock):
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, kill_switch=True, clock=clock, sleep=clock.sleep
        )

        assert await client.invoke(SPEC) == KILL_SWITCH_STUB
        assert await client.invoke(SPEC) == KILL_SWITCH_STUB
        assert provider.calls == []
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_kill_switch_works_without_provider(self):
        client = RateLimitedInferenceClient(None, min_interval_seconds=15.0, kill_switch=True)

        assert await client.invoke(SPEC) == KILL_SWITCH_STUB

    @pytest.mark.asyncio
    async def test_missing_provider_raises(self):
        client = RateLimitedInferenceClient(None, min_interval_seconds=15.0)

        with pytest.raises(ProviderError):
            await client.invoke(SPEC)


class TestFailures:
    """Deadlines and unexpected errors."""

    @pytest.mark.asyncio
    async def test_deadline_raises_retryable_provider_error(self):
        clock = FakeClock()
        provider = HangingProvider()
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=0.0, call_timeout_seconds=0.05,
            clock=clock, sleep=clock.sleep,
        )

        with pytest.raises(ProviderError) as exc_info:
            await client.invoke(SPEC)

        assert exc_info.value.retryable is True
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, clock):
        provider = ScriptedProvider(replies=[KeyError("choices")], clock=clock)
        client = RateLimitedInferenceClient(
            provider, min_interval_seconds=15.0, clock=clock, sleep=clock.sleep
        )

        with pytest.raises(ProviderError) as exc_info:
            await client.invoke(SPEC)

        assert "KeyError" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_prompt_spec_forwarded(self, client, provider):
        await client.invoke(PromptSpec(prompt="p", model="m", max_tokens=42, temperature=0.4))

        call = provider.calls[0]
        assert call["prompt"] == "p"
        assert call["model"] == "m"
        assert call["max_tokens"] == 42
        assert call["temperature"] == 0.4
