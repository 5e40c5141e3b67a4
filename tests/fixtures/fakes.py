"""Test doubles for FinMoE: a controllable clock, a scripted provider, static experts."""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Union

from finmoe.agents.schema import AnalysisResult
from finmoe.data.schemas.request import Request

Reply = Union[str, BaseException]


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedProvider:
    """Inference provider that replays canned replies.

    Replies come from ``responder(prompt, model)`` when given, otherwise
    from the ``replies`` queue in order; once exhausted ``default`` is
    returned. A reply that is an exception instance is raised.
    """

    def __init__(
        self,
        replies: Sequence[Reply] = (),
        responder: Optional[Callable[[str, str], Reply]] = None,
        default: str = "{}",
        clock: Optional[Callable[[], float]] = None,
        healthy: bool = True,
    ):
        self.replies = list(replies)
        self.responder = responder
        self.default = default
        self.clock = clock
        self.healthy = healthy
        self.calls: List[Dict[str, object]] = []

    @property
    def call_times(self) -> List[float]:
        return [call["started_at"] for call in self.calls]

    async def complete(self, prompt: str, model: str, max_tokens: int, temperature: float) -> str:
        self.calls.append({
            "prompt": prompt,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "started_at": self.clock() if self.clock else None,
        })
        if self.responder is not None:
            reply = self.responder(prompt, model)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            reply = self.default
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def test_connection(self, model: str = "test-model") -> bool:
        return self.healthy


class HangingProvider:
    """Provider whose calls never finish."""

    def __init__(self):
        self.calls = 0

    async def complete(self, prompt: str, model: str, max_tokens: int, temperature: float) -> str:
        self.calls += 1
        await asyncio.Event().wait()
        return ""


class StaticAgent:
    """Expert stand-in that returns a fixed result or raises a fixed error."""

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[BaseException] = None):
        self.result = result
        self.error = error
        self.seen: List[Request] = []

    async def analyze(self, request: Request) -> AnalysisResult:
        self.seen.append(request)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result


class BrokenEventSink:
    """Event sink whose every publish fails."""

    def __init__(self):
        self.attempts = 0

    def publish(self, event_type, data) -> None:
        self.attempts += 1
        raise RuntimeError("sink unavailable")
