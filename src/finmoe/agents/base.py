"""Base expert agent.

An expert builds a domain prompt from a request, calls the shared
rate-limited client and turns the reply into its tagged result variant.

Failure contract:
- parse problems never escape: structured decode first, text-pattern
  extraction second, fixed defaults last
- provider failures propagate (RateLimitError is retried up to
  ``rate_limit_retries`` times, ProviderError never)
- with the kill switch on, a marked stub is returned without calling out
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Dict, Type

from finmoe.agents import parsing
from finmoe.agents.schema import AnalysisResult
from finmoe.common.exceptions import ParseError, RateLimitError
from finmoe.core.types import Specialization
from finmoe.data.schemas.request import Request
from finmoe.inference.client import PromptSpec, RateLimitedInferenceClient

logger = logging.getLogger(__name__)


class ExpertAgent(ABC):
    """Specialization-bound executor."""

    specialization: ClassVar[Specialization]
    worker_id: ClassVar[str]
    result_type: ClassVar[Type[AnalysisResult]]
    MAX_TOKENS: ClassVar[int] = 400
    TEMPERATURE: ClassVar[float] = 0.3

    def __init__(
        self,
        client: RateLimitedInferenceClient,
        model: str,
        rate_limit_retries: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the agent.

        Args:
            client: Shared rate-limited inference client
            model: Model identifier for this specialization
            rate_limit_retries: Extra attempts after a rate-limit signal
            clock: Time source for processing_time
        """
        self._client = client
        self.model = model
        self._rate_limit_retries = rate_limit_retries
        self._clock = clock

    @abstractmethod
    def build_prompt(self, request: Request) -> str:
        """Domain prompt embedding the request."""

    @classmethod
    @abstractmethod
    def _from_structured(cls, text: str, data: Dict[str, Any]) -> AnalysisResult:
        """Build the result from a decoded JSON object. May raise ParseError."""

    @classmethod
    @abstractmethod
    def _from_text(cls, text: str) -> AnalysisResult:
        """Build the result from prose with pattern extraction. Never raises."""

    async def analyze(self, request: Request) -> AnalysisResult:
        """Run the expert on one request."""
        if self._client.kill_switch:
            return self.stub()

        started = self._clock()
        spec = PromptSpec(
            prompt=self.build_prompt(request),
            model=self.model,
            max_tokens=self.MAX_TOKENS,
            temperature=self.TEMPERATURE,
        )
        text = await self._invoke_with_retry(spec, request.id)
        result = self.parse(text)
        return result.model_copy(update={"processing_time": max(0.0, self._clock() - started)})

    async def _invoke_with_retry(self, spec: PromptSpec, request_id: str) -> str:
        attempt = 0
        while True:
            try:
                return await self._client.invoke(spec)
            except RateLimitError:
                if attempt >= self._rate_limit_retries:
                    raise
                attempt += 1
                logger.info(
                    f"{self.worker_id} retrying {request_id} after rate limit "
                    f"(attempt {attempt}/{self._rate_limit_retries})"
                )

    @classmethod
    def parse(cls, text: str) -> AnalysisResult:
        """Structured decode first, text-pattern fallback second."""
        try:
            data = parsing.decode_json_object(text)
            return cls._from_structured(text, data)
        except ParseError as e:
            logger.debug(f"{cls.worker_id} falling back to text extraction: {e.message}")
            return cls._from_text(text)

    def stub(self) -> AnalysisResult:
        """Clearly marked analysis used while the kill switch is active."""
        return self.result_type(
            worker_id=self.worker_id,
            analysis=f"Kill switch active: simulated {self.specialization.value} analysis.",
            reasoning="Inference disabled by kill switch",
            is_stub=True,
        )

    @staticmethod
    def _render_request(request: Request) -> str:
        return json.dumps(request.model_dump(mode="json"), indent=2)

    @staticmethod
    def _common_fields(text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        confidence = parsing.normalize_confidence(data.get("confidence"))
        reasoning = parsing.as_text(parsing.first_present(
            data, ("reasoning", "key_factors", "indicators", "key_findings", "recommended_action")
        ))
        fields: Dict[str, Any] = {"analysis": text, "structured": True}
        if confidence is not None:
            fields["confidence"] = confidence
        if reasoning:
            fields["reasoning"] = reasoning
        return fields

    @staticmethod
    def _text_fields(text: str) -> Dict[str, Any]:
        return {
            "analysis": text,
            "score": parsing.extract_score_from_text(text),
            "reasoning": parsing.preview(text) or "Analysis completed",
            "structured": False,
        }
