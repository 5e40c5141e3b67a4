"""Routing Decision Engine - picks the experts for a request.

Primary path: ask the model for ``{"selected_agents": [...], "reasoning": ...}``
given the request and a snapshot of every worker's load and queue.

Fallback path: deterministic keyword matching on the request type. It is
used when the kill switch is on, when fallback routing is forced, when
the call fails, when the reply cannot be parsed or names no known
worker, and on any other error. Routing never fails a request.
"""

import json
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from finmoe.agents import parsing
from finmoe.common.constants import RoutingConstants, WorkerConstants
from finmoe.common.exceptions import ParseError
from finmoe.data.schemas.request import Request
from finmoe.data.schemas.worker import Worker
from finmoe.inference.client import PromptSpec, RateLimitedInferenceClient
from finmoe.orchestration.decision_context import RoutingDecision

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_AGENTS: Tuple[str, ...] = (
    WorkerConstants.CREDIT_AGENT_ID,
    WorkerConstants.FRAUD_AGENT_ID,
)

# Checked in order; first match wins.
KEYWORD_ROUTES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("loan", "credit"), WorkerConstants.CREDIT_AGENT_ID),
    (("fraud", "claim"), WorkerConstants.FRAUD_AGENT_ID),
    (("esg", "investment"), WorkerConstants.ESG_AGENT_ID),
)

AGENT_DESCRIPTIONS = {
    WorkerConstants.CREDIT_AGENT_ID: "Credit scoring, loan applications, risk assessment",
    WorkerConstants.FRAUD_AGENT_ID: "Fraud detection, transaction analysis, suspicious patterns",
    WorkerConstants.ESG_AGENT_ID: "ESG analysis, sustainability scoring, governance evaluation",
}


def fallback_route(
    request_type: str,
    default_agents: Sequence[str] = DEFAULT_FALLBACK_AGENTS,
) -> Tuple[str, ...]:
    """Keyword routing. Pure: the same text always yields the same workers.

    Unmatched (ambiguous or compound) requests go to ``default_agents``.
    """
    text = request_type.lower()
    for keywords, worker_id in KEYWORD_ROUTES:
        if any(keyword in text for keyword in keywords):
            return (worker_id,)
    return tuple(default_agents)


class RoutingDecisionEngine:
    """Load- and specialization-aware router with a deterministic fallback."""

    def __init__(
        self,
        client: RateLimitedInferenceClient,
        model: str,
        fallback_agents: Sequence[str] = DEFAULT_FALLBACK_AGENTS,
        force_fallback: bool = False,
    ):
        """Initialize the router.

        Args:
            client: Shared rate-limited inference client
            model: Model used for routing decisions
            fallback_agents: Workers for requests no keyword matches
            force_fallback: Skip the inference-assisted path entirely
        """
        self._client = client
        self.model = model
        self._fallback_agents = tuple(fallback_agents)
        self._force_fallback = force_fallback

    async def route(self, request: Request, workers: Sequence[Worker]) -> RoutingDecision:
        """Select workers for ``request``. Never raises."""
        if self._client.kill_switch:
            return self._fallback(request, "Kill switch enabled, using fallback routing")
        if self._force_fallback:
            return self._fallback(request, "Fallback routing forced by configuration")

        known = [w.id for w in workers]
        try:
            text = await self._client.invoke(PromptSpec(
                prompt=self.build_prompt(request, workers),
                model=self.model,
                max_tokens=RoutingConstants.MAX_TOKENS,
                temperature=RoutingConstants.TEMPERATURE,
            ))
        except Exception as e:
            logger.warning(f"Routing decision failed for {request.id}: {type(e).__name__}: {e}")
            return self._fallback(request, "Error in routing, using fallback")

        try:
            selected, reasoning = self.parse_decision(text, known)
        except ParseError as e:
            logger.info(f"Unusable routing reply for {request.id}: {e.message}")
            return self._fallback(request, "Fallback routing applied")
        except Exception as e:
            logger.warning(f"Routing reply handling failed for {request.id}: {type(e).__name__}: {e}")
            return self._fallback(request, "Error in routing, using fallback")

        return RoutingDecision(selected_agents=selected, reasoning=reasoning)

    def build_prompt(self, request: Request, workers: Iterable[Worker]) -> str:
        agents = "\n".join(
            f"{i}. {worker_id}: {description}"
            for i, (worker_id, description) in enumerate(AGENT_DESCRIPTIONS.items(), start=1)
        )
        loads = "\n".join(
            f"- {w.id}: {w.current_load:.1f}% load, {len(w.processing_queue)} queued, "
            f"{w.response_time:.1f}s avg response"
            for w in workers
        )
        return f"""You are a MoE (Mixture of Experts) routing agent. Analyze this request and decide which expert agents should handle it.

Request: {json.dumps(request.model_dump(mode="json"), indent=2)}

Available Expert Agents:
{agents}

Current Agent Loads:
{loads}

Decision Criteria (weights):
- Agent Specialization: {RoutingConstants.WEIGHT_SPECIALIZATION:.0%}
- Current Load: {RoutingConstants.WEIGHT_CURRENT_LOAD:.0%}
- Response Time: {RoutingConstants.WEIGHT_RESPONSE_TIME:.0%}

Respond with JSON: {{"selected_agents": ["agent-id"], "reasoning": "explanation"}}"""

    @staticmethod
    def parse_decision(text: str, known_agents: Sequence[str]) -> Tuple[Tuple[str, ...], str]:
        """Extract the selected workers and reasoning from a routing reply.

        Unknown ids are dropped; duplicates are collapsed in order.

        Raises:
            ParseError: no JSON, no agent list, or no known agent selected
        """
        data = parsing.decode_json_object(text)
        raw = parsing.first_present(data, ("selected_agents", "agents", "selected"))
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list):
            raise ParseError("Routing reply has no agent list")

        selected: List[str] = []
        for item in raw:
            worker_id = str(item).strip()
            if worker_id not in known_agents:
                logger.warning(f"Router proposed unknown worker {worker_id!r}, ignoring")
                continue
            if worker_id not in selected:
                selected.append(worker_id)
        if not selected:
            raise ParseError("Routing reply selected no known worker", details={"raw": raw})

        reasoning = parsing.as_text(data.get("reasoning")) or "Routing decision made"
        return tuple(selected), reasoning

    def _fallback(self, request: Request, reasoning: str) -> RoutingDecision:
        return RoutingDecision(
            selected_agents=fallback_route(request.type, self._fallback_agents),
            reasoning=reasoning,
            used_fallback=True,
        )

    @property
    def fallback_agents(self) -> Optional[Tuple[str, ...]]:
        return self._fallback_agents
