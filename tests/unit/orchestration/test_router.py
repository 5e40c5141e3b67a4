"""Tests for the Routing Decision Engine."""

import pytest

from finmoe.common.exceptions import ProviderError, RateLimitError
from finmoe.data.schemas.request import Request
from finmoe.inference.client import RateLimitedInferenceClient
from finmoe.orchestration.router import RoutingDecisionEngine, fallback_route
from tests.fixtures.fakes import ScriptedProvider


def _engine(provider, clock, kill_switch=False, force_fallback=False):
    client = RateLimitedInferenceClient(
        provider, min_interval_seconds=15.0, kill_switch=kill_switch,
        clock=clock, sleep=clock.sleep,
    )
    return RoutingDecisionEngine(client, model="router-model", force_fallback=force_fallback)


class TestFallbackRoute:
    """Keyword fallback routing."""

    @pytest.mark.parametrize("request_type, expected", [
        ("Loan Application", ("credit-agent",)),
        ("Credit Check", ("credit-agent",)),
        ("Insurance Claim", ("fraud-agent",)),
        ("Suspected FRAUD report", ("fraud-agent",)),
        ("ESG Report", ("esg-agent",)),
        ("Green investment review", ("esg-agent",)),
        ("Quarterly review", ("credit-agent", "fraud-agent")),
    ])
    def test_keywords(self, request_type, expected):
        assert fallback_route(request_type) == expected

    def test_first_matching_rule_wins(self):
        assert fallback_route("Loan fraud claim") == ("credit-agent",)

    def test_idempotent(self):
        assert fallback_route("Mystery request") == fallback_route("Mystery request")

    def test_custom_default_set(self):
        assert fallback_route("Mystery", default_agents=("esg-agent",)) == ("esg-agent",)


class TestInferenceRouting:
    """Inference-assisted routing and its fallbacks."""

    @pytest.mark.asyncio
    async def test_structured_decision_used(self, clock, storage):
        provider = ScriptedProvider(
            replies=['{"selected_agents": ["esg-agent", "credit-agent"], "reasoning": "mixed"}'],
            clock=clock,
        )
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="Loan Application"), storage.get_workers())

        assert decision.selected_agents == ("esg-agent", "credit-agent")
        assert decision.reasoning == "mixed"
        assert decision.used_fallback is False
        assert provider.calls[0]["model"] == "router-model"
        assert provider.calls[0]["max_tokens"] == 300

    @pytest.mark.asyncio
    async def test_prompt_describes_loads_and_weights(self, clock, storage):
        provider = ScriptedProvider(replies=['{"selected_agents": ["credit-agent"]}'], clock=clock)
        engine = _engine(provider, clock)

        await engine.route(Request(type="Loan Application"), storage.get_workers())

        prompt = provider.calls[0]["prompt"]
        assert "35%" in prompt and "40%" in prompt and "25%" in prompt
        for worker in storage.get_workers():
            assert worker.id in prompt

    @pytest.mark.asyncio
    async def test_camel_case_keys_accepted(self, clock, storage):
        provider = ScriptedProvider(replies=['{"selectedAgents": ["fraud-agent"]}'], clock=clock)
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="Anything"), storage.get_workers())

        assert decision.selected_agents == ("fraud-agent",)
        assert decision.reasoning == "Routing decision made"

    @pytest.mark.asyncio
    async def test_unknown_ids_dropped_and_duplicates_collapsed(self, clock, storage):
        provider = ScriptedProvider(
            replies=['{"selected_agents": ["tax-agent", "fraud-agent", "fraud-agent"]}'],
            clock=clock,
        )
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="Anything"), storage.get_workers())

        assert decision.selected_agents == ("fraud-agent",)

    @pytest.mark.asyncio
    async def test_only_unknown_ids_falls_back(self, clock, storage):
        provider = ScriptedProvider(replies=['{"selected_agents": ["tax-agent"]}'], clock=clock)
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="Insurance Claim"), storage.get_workers())

        assert decision.selected_agents == ("fraud-agent",)
        assert decision.used_fallback is True

    @pytest.mark.asyncio
    async def test_unparsable_reply_falls_back(self, clock, storage):
        provider = ScriptedProvider(replies=["I would pick the credit expert."], clock=clock)
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="ESG Report"), storage.get_workers())

        assert decision.selected_agents == ("esg-agent",)
        assert decision.reasoning == "Fallback routing applied"
        assert decision.used_fallback is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ProviderError("down", retryable=True),
        RateLimitError("429", retry_after_seconds=20.0),
    ])
    async def test_call_failure_falls_back(self, clock, storage, error):
        provider = ScriptedProvider(replies=[error], clock=clock)
        engine = _engine(provider, clock)

        decision = await engine.route(Request(type="Loan Application"), storage.get_workers())

        assert decision.selected_agents == ("credit-agent",)
        assert decision.reasoning == "Error in routing, using fallback"

    @pytest.mark.asyncio
    async def test_kill_switch_skips_inference(self, clock, storage):
        provider = ScriptedProvider(clock=clock)
        engine = _engine(provider, clock, kill_switch=True)

        decision = await engine.route(Request(type="Quarterly review"), storage.get_workers())

        assert decision.selected_agents == ("credit-agent", "fraud-agent")
        assert decision.reasoning == "Kill switch enabled, using fallback routing"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_forced_fallback_skips_inference(self, clock, storage):
        provider = ScriptedProvider(clock=clock)
        engine = _engine(provider, clock, force_fallback=True)

        decision = await engine.route(Request(type="Credit Check"), storage.get_workers())

        assert decision.selected_agents == ("credit-agent",)
        assert decision.used_fallback is True
        assert provider.calls == []
