"""Tests for the Dispatch Service and its wiring."""

import os
import random
from unittest.mock import patch

import pytest

from finmoe.api.service import DispatchService, create_service
from finmoe.common.config.settings import Config
from finmoe.common.exceptions import ConfigurationError, ValidationError
from finmoe.core.types import Priority, RequestStatus, Verdict
from finmoe.monitoring.metrics import MetricsCollector
from finmoe.storage.memory import InMemoryStorage
from tests.fixtures.fakes import ScriptedProvider


@pytest.fixture
def make_service(config, clock, event_sink):
    def factory(**overrides):
        kwargs = dict(
            config=config,
            event_sink=event_sink,
            metrics=MetricsCollector(publish=False),
            rng=random.Random(7),
            clock=clock,
            sleep=clock.sleep,
        )
        kwargs.update(overrides)
        with patch.dict(os.environ, {}, clear=True):
            return create_service(**kwargs)
    return factory


class TestBuildRequest:
    """Inbound validation."""

    def test_type_stripped(self):
        request = DispatchService.build_request("  Loan Application ", "high", {"amount": 1})

        assert request.type == "Loan Application"
        assert request.priority == Priority.HIGH
        assert request.status == RequestStatus.PENDING
        assert request.payload == {"amount": 1}

    @pytest.mark.parametrize("request_type, priority", [
        ("", "medium"),
        ("   ", "medium"),
        ("x" * 201, "medium"),
        ("Loan Application", "urgent"),
    ])
    def test_rejected(self, request_type, priority):
        with pytest.raises(ValidationError) as exc_info:
            DispatchService.build_request(request_type, priority)

        assert exc_info.value.details["errors"]


class TestCreateService:
    """Component wiring from configuration."""

    def test_missing_api_key_rejected(self, make_service):
        config = Config(inference_api_key=None, random_seed=7)

        with pytest.raises(ConfigurationError):
            make_service(config=config, kill_switch=False)

    def test_kill_switch_needs_no_api_key(self, make_service):
        config = Config(inference_api_key=None, random_seed=7)

        service = make_service(config=config, kill_switch=True)

        assert service.client.kill_switch is True
        assert service.provider is None

    def test_workers_registered(self, make_service):
        service = make_service(kill_switch=True)

        assert [w.id for w in service.get_workers()] == ["credit-agent", "fraud-agent", "esg-agent"]

    def test_injected_storage_gets_missing_workers(self, make_service):
        storage = InMemoryStorage()

        service = make_service(kill_switch=True, storage=storage)

        assert service.storage is storage
        assert len(storage.get_workers()) == 3

    @pytest.mark.asyncio
    async def test_force_fallback_from_dynamic_config(self, make_service, clock):
        provider = ScriptedProvider(clock=clock)
        switches = StaticSwitches({"disable_inference": False, "force_fallback_routing": True})

        service = make_service(provider=provider, dynamic_config=switches)
        outcome = await service.process("Loan Application")

        assert service.status().force_fallback_routing is True
        assert outcome.routing.used_fallback is True
        assert all("routing agent" not in call["prompt"] for call in provider.calls)

    def test_backoff_listener_wired(self, make_service):
        service = make_service(kill_switch=True)

        assert service.client.on_backoff == service.lifecycle.record_backoff


class StaticSwitches:
    """Dynamic-config stand-in with fixed switch values."""

    def __init__(self, switches):
        self._switches = dict(switches)

    def snapshot(self):
        return dict(self._switches)


class TestSubmission:
    """Submit, process and inspect."""

    @pytest.mark.asyncio
    async def test_submit_acknowledges_then_completes(self, make_service):
        service = make_service(kill_switch=True)

        response = service.submit("Loan Application", "high", {"amount": 25000})

        assert response.status == RequestStatus.PENDING
        assert response.request_id.startswith("req_")
        await service.drain()
        outcome = service.get_outcome(response.request_id)
        assert outcome.request.status == RequestStatus.COMPLETED
        assert service.in_flight == 0

    @pytest.mark.asyncio
    async def test_submit_rejects_invalid_input(self, make_service):
        service = make_service(kill_switch=True)

        with pytest.raises(ValidationError):
            service.submit("")
        assert service.in_flight == 0
        assert service.get_requests() == []

    @pytest.mark.asyncio
    async def test_process_returns_outcome(self, make_service):
        service = make_service(kill_switch=True)

        outcome = await service.process("Insurance Claim")

        assert outcome.request.assigned_agents == ["fraud-agent"]
        assert outcome.decision.verdict == Verdict.APPROVED

    @pytest.mark.asyncio
    async def test_status_view(self, make_service):
        service = make_service(kill_switch=True)
        await service.process("ESG Report")

        status = service.status()

        assert status.kill_switch is True
        assert status.in_flight == 0
        assert len(status.workers) == 3
        assert status.recent_requests[0]["status"] == "completed"
        assert status.metrics["completed"] == 1
        assert status.last_decision.startswith("FINAL DECISION: Approved — ")

    @pytest.mark.asyncio
    async def test_outcome_history_follows_config(self, make_service):
        config = Config(inference_api_key=None, random_seed=7, max_request_history=150)
        service = make_service(config=config, kill_switch=True)

        outcomes = [await service.process("Credit Check") for _ in range(101)]

        assert service.max_history == 150
        first_id = outcomes[0].request.id
        assert service.get_outcome(first_id) is not None
        assert len(service.get_requests()) == 101

    @pytest.mark.asyncio
    async def test_oldest_outcome_evicted(self, make_service):
        config = Config(inference_api_key=None, random_seed=7, max_request_history=2)
        service = make_service(config=config, kill_switch=True)

        outcomes = [await service.process("Credit Check") for _ in range(3)]

        assert service.get_outcome(outcomes[0].request.id) is None
        assert service.get_outcome(outcomes[2].request.id) is not None

    @pytest.mark.asyncio
    async def test_shutdown_drains(self, make_service):
        service = make_service(kill_switch=True)
        response = service.submit("Credit Check")

        await service.shutdown()

        assert service.get_outcome(response.request_id).request.status == RequestStatus.COMPLETED


class TestConnectionCheck:

    @pytest.mark.asyncio
    async def test_healthy_provider(self, make_service, clock):
        service = make_service(provider=ScriptedProvider(clock=clock), kill_switch=False)

        assert await service.check_connection() is True

    @pytest.mark.asyncio
    async def test_unhealthy_provider(self, make_service, clock):
        service = make_service(provider=ScriptedProvider(clock=clock, healthy=False), kill_switch=False)

        assert await service.check_connection() is False

    @pytest.mark.asyncio
    async def test_kill_switch_reports_unreachable(self, make_service, clock):
        service = make_service(provider=ScriptedProvider(clock=clock), kill_switch=True)

        assert await service.check_connection() is False
