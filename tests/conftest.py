"""Shared pytest fixtures for FinMoE."""

import random

import pytest

from finmoe.common.config.settings import Config
from finmoe.events.sink import InMemoryEventSink
from finmoe.inference.client import RateLimitedInferenceClient
from finmoe.orchestration.load_model import AgentLoadModel
from finmoe.storage.memory import InMemoryStorage
from tests.fixtures.fakes import FakeClock, ScriptedProvider


@pytest.fixture
def clock():
    """Controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def config():
    """Settings with a test key and a fixed seed."""
    return Config(
        inference_api_key="test-key",
        min_request_interval_ms=15000,
        random_seed=7,
        publish_metrics=False,
    )


@pytest.fixture
def provider(clock):
    return ScriptedProvider(clock=clock)


@pytest.fixture
def client(provider, clock):
    """Rate-limited client over the scripted provider, 15s spacing."""
    return RateLimitedInferenceClient(
        provider,
        min_interval_seconds=15.0,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture
def load_model(config):
    return AgentLoadModel.from_config(config, rng=random.Random(7))


@pytest.fixture
def storage(load_model):
    return InMemoryStorage(load_model.snapshot())


@pytest.fixture
def event_sink():
    return InMemoryEventSink()
