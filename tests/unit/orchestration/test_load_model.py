"""Tests for the Agent Load Model."""

import random

import pytest

from finmoe.common.exceptions import UnknownWorkerError
from finmoe.core.types import Specialization, WorkerStatus
from finmoe.orchestration.load_model import AgentLoadModel, WorkerState


def _model(load=20.0, threshold=70.0, dispatch=(15.0, 40.0), completion=(10.0, 30.0), seed=1):
    state = WorkerState(
        worker_id="credit-agent",
        name="Credit Check Agent",
        specialization=Specialization.CREDIT,
        load_threshold=threshold,
        current_load=load,
    )
    return AgentLoadModel(
        [state],
        dispatch_range=dispatch,
        completion_range=completion,
        load_floor=10.0,
        rng=random.Random(seed),
    )


class TestFromConfig:
    """Tests for AgentLoadModel.from_config."""

    def test_three_workers_with_thresholds(self, config):
        model = AgentLoadModel.from_config(config, rng=random.Random(3))
        workers = {w.id: w for w in model.snapshot()}

        assert set(workers) == {"credit-agent", "fraud-agent", "esg-agent"}
        assert workers["credit-agent"].load_threshold == 70
        assert workers["fraud-agent"].load_threshold == 80
        assert workers["esg-agent"].load_threshold == 60
        assert workers["esg-agent"].model == config.esg_model

    def test_initial_load_randomized_in_range(self, config):
        model = AgentLoadModel.from_config(config, rng=random.Random(3))

        for worker in model.snapshot():
            assert 10.0 <= worker.current_load <= 40.0
            assert worker.status == WorkerStatus.IDLE
            assert worker.processing_queue == []


class TestDispatch:
    """Load rises on dispatch."""

    def test_load_increases_within_range(self):
        model = _model(load=20.0)

        change = model.dispatch("credit-agent", "req_1")

        assert 35.0 <= change.worker.current_load <= 60.0
        assert change.worker.processing_queue == ["req_1"]
        assert change.worker.status == WorkerStatus.PROCESSING

    def test_load_capped_at_100(self):
        model = _model(load=95.0, dispatch=(30.0, 40.0))

        change = model.dispatch("credit-agent", "req_1")

        assert change.worker.current_load == 100.0
        assert change.worker.status == WorkerStatus.OVERLOADED

    def test_overloaded_iff_above_90(self):
        model = _model(load=60.0, dispatch=(30.0, 30.0))

        change = model.dispatch("credit-agent", "req_1")

        assert change.worker.current_load == pytest.approx(90.0)
        assert change.worker.status == WorkerStatus.PROCESSING

    def test_scaling_started_only_on_crossing(self):
        model = _model(load=50.0, threshold=70.0, dispatch=(25.0, 25.0))

        first = model.dispatch("credit-agent", "req_1")
        second = model.dispatch("credit-agent", "req_2")

        assert first.scaling_started is True
        assert first.worker.is_scaling is True
        assert first.worker.instance_count == 2
        assert second.scaling_started is False

    def test_unknown_worker(self):
        model = _model()

        with pytest.raises(UnknownWorkerError):
            model.dispatch("tax-agent", "req_1")


class TestComplete:
    """Load falls on completion."""

    def test_load_floored(self):
        model = _model(load=12.0, dispatch=(1.0, 1.0), completion=(30.0, 30.0))
        model.dispatch("credit-agent", "req_1")

        change = model.complete("credit-agent", "req_1")

        assert change.worker.current_load == 10.0
        assert change.worker.status == WorkerStatus.IDLE

    def test_request_removed_exactly_once(self):
        model = _model(load=20.0)
        model.dispatch("credit-agent", "req_1")
        model.dispatch("credit-agent", "req_1")

        change = model.complete("credit-agent", "req_1")

        assert change.worker.processing_queue == ["req_1"]
        assert change.worker.status == WorkerStatus.PROCESSING

    def test_completing_unqueued_request_is_noop(self):
        model = _model(load=20.0)
        before = model.get("credit-agent")

        change = model.complete("credit-agent", "req_missing")

        assert change.worker.current_load == before.current_load
        assert change.worker.processing_queue == []

    def test_status_recomputed_from_load(self):
        model = _model(load=80.0, dispatch=(15.0, 15.0), completion=(10.0, 10.0))
        assert model.dispatch("credit-agent", "req_1").worker.status == WorkerStatus.OVERLOADED

        change = model.complete("credit-agent", "req_1")

        assert change.worker.current_load == pytest.approx(85.0)
        assert change.worker.status == WorkerStatus.IDLE
        assert change.worker.is_scaling is True


class TestDisplayMetrics:
    """Tokens-per-minute and response time follow the load."""

    def test_metrics_derived_from_load(self):
        model = _model(load=50.0)
        worker = model.get("credit-agent")

        assert 500 <= worker.tokens_per_minute <= 700
        assert 2.0 <= worker.response_time <= 2.5

    def test_snapshot_is_a_copy(self):
        model = _model()
        snapshot = model.snapshot()
        snapshot[0].processing_queue.append("req_x")

        assert model.get("credit-agent").processing_queue == []
