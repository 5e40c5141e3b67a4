"""Request Lifecycle Manager - drives one request from submission to verdict.

Flow per request:
1. Persist as pending and publish ``new_request``
2. Route (never fails) and record the assignment, status -> processing
3. Dispatch: raise each selected worker's load and queue
4. Fan out to every selected expert; each outcome is a result or an error,
   one failure never aborts the others
5. Restore loads for every dispatched worker, whatever happened
6. Aggregate the successful results, status -> completed

Only a defect in the orchestration itself marks a request failed. Expert
failures are logged (one error entry per failed worker) and tolerated.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from finmoe.agents.base import ExpertAgent
from finmoe.agents.schema import AnalysisResult
from finmoe.common.exceptions import FinMoEException, UnknownWorkerError
from finmoe.core.types import EventType, LogLevel, RequestStatus
from finmoe.data.schemas.request import Request
from finmoe.data.schemas.system_log import SystemLog
from finmoe.data.schemas.worker import Worker
from finmoe.events.sink import EventSink
from finmoe.monitoring.metrics import MetricsCollector
from finmoe.orchestration.aggregator import DecisionAggregator
from finmoe.orchestration.decision_context import Decision, RoutingDecision
from finmoe.orchestration.load_model import AgentLoadModel
from finmoe.orchestration.router import RoutingDecisionEngine
from finmoe.storage.memory import Storage

logger = logging.getLogger(__name__)

SOURCE_ROUTER = "MoE Router"
SOURCE_SYSTEM = "MoE System"
SOURCE_DECISION = "MoE Decision"
SOURCE_SCALER = "Auto-Scaler"
SOURCE_RATE_LIMITER = "Inference RateLimiter"

_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

# Worker fields the load model changes on dispatch and completion
_LOAD_FIELDS = {
    "status", "current_load", "processing_queue",
    "tokens_per_minute", "response_time", "instance_count",
}


@dataclass
class LifecycleOutcome:
    """What happened to one request."""
    request: Request
    routing: Optional[RoutingDecision] = None
    results: List[AnalysisResult] = field(default_factory=list)
    errors: Dict[str, BaseException] = field(default_factory=dict)
    decision: Optional[Decision] = None

    @property
    def aggregation_incomplete(self) -> bool:
        """Completed, but no expert produced a result to decide on."""
        return self.request.status == RequestStatus.COMPLETED and self.decision is None


class RequestLifecycleManager:
    """Owns the pending -> processing -> completed | failed progression."""

    def __init__(
        self,
        storage: Storage,
        event_sink: EventSink,
        router: RoutingDecisionEngine,
        load_model: AgentLoadModel,
        agents: Mapping[str, ExpertAgent],
        aggregator: Optional[DecisionAggregator] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the manager.

        Args:
            storage: Persistence backend for requests, workers and logs
            event_sink: Destination for live-update events
            router: Routing decision engine
            load_model: Shared agent load model
            agents: Expert executors keyed by worker id
            aggregator: Decision aggregator. Created if not provided.
            metrics: Optional metrics collector
            clock: Monotonic time source for processing_time
        """
        self.storage = storage
        self.event_sink = event_sink
        self.router = router
        self.load_model = load_model
        self.agents = dict(agents)
        self.aggregator = aggregator or DecisionAggregator()
        self.metrics = metrics
        self._clock = clock

    async def handle_new_request(self, request: Request) -> LifecycleOutcome:
        """Process one request to a terminal state.

        Only storage rejecting the initial insert propagates; everything
        after that ends in a completed or failed request.
        """
        stored = self.storage.add_request(request)
        self._publish(EventType.NEW_REQUEST, stored)
        outcome = LifecycleOutcome(request=stored)

        try:
            await self._process(outcome)
        except Exception as e:
            logger.exception(f"Orchestration failed for {request.id}")
            self.log(
                LogLevel.ERROR,
                f"Request {request.id} failed: {type(e).__name__}: {e}",
                SOURCE_SYSTEM,
                request_id=request.id,
            )
            self._mark_failed(outcome, type(e).__name__)

        return outcome

    async def _process(self, outcome: LifecycleOutcome) -> None:
        request = outcome.request

        routing = await self.router.route(request, self.load_model.snapshot())
        outcome.routing = routing
        if routing.used_fallback and self.metrics is not None:
            self.metrics.record_routing_fallback(routing.reasoning)

        agents = list(routing.selected_agents)
        self.log(
            LogLevel.INFO,
            f"MoE Router: {request.type} → {', '.join(agents)} ({routing.reasoning})",
            SOURCE_ROUTER,
            request_id=request.id,
        )

        request = self.storage.update_request(
            request.id, status=RequestStatus.PROCESSING, assigned_agents=agents
        )
        outcome.request = request
        self._publish(EventType.REQUEST_UPDATED, request)

        started = self._clock()
        dispatched: List[str] = []
        try:
            self._dispatch(request, agents, outcome, dispatched)
            settled = await asyncio.gather(
                *(self._run_expert(worker_id, request) for worker_id in dispatched),
                return_exceptions=True,
            )
        finally:
            self._release(request.id, dispatched)

        for worker_id, result in zip(dispatched, settled):
            if isinstance(result, BaseException):
                self._record_expert_failure(outcome, worker_id, result)
            else:
                outcome.results.append(result)

        outcome.decision = self.aggregator.aggregate(outcome.results)
        elapsed = max(0.0, self._clock() - started)

        request = self.storage.update_request(
            request.id, status=RequestStatus.COMPLETED, processing_time=elapsed
        )
        outcome.request = request
        self._publish(EventType.REQUEST_UPDATED, request)

        self.log(
            LogLevel.SUCCESS,
            f"Request {request.id} completed in {elapsed:.1f}s",
            SOURCE_SYSTEM,
            request_id=request.id,
        )
        if outcome.decision is not None:
            self.log(LogLevel.INFO, outcome.decision.summary(), SOURCE_DECISION, request_id=request.id)
        else:
            self.log(
                LogLevel.INFO,
                f"Decision unavailable for {request.id}: no expert produced a result",
                SOURCE_DECISION,
                request_id=request.id,
            )

        if self.metrics is not None:
            verdict = outcome.decision.verdict.value if outcome.decision else None
            self.metrics.record_decision(request.id, verdict, elapsed)

    def _dispatch(
        self,
        request: Request,
        agents: Sequence[str],
        outcome: LifecycleOutcome,
        dispatched: List[str],
    ) -> None:
        for worker_id in agents:
            if worker_id not in self.agents or not self.load_model.has_worker(worker_id):
                self._record_expert_failure(outcome, worker_id, UnknownWorkerError(worker_id))
                continue

            change = self.load_model.dispatch(worker_id, request.id)
            dispatched.append(worker_id)
            self._sync_worker(change.worker)
            if change.scaling_started:
                self.log(
                    LogLevel.WARNING,
                    f"{change.worker.name} scaling up - load threshold exceeded "
                    f"({change.worker.current_load:.1f}%)",
                    SOURCE_SCALER,
                    request_id=request.id,
                )

    def _release(self, request_id: str, dispatched: Sequence[str]) -> None:
        for worker_id in dispatched:
            try:
                change = self.load_model.complete(worker_id, request_id)
                self._sync_worker(change.worker)
            except Exception as e:
                logger.error(f"Failed to release {worker_id} for {request_id}: {e}")

    async def _run_expert(self, worker_id: str, request: Request) -> AnalysisResult:
        return await self.agents[worker_id].analyze(request)

    def _record_expert_failure(self, outcome: LifecycleOutcome, worker_id: str, error: BaseException) -> None:
        outcome.errors[worker_id] = error
        message = error.message if isinstance(error, FinMoEException) else str(error)
        self.log(
            LogLevel.ERROR,
            f"{worker_id} failed on {outcome.request.id}: {type(error).__name__}: {message}",
            worker_id,
            request_id=outcome.request.id,
        )
        if self.metrics is not None:
            self.metrics.record_agent_error(worker_id, type(error).__name__)

    def _mark_failed(self, outcome: LifecycleOutcome, error_type: str) -> None:
        try:
            request = self.storage.update_request(outcome.request.id, status=RequestStatus.FAILED)
        except FinMoEException as e:
            logger.error(f"Could not mark {outcome.request.id} failed: {e.message}")
            return
        outcome.request = request
        self._publish(EventType.REQUEST_UPDATED, request)
        if self.metrics is not None:
            self.metrics.record_request_failed(request.id, error_type)

    def _sync_worker(self, worker: Worker) -> None:
        stored = self.storage.update_worker(worker.id, **worker.model_dump(include=_LOAD_FIELDS))
        self._publish(EventType.AGENT_UPDATED, stored)

    def log(self, level: LogLevel, message: str, source: str, request_id: Optional[str] = None) -> SystemLog:
        """Append an entry to the domain log trail and publish it."""
        entry = SystemLog(level=level, message=message, source=source, request_id=request_id)
        logger.log(_PY_LEVELS[level], f"[{source}] {message}")
        self.storage.append_log(entry)
        self._publish(EventType.NEW_LOG, entry)
        return entry

    def record_backoff(self, seconds: float) -> None:
        """Backoff listener for the inference client."""
        self.log(
            LogLevel.WARNING,
            f"Inference rate limit (429). Backing off for {round(seconds)}s",
            SOURCE_RATE_LIMITER,
        )
        if self.metrics is not None:
            self.metrics.record_backoff(seconds)

    def _publish(self, event_type: EventType, data: Any) -> None:
        try:
            self.event_sink.publish(event_type, data)
        except Exception as e:
            logger.error(f"Event sink failed on {event_type.value}: {e}")
