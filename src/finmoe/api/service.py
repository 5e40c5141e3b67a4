"""Dispatch Service - the inbound surface of the MoE pipeline.

``submit`` validates a request, acknowledges it immediately and lets the
lifecycle manager carry it to a terminal state on a background task.
``create_service`` wires every component from configuration: one shared
inference client, one load model, one storage backend, one event sink.

Kill switches are resolved once, here, and never re-read at runtime.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from finmoe.agents.registry import AGENT_CLASSES
from finmoe.api.schemas import SubmitRequest, SubmitResponse, SystemStatusResponse
from finmoe.common.config.emergency import ConfigSource, DynamicConfig, KillSwitch
from finmoe.common.config.settings import Config, get_config
from finmoe.common.constants import StorageConstants, WorkerConstants
from finmoe.common.exceptions import ValidationError
from finmoe.core.types import Priority
from finmoe.data.schemas.request import Request
from finmoe.data.schemas.system_log import SystemLog
from finmoe.data.schemas.worker import Worker
from finmoe.events.sink import EventSink, LoggingEventSink
from finmoe.inference.client import Clock, RateLimitedInferenceClient, Sleeper
from finmoe.inference.provider import InferenceProvider, OpenAICompatibleProvider
from finmoe.monitoring.metrics import MetricsCollector
from finmoe.orchestration.lifecycle import LifecycleOutcome, RequestLifecycleManager
from finmoe.orchestration.load_model import AgentLoadModel
from finmoe.orchestration.router import RoutingDecisionEngine
from finmoe.storage.memory import InMemoryStorage, Storage

logger = logging.getLogger(__name__)


class DispatchService:
    """Accepts requests and tracks their background processing."""

    def __init__(
        self,
        lifecycle: RequestLifecycleManager,
        client: RateLimitedInferenceClient,
        provider: Optional[InferenceProvider] = None,
        kill_switches: Optional[Dict[str, bool]] = None,
        connection_test_model: Optional[str] = None,
        max_history: int = StorageConstants.MAX_REQUEST_HISTORY,
    ):
        """Initialize the service.

        Args:
            lifecycle: Request lifecycle manager
            client: Shared inference client
            provider: Provider behind the client, used for connection checks
            kill_switches: Resolved kill-switch values, for status reporting
            connection_test_model: Model used by ``check_connection``
            max_history: Outcomes kept for ``get_outcome``, oldest evicted first
        """
        self.lifecycle = lifecycle
        self.client = client
        self.provider = provider
        self.kill_switches = dict(kill_switches or {})
        self._connection_test_model = connection_test_model
        self._tasks: Set[asyncio.Task] = set()
        self.max_history = max_history
        self._outcomes: Dict[str, LifecycleOutcome] = {}

    @property
    def storage(self) -> Storage:
        return self.lifecycle.storage

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @staticmethod
    def build_request(
        request_type: str,
        priority: Any = Priority.MEDIUM,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Request:
        """Validate inbound fields and build a pending Request.

        Raises:
            ValidationError: empty type, unknown priority or bad payload
        """
        try:
            body = SubmitRequest(type=request_type, priority=priority, payload=payload or {})
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid request submission",
                details={"errors": e.errors(include_url=False)},
            ) from e
        return Request(type=body.type, priority=body.priority, payload=body.payload)

    def submit(
        self,
        request_type: str,
        priority: Any = Priority.MEDIUM,
        payload: Optional[Dict[str, Any]] = None,
    ) -> SubmitResponse:
        """Acknowledge a request and process it in the background.

        Must be called from a running event loop.

        Raises:
            ValidationError: the submission was rejected
        """
        request = self.build_request(request_type, priority, payload)
        task = asyncio.create_task(self._run(request), name=f"finmoe-{request.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Accepted {request.type} {request.id} ({request.priority.value})")
        return SubmitResponse(
            request_id=request.id, status=request.status, accepted_at=request.timestamp
        )

    async def process(
        self,
        request_type: str,
        priority: Any = Priority.MEDIUM,
        payload: Optional[Dict[str, Any]] = None,
    ) -> LifecycleOutcome:
        """Submit and wait for the request to reach a terminal state."""
        request = self.build_request(request_type, priority, payload)
        return await self._run(request)

    async def _run(self, request: Request) -> LifecycleOutcome:
        try:
            outcome = await self.lifecycle.handle_new_request(request)
        except Exception:
            logger.exception(f"Request {request.id} could not be accepted")
            raise
        self._outcomes[request.id] = outcome
        while len(self._outcomes) > self.max_history:
            self._outcomes.pop(next(iter(self._outcomes)))
        return outcome

    def get_outcome(self, request_id: str) -> Optional[LifecycleOutcome]:
        return self._outcomes.get(request_id)

    async def drain(self) -> None:
        """Wait for every background request to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.drain()
        if self.lifecycle.metrics is not None:
            self.lifecycle.metrics.shutdown()
        logger.info("DispatchService shutdown complete")

    async def check_connection(self) -> bool:
        """Whether the inference provider is reachable. False under the kill switch."""
        if self.client.kill_switch or self.provider is None:
            return False
        test_connection = getattr(self.provider, "test_connection", None)
        if test_connection is None:
            return False
        return await test_connection(self._connection_test_model)

    def get_workers(self) -> List[Worker]:
        return self.storage.get_workers()

    def get_requests(self) -> List[Request]:
        return self.storage.get_requests()

    def get_logs(self, limit: int = StorageConstants.DEFAULT_LOG_PAGE) -> List[SystemLog]:
        return self.storage.get_logs(limit)

    def status(self) -> SystemStatusResponse:
        """Point-in-time system view."""
        decisions = [
            log.message for log in self.storage.get_logs(StorageConstants.MAX_LOG_HISTORY)
            if log.message.startswith("FINAL DECISION")
        ]
        metrics = self.lifecycle.metrics.summary() if self.lifecycle.metrics else {}
        return SystemStatusResponse(
            kill_switch=self.client.kill_switch,
            force_fallback_routing=self.kill_switches.get(
                KillSwitch.FORCE_FALLBACK_ROUTING.value, False
            ),
            in_flight=self.in_flight,
            workers=[w.model_dump(mode="json") for w in self.get_workers()],
            recent_requests=[
                r.model_dump(mode="json")
                for r in self.get_requests()[:StorageConstants.DEFAULT_LOG_PAGE]
            ],
            metrics=metrics,
            last_decision=decisions[-1] if decisions else None,
        )


def create_service(
    config: Optional[Config] = None,
    dynamic_config: Optional[DynamicConfig] = None,
    provider: Optional[InferenceProvider] = None,
    storage: Optional[Storage] = None,
    event_sink: Optional[EventSink] = None,
    metrics: Optional[MetricsCollector] = None,
    kill_switch: Optional[bool] = None,
    rng: Optional[random.Random] = None,
    clock: Clock = time.monotonic,
    sleep: Sleeper = asyncio.sleep,
) -> DispatchService:
    """Build a fully wired DispatchService.

    Args:
        config: Static settings. Defaults to ``get_config()``.
        dynamic_config: Kill-switch source. Built from ``config`` if not provided.
        provider: Inference provider. Built from ``config`` unless the kill
            switch is on.
        storage: Persistence backend. In-memory if not provided.
        event_sink: Event destination. Logs events if not provided.
        metrics: Metrics collector. Built from ``config`` if not provided.
        kill_switch: Override for the inference kill switch
        rng: Random source for the load model
        clock: Monotonic time source shared by client, experts and lifecycle
        sleep: Delay used by the rate limiter

    Raises:
        ConfigurationError: inference is enabled but no API key is configured
    """
    config = config or get_config()
    dynamic_config = dynamic_config or DynamicConfig(
        source=ConfigSource(config.config_source), region=config.aws_region
    )
    switches = dynamic_config.snapshot()
    if kill_switch is not None:
        switches[KillSwitch.DISABLE_INFERENCE.value] = kill_switch
    inference_disabled = switches[KillSwitch.DISABLE_INFERENCE.value]

    if provider is None and not inference_disabled:
        provider = OpenAICompatibleProvider(
            api_key=config.inference_api_key, base_url=config.inference_base_url
        )

    client = RateLimitedInferenceClient(
        provider,
        min_interval_seconds=config.min_request_interval_seconds,
        kill_switch=inference_disabled,
        call_timeout_seconds=config.call_timeout_seconds,
        clock=clock,
        sleep=sleep,
    )

    load_model = AgentLoadModel.from_config(config, rng=rng)
    if storage is None:
        storage = InMemoryStorage(
            load_model.snapshot(),
            max_requests=config.max_request_history,
            max_logs=config.max_log_history,
        )
    elif isinstance(storage, InMemoryStorage):
        known = {w.id for w in storage.get_workers()}
        for worker in load_model.snapshot():
            if worker.id not in known:
                storage.register_worker(worker)

    models = {
        WorkerConstants.CREDIT_AGENT_ID: config.credit_model,
        WorkerConstants.FRAUD_AGENT_ID: config.fraud_model,
        WorkerConstants.ESG_AGENT_ID: config.esg_model,
    }
    agents = {
        worker_id: agent_class(
            client, models[worker_id], rate_limit_retries=config.rate_limit_retries, clock=clock
        )
        for worker_id, agent_class in AGENT_CLASSES.items()
    }

    router = RoutingDecisionEngine(
        client,
        config.router_model,
        fallback_agents=config.fallback_default_agents,
        force_fallback=switches[KillSwitch.FORCE_FALLBACK_ROUTING.value],
    )

    lifecycle = RequestLifecycleManager(
        storage=storage,
        event_sink=event_sink or LoggingEventSink(),
        router=router,
        load_model=load_model,
        agents=agents,
        metrics=metrics or MetricsCollector(
            region=config.aws_region, publish=config.publish_metrics
        ),
        clock=clock,
    )
    client.on_backoff = lifecycle.record_backoff

    logger.info(
        f"DispatchService ready: kill_switch={inference_disabled}, "
        f"force_fallback_routing={switches[KillSwitch.FORCE_FALLBACK_ROUTING.value]}, "
        f"min_interval={config.min_request_interval_seconds}s"
    )
    return DispatchService(
        lifecycle,
        client,
        provider=provider,
        kill_switches=switches,
        connection_test_model=config.router_model,
        max_history=config.max_request_history,
    )
