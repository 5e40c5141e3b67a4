"""Agent Load Model - synthetic per-worker load, queue and status.

Advisory only: feeds logs, events and metrics, never gates dispatch.
Every mutation is a plain synchronous method, so on a single event loop
each update is atomic with respect to other tasks.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from finmoe.common.config.settings import Config
from finmoe.common.constants import LoadConstants, WorkerConstants
from finmoe.common.exceptions import UnknownWorkerError
from finmoe.core.types import Specialization, WorkerStatus
from finmoe.data.schemas.worker import Worker

logger = logging.getLogger(__name__)


@dataclass
class WorkerState:
    """Mutable state of one worker."""
    worker_id: str
    name: str
    specialization: Specialization
    load_threshold: float
    model: str = ""
    current_load: float = 0.0
    processing_queue: List[str] = field(default_factory=list)
    status: WorkerStatus = WorkerStatus.IDLE
    tokens_per_minute: int = 0
    response_time: float = 0.0

    @property
    def is_scaling(self) -> bool:
        return self.current_load > self.load_threshold

    @property
    def instance_count(self) -> int:
        return 2 if self.is_scaling else 1

    def to_worker(self) -> Worker:
        return Worker(
            id=self.worker_id,
            name=self.name,
            specialization=self.specialization,
            status=self.status,
            current_load=self.current_load,
            processing_queue=list(self.processing_queue),
            load_threshold=self.load_threshold,
            model=self.model,
            tokens_per_minute=self.tokens_per_minute,
            response_time=self.response_time,
            instance_count=self.instance_count,
        )


@dataclass(frozen=True)
class LoadChange:
    """Outcome of one dispatch or completion."""
    worker: Worker
    scaling_started: bool = False


class AgentLoadModel:
    """Shared load model owned by the lifecycle manager.

    On dispatch load rises by a random amount within the dispatch range
    (capped at 100); on completion it falls by a random amount within the
    completion range (floored at ``load_floor``).
    """

    def __init__(
        self,
        workers: Iterable[WorkerState],
        dispatch_range: tuple = (15.0, 40.0),
        completion_range: tuple = (10.0, 30.0),
        load_floor: float = 10.0,
        rng: Optional[random.Random] = None,
    ):
        self._workers: Dict[str, WorkerState] = {w.worker_id: w for w in workers}
        self._dispatch_range = dispatch_range
        self._completion_range = completion_range
        self._load_floor = load_floor
        self._rng = rng or random.Random()
        for state in self._workers.values():
            self._recompute(state)

    @classmethod
    def from_config(cls, config: Config, rng: Optional[random.Random] = None) -> "AgentLoadModel":
        """Build the three workers with a randomized initial load."""
        rng = rng or random.Random(config.random_seed)
        models = {
            WorkerConstants.CREDIT_AGENT_ID: config.credit_model,
            WorkerConstants.FRAUD_AGENT_ID: config.fraud_model,
            WorkerConstants.ESG_AGENT_ID: config.esg_model,
        }
        specializations = {
            WorkerConstants.CREDIT_AGENT_ID: Specialization.CREDIT,
            WorkerConstants.FRAUD_AGENT_ID: Specialization.FRAUD,
            WorkerConstants.ESG_AGENT_ID: Specialization.ESG,
        }
        workers = [
            WorkerState(
                worker_id=worker_id,
                name=WorkerConstants.NAMES[worker_id],
                specialization=specializations[worker_id],
                load_threshold=threshold,
                model=models[worker_id],
                current_load=max(
                    config.load_floor,
                    rng.uniform(LoadConstants.INITIAL_LOAD_MIN, LoadConstants.INITIAL_LOAD_MAX),
                ),
            )
            for worker_id, threshold in config.load_thresholds.items()
        ]
        return cls(
            workers,
            dispatch_range=(config.dispatch_load_min, config.dispatch_load_max),
            completion_range=(config.completion_load_min, config.completion_load_max),
            load_floor=config.load_floor,
            rng=rng,
        )

    @property
    def load_floor(self) -> float:
        return self._load_floor

    def worker_ids(self) -> List[str]:
        return list(self._workers)

    def has_worker(self, worker_id: str) -> bool:
        return worker_id in self._workers

    def get(self, worker_id: str) -> Worker:
        return self._state(worker_id).to_worker()

    def snapshot(self) -> List[Worker]:
        """Point-in-time copy of every worker."""
        return [state.to_worker() for state in self._workers.values()]

    def dispatch(self, worker_id: str, request_id: str) -> LoadChange:
        """Record that ``request_id`` was handed to ``worker_id``."""
        state = self._state(worker_id)
        was_scaling = state.is_scaling

        state.processing_queue.append(request_id)
        increment = self._rng.uniform(*self._dispatch_range)
        state.current_load = min(LoadConstants.MAX_LOAD, state.current_load + increment)
        self._recompute(state)

        return LoadChange(
            worker=state.to_worker(),
            scaling_started=state.is_scaling and not was_scaling,
        )

    def complete(self, worker_id: str, request_id: str) -> LoadChange:
        """Record that ``worker_id`` finished ``request_id``."""
        state = self._state(worker_id)

        if request_id not in state.processing_queue:
            logger.warning(f"{worker_id} completed {request_id} which was not queued")
            return LoadChange(worker=state.to_worker())

        state.processing_queue.remove(request_id)
        decrement = self._rng.uniform(*self._completion_range)
        state.current_load = max(self._load_floor, state.current_load - decrement)
        self._recompute(state)

        return LoadChange(worker=state.to_worker())

    def _state(self, worker_id: str) -> WorkerState:
        try:
            return self._workers[worker_id]
        except KeyError:
            raise UnknownWorkerError(worker_id) from None

    def _recompute(self, state: WorkerState) -> None:
        if state.current_load > LoadConstants.OVERLOAD_THRESHOLD:
            state.status = WorkerStatus.OVERLOADED
        elif state.processing_queue:
            state.status = WorkerStatus.PROCESSING
        else:
            state.status = WorkerStatus.IDLE

        state.tokens_per_minute = int(
            state.current_load * LoadConstants.TOKENS_PER_LOAD_POINT
            + self._rng.uniform(0, LoadConstants.TOKENS_JITTER_MAX)
        )
        state.response_time = round(
            LoadConstants.RESPONSE_TIME_BASE
            + (state.current_load / LoadConstants.MAX_LOAD) * LoadConstants.RESPONSE_TIME_LOAD_FACTOR
            + self._rng.uniform(0, LoadConstants.RESPONSE_TIME_JITTER_MAX),
            1,
        )
